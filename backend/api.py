"""
FastAPI web backend for Solana Coinflip against the house.
Wallet connect (non-custodial): the player signs the wager transfer, the
backend verifies it on-chain and settles.
"""
import sys
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, Field
from solana.rpc.commitment import Confirmed

from config import Settings, load_settings
from database import Database
from game import (
    BetPreparer,
    CoinflipError,
    ConfigFailure,
    HouseKeyCustodian,
    InvalidInput,
    NetworkFailure,
    PaymentVerifier,
    SettlementEngine,
    SolanaLedger,
)
from security import AuditEventType, AuditLogger, AuditSeverity
from utils import format_sol

# Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# ===== MODELS =====

class PrepareBetRequest(BaseModel):
    player_address: str = Field(validation_alias=AliasChoices("playerAddress", "playerPubkey"))


class SettleBetRequest(BaseModel):
    signature: str
    player_address: str = Field(validation_alias=AliasChoices("playerAddress", "playerPubkey"))


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def create_app(settings: Settings, ledger=None, coin=None) -> FastAPI:
    """Build the API.

    Args:
        settings: Loaded configuration
        ledger: Ledger client; defaults to SolanaLedger on settings.rpc_url
        coin: Randomness source with flip() -> bool; defaults to SecureCoin

    Raises:
        ConfigFailure: If the house key cannot be loaded
    """
    custodian = HouseKeyCustodian.from_secret(settings.house_secret_key)
    ledger = ledger or SolanaLedger(settings.rpc_url)
    db = Database(settings.db_path)
    audit = AuditLogger(settings.db_path)

    price = settings.price_lamports
    preparer = BetPreparer(ledger, custodian.pubkey, price)
    verifier = PaymentVerifier(ledger, custodian.pubkey, price)
    engine = SettlementEngine(ledger, verifier, custodian, price, db, coin=coin, audit=audit, network=settings.network)
    house = custodian.public_address()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"[backend] house pubkey: {house}")
        logger.info(f"[backend] price: {price} lamports ({format_sol(price)} SOL)")
        yield
        await ledger.close()

    app = FastAPI(title="Solana Coinflip API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.custodian = custodian
    app.state.ledger = ledger
    app.state.db = db
    app.state.audit = audit
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST"],  # Only needed methods
        allow_headers=["*"],
    )

    # ===== ERRORS =====

    @app.exception_handler(CoinflipError)
    async def coinflip_error_handler(request: Request, exc: CoinflipError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
            for err in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": "InvalidInput", "detail": problems})

    # ===== ENDPOINTS =====

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        try:
            ref = await ledger.latest_blockhash(Confirmed)
        except NetworkFailure as e:
            return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})
        return {
            "ok": True,
            "network": settings.network,
            "house": house,
            "blockReference": ref.blockhash,
        }

    @app.post("/bet/prepare")
    async def prepare_bet(body: PrepareBetRequest, request: Request):
        """Return an unsigned wager transfer (player -> house) for the player to sign."""
        try:
            prepared = await preparer.prepare(body.player_address)
        except InvalidInput as e:
            audit.log(
                AuditEventType.INVALID_WALLET,
                AuditSeverity.WARNING,
                wallet=body.player_address[:64],
                ip_address=_client_ip(request),
                details=e.message,
            )
            raise
        except CoinflipError:
            raise
        except Exception as e:
            logger.error(f"Prepare bet failed: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail="Failed to prepare bet. Please try again.")

        return {
            "unsignedTxBytes": prepared.tx_base64,
            "blockReference": prepared.blockhash,
            "expiryHeight": prepared.last_valid_block_height,
            "house": prepared.house,
            "price": prepared.price_lamports,
        }

    @app.post("/bet/settle")
    async def settle_bet(body: SettleBetRequest, request: Request):
        """Verify the wager payment, flip, and pay 2x on a win."""
        try:
            result = await engine.settle(body.signature, body.player_address, ip_address=_client_ip(request))
        except CoinflipError:
            raise
        except Exception as e:
            logger.error(f"Settle bet failed: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail="Failed to settle bet. Please try again.")

        return {
            "ok": True,
            "outcome": result.outcome.value,
            "win": result.win,
            "payoutSignature": result.payout_signature,
            "payoutLamports": result.payout_lamports,
            "replayed": result.replayed,
            "house": house,
            "price": price,
        }

    return app


# ===== MAIN =====

if __name__ == "__main__":
    import uvicorn

    try:
        settings = load_settings()
        app = create_app(settings)
    except ConfigFailure as e:
        logger.error(e.message)
        sys.exit(1)

    logger.info("=" * 50)
    logger.info("Solana Coinflip API Starting...")
    logger.info("=" * 50)

    uvicorn.run(app, host="0.0.0.0", port=settings.port)
