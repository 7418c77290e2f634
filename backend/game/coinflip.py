"""
Core coinflip settlement: verify the wager, flip, pay out double on a win.
"""
import itertools
import logging
import random
import secrets
from typing import Iterable, Optional

from solana.rpc.commitment import Finalized
from solders.hash import Hash
from solders.pubkey import Pubkey

from database import Database, Outcome, SettlementRecord, SettlementResult
from security import AuditEventType, AuditLogger, AuditSeverity
from utils import format_sol, format_tx_link, truncate_address
from .errors import AlreadySettled, VerificationError
from .house import HouseKeyCustodian
from .prepare import build_transfer_message
from .verify import PaymentVerifier

logger = logging.getLogger(__name__)

PAYOUT_MULTIPLIER = 2


class SecureCoin:
    """Fair coin backed by the OS CSPRNG."""

    def flip(self) -> bool:
        return secrets.randbelow(2) == 0


class SeededCoin:
    """Reproducible coin for simulations."""

    def __init__(self, seed=None):
        self._rng = random.Random(seed)

    def flip(self) -> bool:
        return self._rng.getrandbits(1) == 1


class SequenceCoin:
    """Replays a fixed sequence of outcomes, cycling when exhausted."""

    def __init__(self, outcomes: Iterable[bool]):
        outcomes = list(outcomes)
        if not outcomes:
            raise ValueError("SequenceCoin needs at least one outcome")
        self._outcomes = itertools.cycle(outcomes)

    def flip(self) -> bool:
        return next(self._outcomes)


class SettlementEngine:
    """Settles verified wagers against the house.

    Each wager signature is claimed in the database before the flip, so a
    payment is settled at most once. A replay of a finished settlement
    returns the original result.
    """

    def __init__(
        self,
        ledger,
        verifier: PaymentVerifier,
        custodian: HouseKeyCustodian,
        price_lamports: int,
        db: Database,
        coin=None,
        audit: Optional[AuditLogger] = None,
        network: str = "mainnet-beta",
    ):
        self.ledger = ledger
        self.verifier = verifier
        self.custodian = custodian
        self.price_lamports = price_lamports
        self.db = db
        self.coin = coin or SecureCoin()
        self.audit = audit
        self.network = network

    @property
    def payout_lamports(self) -> int:
        return self.price_lamports * PAYOUT_MULTIPLIER

    def _audit(self, event_type: AuditEventType, severity: AuditSeverity = AuditSeverity.INFO, **kwargs):
        if self.audit:
            self.audit.log(event_type, severity, **kwargs)

    async def settle(self, signature: str, player_address: str, ip_address: str = None) -> SettlementResult:
        """Settle a wager.

        Args:
            signature: Signature of the player's wager transfer
            player_address: Wallet that paid the wager and receives any payout
            ip_address: Caller IP for the audit trail

        Returns:
            SettlementResult

        Raises:
            InvalidInput, NotFound, Mismatch: Payment could not be verified
            AlreadySettled: The signature is being settled by another call
            NetworkFailure: Ledger unreachable, or payout submission failed
        """
        try:
            payment = await self.verifier.verify(signature, player_address)
        except VerificationError as e:
            self._audit(
                AuditEventType.INVALID_TRANSACTION,
                AuditSeverity.WARNING,
                wallet=player_address,
                signature=signature,
                ip_address=ip_address,
                details=f"{e.code}: {e.message}",
            )
            raise

        self._audit(
            AuditEventType.SIGNATURE_VERIFIED,
            wallet=payment.sender,
            signature=signature,
            ip_address=ip_address,
            details=f"{payment.lamports} lamports at slot {payment.slot}",
        )

        claimed, record = self.db.claim_settlement(
            SettlementRecord(
                signature=signature,
                player_wallet=payment.sender,
                price_lamports=self.price_lamports,
            )
        )
        if not claimed:
            self._audit(
                AuditEventType.SIGNATURE_REUSE,
                AuditSeverity.WARNING,
                wallet=player_address,
                signature=signature,
                ip_address=ip_address,
                details=f"existing settlement status: {record.status.value}",
            )
            if record.status.is_final:
                logger.info(f"[SETTLE] Replay of {signature}: returning original {record.outcome.value}")
                return SettlementResult.from_record(record, replayed=True)
            raise AlreadySettled(
                f"Transaction {signature} is already being settled (status: {record.status.value})"
            )

        player_won = self.coin.flip()

        if not player_won:
            self.db.complete_settlement(signature, Outcome.LOSE)
            self._audit(
                AuditEventType.GAME_COMPLETED,
                wallet=payment.sender,
                signature=signature,
                details="house won",
            )
            logger.info(f"[SETTLE] House won {format_sol(self.price_lamports)} SOL from {truncate_address(player_address)} (tx: {signature})")
            return SettlementResult(outcome=Outcome.LOSE)

        payout = self.payout_lamports
        try:
            payout_sig = await self._send_payout(Pubkey.from_string(payment.sender), payout)
        except Exception as e:
            self.db.mark_payout_failed(signature, payout)
            self._audit(
                AuditEventType.PAYOUT_FAILED,
                AuditSeverity.CRITICAL,
                wallet=payment.sender,
                signature=signature,
                details=f"{payout} lamports owed: {e}",
            )
            raise

        # Funds have moved: a bookkeeping failure from here on must not hide the payout
        try:
            self.db.complete_settlement(signature, Outcome.WIN, payout_sig, payout)
        except Exception as e:
            logger.error(
                f"[PAYOUT] Paid {payout} lamports (payout tx: {payout_sig}) but could not record settlement {signature}: {e}",
                exc_info=True,
            )
            self._audit(
                AuditEventType.PAYOUT_UNRECORDED,
                AuditSeverity.CRITICAL,
                wallet=payment.sender,
                signature=signature,
                details=f"{payout} lamports paid in {payout_sig}, settlement still pending: {e}",
            )
        else:
            self._audit(
                AuditEventType.PAYOUT_PROCESSED,
                wallet=payment.sender,
                signature=signature,
                details=f"{payout} lamports, payout tx {payout_sig}",
            )
        logger.info(
            f"[SETTLE] Player {truncate_address(player_address)} won {format_sol(payout)} SOL "
            f"({format_tx_link(payout_sig, self.network)})"
        )
        return SettlementResult(outcome=Outcome.WIN, payout_signature=payout_sig, payout_lamports=payout)

    async def _send_payout(self, player: Pubkey, lamports: int) -> str:
        """Build, sign and submit the house -> player payout. Not retried."""
        ref = await self.ledger.latest_blockhash(Finalized)
        blockhash = Hash.from_string(ref.blockhash)
        message = build_transfer_message(self.custodian.pubkey, player, lamports, blockhash)
        tx = self.custodian.sign(message, blockhash)

        logger.info(f"[PAYOUT] Sending {format_sol(lamports)} SOL to {player}")
        return await self.ledger.submit(tx)
