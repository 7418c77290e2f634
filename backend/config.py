"""
Environment configuration for the Coinflip backend.
Values come from the process environment, with `.env` loaded first.
"""
import os
from dataclasses import dataclass
from typing import Tuple

from dotenv import load_dotenv

from game.errors import ConfigFailure

DEFAULT_PRICE_LAMPORTS = 20_000_000  # 0.02 SOL
DEFAULT_PORT = 8787


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    house_secret_key: str
    price_lamports: int = DEFAULT_PRICE_LAMPORTS
    port: int = DEFAULT_PORT
    cors_origins: Tuple[str, ...] = ("*",)
    network: str = "mainnet-beta"
    db_path: str = "coinflip.db"

    def __repr__(self):
        # Keep the house key out of logs and tracebacks
        return (
            f"Settings(rpc_url={self.rpc_url!r}, price_lamports={self.price_lamports}, "
            f"port={self.port}, network={self.network!r}, db_path={self.db_path!r})"
        )


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.replace("_", ""))
    except ValueError:
        raise ConfigFailure(f"{name} must be an integer, got {raw!r}") from None


def load_settings() -> Settings:
    """Load settings from the environment.

    Raises:
        ConfigFailure: If RPC_URL or HOUSE_SECRET_KEY is missing, or a
            numeric setting is invalid
    """
    load_dotenv()

    rpc_url = (os.getenv("RPC_URL") or "").strip()
    if not rpc_url:
        raise ConfigFailure("RPC_URL not set. Put your Solana RPC endpoint in backend/.env")

    house_secret_key = os.getenv("HOUSE_SECRET_KEY") or ""
    if not house_secret_key.strip():
        raise ConfigFailure(
            "HOUSE_SECRET_KEY is empty. Put a base58 or JSON array secret key in backend/.env (server-only)."
        )

    price_lamports = _int_env("PRICE_LAMPORTS", DEFAULT_PRICE_LAMPORTS)
    if price_lamports <= 0:
        raise ConfigFailure(f"PRICE_LAMPORTS must be positive, got {price_lamports}")

    cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

    return Settings(
        rpc_url=rpc_url,
        house_secret_key=house_secret_key,
        price_lamports=price_lamports,
        port=_int_env("PORT", DEFAULT_PORT),
        cors_origins=tuple(cors_origins or ["*"]),
        network=os.getenv("NETWORK", "mainnet-beta"),
        db_path=os.getenv("DB_PATH", "coinflip.db"),
    )
