"""
Formatting utilities for display.
"""

LAMPORTS_PER_SOL = 1_000_000_000


def lamports_to_sol(lamports: int) -> float:
    """Convert lamports to SOL."""
    return lamports / LAMPORTS_PER_SOL


def format_sol(lamports: int) -> str:
    """Format a lamport amount as SOL for display."""
    amount = lamports_to_sol(lamports)
    if amount >= 1000:
        return f"{amount:,.2f}"
    elif amount >= 1:
        return f"{amount:.4f}"
    else:
        return f"{amount:.6f}"


def format_tx_link(signature: str, cluster: str = "mainnet-beta") -> str:
    """Format Solana transaction explorer link."""
    link = f"https://solscan.io/tx/{signature}"
    if cluster != "mainnet-beta":
        link += f"?cluster={cluster}"
    return link


def truncate_address(address: str, start: int = 4, end: int = 4) -> str:
    """Truncate wallet address for display."""
    if len(address) <= start + end:
        return address
    return f"{address[:start]}...{address[-end:]}"
