"""Formatting and conversion utilities."""

from datetime import datetime, timezone
from decimal import Decimal

from marinade_valuation.constants import SOL_DECIMALS


def as_int(value, *, default: int = 0) -> int:
    """Convert value to int, handling various types."""
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        v = value.strip()
        if v.startswith("0x"):
            return int(v, 16)
        return int(v)
    return int(value)


def format_sol(lamports: int, *, decimals: int = 9, approx: bool = False) -> str:
    """Format a lamport amount as SOL."""
    sol = Decimal(lamports) / SOL_DECIMALS
    s = f"{sol:.{decimals}f}".rstrip("0").rstrip(".")
    prefix = "~" if approx else ""
    return f"{prefix}{s} SOL"


def format_rate(lamports_per_token: int, *, decimals: int = 9) -> str:
    """Format a lamports-per-token rate (scaled by 1e9) as a decimal ratio."""
    rate = Decimal(lamports_per_token) / SOL_DECIMALS
    return f"{rate:.{decimals}f}"


def format_timestamp(block_time: int | None) -> str:
    """Format a unix block time in UTC."""
    if block_time is None:
        return "n/a"
    return datetime.fromtimestamp(block_time, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def short_address(address: str, *, head: int = 6, tail: int = 6) -> str:
    """Shorten a base58 address or signature for display."""
    if len(address) <= head + tail + 3:
        return address
    return f"{address[:head]}...{address[-tail:]}"
