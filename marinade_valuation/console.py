"""Console output formatting."""

from marinade_valuation.constants import SOLSCAN_BASE
from marinade_valuation.formatters import format_rate, format_sol, format_timestamp, short_address
from marinade_valuation.models import ValuationSnapshot


def print_snapshot(snapshot: ValuationSnapshot) -> None:
    """Print one valuation snapshot."""
    print("=" * 70)
    print("🌊 mSOL VALUATION")
    print(f"   🕐 {format_timestamp(snapshot.block_time)}  •  slot={snapshot.slot}")
    if snapshot.signature:
        print(f"   🔗 {SOLSCAN_BASE}/tx/{snapshot.signature}")
    print("=" * 70)
    print(f"   Token:    {snapshot.mint}")
    print(f"   Program:  {snapshot.program_id}")
    for mint, amount in zip(snapshot.backing_mints, snapshot.backing_amounts, strict=True):
        print(f"   💰 Backing ({short_address(mint)}): {format_sol(amount, decimals=4, approx=True)}  [{amount} lamports]")
    print(f"   💱 Price (integer): {snapshot.price}")

    per_token = snapshot.extra.get("lamports_per_token")
    if per_token is not None:
        print(f"   📈 SOL per mSOL (recomputed):  {format_rate(per_token)}")
    field_per_token = snapshot.extra.get("state_field_lamports_per_token")
    if field_per_token:
        print(f"   📈 SOL per mSOL (state field): {format_rate(field_per_token)}")
    reason = snapshot.extra.get("relevance")
    if reason:
        print(f"   ℹ️  Relevance: {reason}")
    print("")


def print_not_applicable(signature: str) -> None:
    """Print the outcome for a transaction that did not move the price."""
    print(f"➡️  {short_address(signature, head=10, tail=10)}: no valuation (transaction did not change mSOL backing)")
