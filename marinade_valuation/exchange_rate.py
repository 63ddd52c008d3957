"""
mSOL exchange-rate arithmetic.

Two formulas exist and are not interchangeable:

* recomputed: (total_active_balance + emergency_cooling_down + available_reserve_balance
  - circulating_ticket_balance) / msol_supply. Delayed-unstake cooling balance is left out.
* state field: the program's own `msol_price` (32.32 fixed point), refreshed by
  `update_active` / `update_deactivated` and computed over total lamports under control,
  which includes delayed-unstake cooling balance.

All arithmetic is integer and truncating, bounded to u64 like the program's bookkeeping.
"""

from enum import Enum

from marinade_valuation.constants import LAMPORTS_PER_SOL, PRICE_DENOMINATOR, U64_MAX
from marinade_valuation.errors import ComputationError
from marinade_valuation.models import ProtocolState


class PriceSource(str, Enum):
    """Which formula produces ValuationSnapshot.price."""

    RECOMPUTED = "recomputed"
    STATE_FIELD = "state-field"


def _checked_u64(value: int, what: str) -> int:
    if value < 0:
        raise ComputationError(f"{what} underflows u64: {value}")
    if value > U64_MAX:
        raise ComputationError(f"{what} overflows u64: {value}")
    return value


def backing_lamports(state: ProtocolState) -> int:
    """SOL backing circulating mSOL: active + emergency cooling + reserve - tickets."""
    gross = _checked_u64(
        state.total_active_balance + state.emergency_cooling_down + state.available_reserve_balance,
        "active + cooling + reserve balance",
    )
    return _checked_u64(gross - state.circulating_ticket_balance, "backing amount (tickets exceed balances)")


def total_lamports_under_control(state: ProtocolState) -> int:
    """Program-side total: active + delayed cooling + emergency cooling + reserve."""
    return _checked_u64(
        state.total_active_balance
        + state.delayed_unstake_cooling_down
        + state.emergency_cooling_down
        + state.available_reserve_balance,
        "lamports under control",
    )


def token_price(state: ProtocolState, backing: int | None = None) -> int:
    """Integer (truncating) backing lamports per mSOL lamport."""
    if backing is None:
        backing = backing_lamports(state)
    if state.msol_supply == 0:
        raise ComputationError("mSOL supply is zero, price is undefined")
    return backing // state.msol_supply


def state_field_price(state: ProtocolState) -> int:
    """Integer (truncating) price taken from the precomputed `msol_price` field."""
    if state.msol_price == 0:
        raise ComputationError("msol_price field is zero, price is undefined")
    return state.msol_price // PRICE_DENOMINATOR


def lamports_per_token(state: ProtocolState, backing: int | None = None) -> int:
    """Recomputed price scaled to lamports per 1 mSOL (1e9 mSOL lamports)."""
    if backing is None:
        backing = backing_lamports(state)
    if state.msol_supply == 0:
        raise ComputationError("mSOL supply is zero, price is undefined")
    return backing * LAMPORTS_PER_SOL // state.msol_supply


def state_field_lamports_per_token(state: ProtocolState) -> int:
    """`msol_price` field scaled to lamports per 1 mSOL."""
    return state.msol_price * LAMPORTS_PER_SOL // PRICE_DENOMINATOR


def price_for(state: ProtocolState, source: PriceSource, backing: int | None = None) -> int:
    """Price according to the selected formula."""
    if source is PriceSource.STATE_FIELD:
        return state_field_price(state)
    return token_price(state, backing)
