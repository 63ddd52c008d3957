"""Consistency checks on decoded protocol state."""

from marinade_valuation.constants import PRICE_DENOMINATOR, PRICE_DRIFT_TOLERANCE_BP, TOTAL_BASIS_POINTS
from marinade_valuation.errors import ComputationError
from marinade_valuation.exchange_rate import total_lamports_under_control
from marinade_valuation.models import ProtocolState


def validate_protocol_state(state: ProtocolState, *, warn_only: bool = True) -> list[str]:
    """
    Validate decoded State invariants.

    Returns list of validation warnings. If warn_only=False, raises ValueError on the first issue.
    """
    issues: list[str] = []

    def _flag(msg: str) -> None:
        issues.append(msg)
        if not warn_only:
            raise ValueError(msg)

    try:
        under_control = total_lamports_under_control(state)
    except ComputationError as ex:
        _flag(f"lamports under control out of range: {ex}")
        return issues

    # 1. Tickets are claims on lamports the program controls.
    if state.circulating_ticket_balance > under_control:
        _flag(
            f"circulating ticket balance {state.circulating_ticket_balance} exceeds "
            f"lamports under control {under_control}"
        )
        return issues

    virtual_staked = under_control - state.circulating_ticket_balance

    # 2. Backing without supply only happens right after initialization.
    if state.msol_supply == 0:
        if virtual_staked > 0:
            _flag(f"mSOL supply is zero while {virtual_staked} lamports are staked")
        return issues

    # 3. The stored price is refreshed by cranks, so only large drift is suspicious.
    if state.msol_price:
        expected = virtual_staked * PRICE_DENOMINATOR // state.msol_supply
        drift_bp = abs(state.msol_price - expected) * TOTAL_BASIS_POINTS // max(expected, 1)
        if drift_bp > PRICE_DRIFT_TOLERANCE_BP:
            _flag(f"msol_price field {state.msol_price} drifts {drift_bp} bp from recomputed {expected}")

    return issues
