"""Data models for mSOL valuation."""

from dataclasses import dataclass, field
from typing import Any

from marinade_valuation.constants import (
    MARINADE_PROGRAM_ID,
    MARINADE_STATE_ADDRESS,
    MSOL_MINT,
    SOL_MINT,
)


@dataclass(frozen=True)
class ProtocolAddresses:
    """Fixed addresses identifying one liquid staking deployment."""

    program_id: str
    state_address: str
    token_mint: str
    backing_mints: tuple[str, ...]


MARINADE_MAINNET = ProtocolAddresses(
    program_id=MARINADE_PROGRAM_ID,
    state_address=MARINADE_STATE_ADDRESS,
    token_mint=MSOL_MINT,
    backing_mints=(SOL_MINT,),
)


@dataclass(frozen=True)
class ProtocolState:
    """Valuation-relevant fields of the Marinade `State` account. All amounts in lamports."""

    msol_mint: str
    total_active_balance: int
    delayed_unstake_cooling_down: int
    emergency_cooling_down: int
    available_reserve_balance: int
    circulating_ticket_count: int
    circulating_ticket_balance: int
    msol_supply: int
    # 32.32 fixed-point lamports per mSOL, maintained by the program itself.
    msol_price: int
    paused: bool = False


@dataclass(frozen=True)
class Instruction:
    """A compiled instruction with its program id already resolved."""

    # None when the program index falls outside the combined address list.
    program_id: str | None
    data: bytes
    # Index of the top-level instruction this one was invoked from; None for top-level.
    parent_index: int | None = None

    @property
    def tag(self) -> bytes | None:
        """First 8 payload bytes, or None when the payload is too short to carry a tag."""
        if len(self.data) < 8:
            return None
        return bytes(self.data[:8])


@dataclass(frozen=True)
class AccountDataEntry:
    """Raw account data captured before or after execution, keyed by account position."""

    account_index: int
    data: bytes


@dataclass(frozen=True)
class TransactionView:
    """Decoded transaction as seen by the classifier."""

    signature: str
    slot: int
    block_time: int | None
    # Static keys followed by lookup-table writable, then readonly addresses.
    account_keys: tuple[str, ...]
    instructions: tuple[Instruction, ...]
    inner_instructions: tuple[Instruction, ...] = ()
    pre_account_data: tuple[AccountDataEntry, ...] | None = None
    post_account_data: tuple[AccountDataEntry, ...] | None = None
    failed: bool = False

    def account_index(self, address: str) -> int | None:
        """Position of `address` in the combined address list, or None."""
        try:
            return self.account_keys.index(address)
        except ValueError:
            return None


@dataclass(frozen=True)
class Verdict:
    """Outcome of relevance classification."""

    relevant: bool
    reason: str
    # Post-execution state, when the strategy decoded it as a by-product.
    state: ProtocolState | None = None


@dataclass(frozen=True)
class ValuationSnapshot:
    """Point-in-time mSOL valuation derived from one transaction."""

    block_time: int
    # Integer (truncating) backing lamports per mSOL lamport.
    price: int
    mint: str
    program_id: str
    backing_mints: tuple[str, ...]
    backing_amounts: tuple[int, ...]
    signature: str = ""
    slot: int = 0
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        if len(self.backing_mints) != len(self.backing_amounts):
            raise ValueError(
                f"backing_mints ({len(self.backing_mints)}) and backing_amounts "
                f"({len(self.backing_amounts)}) must be index-aligned"
            )

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation."""
        return {
            "signature": self.signature,
            "slot": self.slot,
            "block_time": self.block_time,
            "price": self.price,
            "mint": self.mint,
            "program_id": self.program_id,
            "backing_mints": list(self.backing_mints),
            "backing_amounts": list(self.backing_amounts),
            **self.extra,
        }
