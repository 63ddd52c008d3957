"""Decide whether a transaction changed Marinade's valuation-relevant state."""

import logging
from abc import ABC, abstractmethod

from marinade_valuation.discriminators import (
    STATE_MUTATING_REGISTRY,
    UNREGISTERED_MUTATING_TAGS,
    InstructionRegistry,
)
from marinade_valuation.models import (
    MARINADE_MAINNET,
    AccountDataEntry,
    ProtocolAddresses,
    TransactionView,
    Verdict,
)
from marinade_valuation.parsing import decode_state

logger = logging.getLogger(__name__)

STRATEGY_INSTRUCTIONS = "instructions"
STRATEGY_BALANCE_DIFF = "balance-diff"

# Fields whose change moves the exchange rate; compared by the balance-diff strategy.
DIFFED_FIELDS: tuple[str, ...] = (
    "available_reserve_balance",
    "emergency_cooling_down",
    "msol_supply",
)


class RelevanceClassifier(ABC):
    """Strategy interface: one transaction in, one Verdict out."""

    name = ""

    def __init__(self, addresses: ProtocolAddresses = MARINADE_MAINNET):
        self.addresses = addresses

    def classify(self, tx: TransactionView) -> Verdict:
        """Classify `tx`; failed transactions never changed state."""
        if tx.failed:
            return Verdict(False, "transaction failed")
        verdict = self._classify(tx)
        logger.info("%s [%s]: relevant=%s (%s)", tx.signature or f"slot {tx.slot}", self.name, verdict.relevant, verdict.reason)
        return verdict

    @abstractmethod
    def _classify(self, tx: TransactionView) -> Verdict:
        raise NotImplementedError


class InstructionClassifier(RelevanceClassifier):
    """
    Relevant iff an instruction addressed to the program carries a registered tag.

    Tags outside the registry are treated as non-mutating. Known-mutating instructions
    missing from the registry are logged, not accepted.
    """

    name = STRATEGY_INSTRUCTIONS

    def __init__(
        self,
        addresses: ProtocolAddresses = MARINADE_MAINNET,
        *,
        registry: InstructionRegistry = STATE_MUTATING_REGISTRY,
        include_inner: bool = True,
    ):
        super().__init__(addresses)
        self.registry = registry
        self.include_inner = include_inner

    def _classify(self, tx: TransactionView) -> Verdict:
        candidates = list(tx.instructions)
        if self.include_inner:
            candidates.extend(tx.inner_instructions)

        touched = False
        for ix in candidates:
            if ix.program_id is None:
                logger.warning("%s: instruction program index outside address list, skipped", tx.signature)
                continue
            if ix.program_id != self.addresses.program_id:
                continue
            touched = True
            tag = ix.tag
            if tag is None:
                continue
            name = self.registry.name_of(tag)
            if name is not None:
                return Verdict(True, f"instruction {name}")
            gap = UNREGISTERED_MUTATING_TAGS.get(tag)
            if gap is not None:
                logger.warning(
                    "%s: %s mutates valuation state but is not in the registry; reported as not relevant",
                    tx.signature,
                    gap,
                )

        if touched:
            return Verdict(False, "no registered state-mutating instruction")
        return Verdict(False, "program not invoked")


class BalanceDiffClassifier(RelevanceClassifier):
    """
    Relevant iff reserve, emergency cooling or supply differ between the pre- and
    post-execution state snapshots of the state account.

    Needs pre/post account data in the transaction; missing snapshots mean not relevant.
    The decoded post state is handed back so no follow-up fetch is needed.
    """

    name = STRATEGY_BALANCE_DIFF

    def _classify(self, tx: TransactionView) -> Verdict:
        if tx.pre_account_data is None or tx.post_account_data is None:
            return Verdict(False, "no pre/post account snapshots")

        index = tx.account_index(self.addresses.state_address)
        if index is None:
            return Verdict(False, "state account not referenced")

        pre = _entry_for(tx.pre_account_data, index)
        post = _entry_for(tx.post_account_data, index)
        if pre is None or post is None:
            return Verdict(False, "state account snapshot missing")

        # Malformed snapshots propagate as DecodeError: the post state feeds the arithmetic.
        pre_state = decode_state(pre.data)
        post_state = decode_state(post.data)
        changed = [f for f in DIFFED_FIELDS if getattr(pre_state, f) != getattr(post_state, f)]
        if changed:
            return Verdict(True, f"changed {', '.join(changed)}", state=post_state)
        return Verdict(False, "reserve, cooling and supply unchanged", state=post_state)


def _entry_for(entries: tuple[AccountDataEntry, ...], index: int) -> AccountDataEntry | None:
    for entry in entries:
        if entry.account_index == index:
            return entry
    return None


def build_classifier(strategy: str, addresses: ProtocolAddresses = MARINADE_MAINNET) -> RelevanceClassifier:
    """Construct a classifier by strategy name."""
    if strategy == STRATEGY_INSTRUCTIONS:
        return InstructionClassifier(addresses)
    if strategy == STRATEGY_BALANCE_DIFF:
        return BalanceDiffClassifier(addresses)
    raise ValueError(f"Unknown relevance strategy: {strategy!r}")
