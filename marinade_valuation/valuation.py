"""Valuation pipeline: classify, decode, compute, assemble."""

import logging
from collections.abc import Callable

from marinade_valuation.classifier import InstructionClassifier, RelevanceClassifier
from marinade_valuation.errors import DecodeError, TransactionDecodeError
from marinade_valuation.exchange_rate import (
    PriceSource,
    backing_lamports,
    lamports_per_token,
    price_for,
    state_field_lamports_per_token,
)
from marinade_valuation.models import (
    MARINADE_MAINNET,
    ProtocolAddresses,
    ProtocolState,
    TransactionView,
    ValuationSnapshot,
    Verdict,
)
from marinade_valuation.parsing import decode_state
from marinade_valuation.validation import validate_protocol_state

logger = logging.getLogger(__name__)

# fetch_state(min_slot) -> raw state account bytes
StateFetcher = Callable[[int | None], bytes]


def assemble_snapshot(
    verdict: Verdict,
    state: ProtocolState | None,
    tx: TransactionView,
    *,
    backing: int | None,
    price: int | None,
    addresses: ProtocolAddresses = MARINADE_MAINNET,
    extra: dict | None = None,
) -> ValuationSnapshot | None:
    """Package a valuation, or None when there is nothing complete to report."""
    if not verdict.relevant or state is None:
        return None
    if tx.block_time is None or backing is None or price is None:
        return None
    return ValuationSnapshot(
        block_time=tx.block_time,
        price=price,
        mint=addresses.token_mint,
        program_id=addresses.program_id,
        backing_mints=addresses.backing_mints,
        backing_amounts=(backing,),
        signature=tx.signature,
        slot=tx.slot,
        extra=dict(extra or {}),
    )


def analyze(
    tx: TransactionView,
    fetch_state: StateFetcher | None = None,
    *,
    classifier: RelevanceClassifier | None = None,
    addresses: ProtocolAddresses = MARINADE_MAINNET,
    price_source: PriceSource = PriceSource.RECOMPUTED,
) -> ValuationSnapshot | None:
    """
    Value mSOL at the point of `tx`.

    Returns None when the transaction did not move the price or has no block time.
    Raises TransportError from `fetch_state`, DecodeError for a malformed state account
    and ComputationError for inconsistent state.
    """
    if classifier is None:
        classifier = InstructionClassifier(addresses)

    verdict = classifier.classify(tx)
    if not verdict.relevant:
        logger.debug("%s not relevant: %s", tx.signature, verdict.reason)
        return None
    if tx.block_time is None:
        logger.warning("%s: block time missing, no valuation", tx.signature)
        return None

    state = verdict.state
    if state is None:
        if fetch_state is None:
            raise DecodeError("Transaction is relevant but no state account data is available")
        logger.debug("fetching state for slot %s", tx.slot)
        raw = fetch_state(tx.slot)
        logger.debug("state account fetched, %d bytes", len(raw))
        state = decode_state(raw)

    for issue in validate_protocol_state(state, warn_only=True):
        logger.warning("%s: %s", tx.signature, issue)

    backing = backing_lamports(state)
    price = price_for(state, price_source, backing)
    logger.debug("backing=%d price=%d (%s)", backing, price, price_source.value)

    extra = {
        "price_source": price_source.value,
        "lamports_per_token": lamports_per_token(state, backing) if state.msol_supply else None,
        "state_field_lamports_per_token": state_field_lamports_per_token(state),
        "relevance": verdict.reason,
    }
    return assemble_snapshot(verdict, state, tx, backing=backing, price=price, addresses=addresses, extra=extra)


def analyze_signature(
    signature: str,
    fetch_transaction: Callable[[str], TransactionView],
    fetch_account_bytes: Callable[[str, int | None], bytes],
    *,
    classifier: RelevanceClassifier | None = None,
    addresses: ProtocolAddresses = MARINADE_MAINNET,
    price_source: PriceSource = PriceSource.RECOMPUTED,
) -> ValuationSnapshot | None:
    """Fetch a transaction by signature and run `analyze`, reading state at or after its slot."""
    try:
        tx = fetch_transaction(signature)
    except TransactionDecodeError as ex:
        logger.warning("%s: transaction not decodable, treated as not relevant: %s", signature, ex)
        return None

    def fetch_state(min_slot: int | None) -> bytes:
        return fetch_account_bytes(addresses.state_address, min_slot)

    return analyze(tx, fetch_state, classifier=classifier, addresses=addresses, price_source=price_source)
