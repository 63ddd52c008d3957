"""CLI and main logic."""

import argparse
import json
import logging
import os
import sys
from functools import partial
from pathlib import Path

from tqdm import tqdm

from marinade_valuation.blockchain import (
    DEFAULT_TIMEOUT,
    fetch_account_bytes,
    fetch_transaction,
    validate_address,
)
from marinade_valuation.classifier import STRATEGY_BALANCE_DIFF, STRATEGY_INSTRUCTIONS, build_classifier
from marinade_valuation.console import print_not_applicable, print_snapshot
from marinade_valuation.constants import DEFAULT_RPC_URL, MARINADE_PROGRAM_ID, MARINADE_STATE_ADDRESS, RPC_URL_ENV_VAR
from marinade_valuation.discriminators import STATE_MUTATING_REGISTRY, registry_gaps
from marinade_valuation.errors import TransactionDecodeError, ValuationError
from marinade_valuation.exchange_rate import PriceSource
from marinade_valuation.models import MARINADE_MAINNET, ProtocolAddresses, TransactionView, ValuationSnapshot
from marinade_valuation.parsing import parse_rpc_transaction
from marinade_valuation.valuation import analyze, analyze_signature

logger = logging.getLogger(__name__)


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments."""
    p = argparse.ArgumentParser(description="Value mSOL at the point of Marinade state-changing transactions.")
    p.add_argument("signatures", nargs="*", help="Transaction signatures to analyze.")
    p.add_argument(
        "--rpc-url",
        default=None,
        help=f"Solana RPC URL. Defaults to ${RPC_URL_ENV_VAR}, then {DEFAULT_RPC_URL}.",
    )
    p.add_argument(
        "--tx-file",
        type=Path,
        action="append",
        default=[],
        help="getTransaction result saved as JSON (repeatable). State is still fetched over RPC when needed.",
    )
    p.add_argument(
        "--strategy",
        choices=[STRATEGY_INSTRUCTIONS, STRATEGY_BALANCE_DIFF],
        default=STRATEGY_INSTRUCTIONS,
        help="Relevance strategy: instruction tags (default) or pre/post state diff.",
    )
    p.add_argument(
        "--price-source",
        choices=[s.value for s in PriceSource],
        default=PriceSource.RECOMPUTED.value,
        help="Recompute the price from balances (default) or read the state's msol_price field.",
    )
    p.add_argument("--program", default=MARINADE_PROGRAM_ID, help="Marinade program id.")
    p.add_argument("--state-account", default=MARINADE_STATE_ADDRESS, help="Marinade state account address.")
    p.add_argument("--json", action="store_true", help="Print results as JSON lines.")
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return p.parse_args(argv)


def _load_tx_file(path: Path) -> TransactionView:
    """Parse a saved getTransaction result, with or without the JSON-RPC envelope."""
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict) and "transaction" not in payload and "result" in payload:
        payload = payload["result"]
    return parse_rpc_transaction(payload)


def _emit(signature: str, snapshot: ValuationSnapshot | None, *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(snapshot.to_dict() if snapshot else {"signature": signature, "valuation": None}))
    elif snapshot is None:
        print_not_applicable(signature)
    else:
        print_snapshot(snapshot)


def main(argv: list[str]) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if not args.signatures and not args.tx_file:
        print("Error: provide at least one signature or --tx-file.", file=sys.stderr)
        return 2

    rpc_url = args.rpc_url or os.getenv(RPC_URL_ENV_VAR) or DEFAULT_RPC_URL
    try:
        addresses = ProtocolAddresses(
            program_id=validate_address(args.program),
            state_address=validate_address(args.state_account),
            token_mint=MARINADE_MAINNET.token_mint,
            backing_mints=MARINADE_MAINNET.backing_mints,
        )
    except ValuationError as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return 2

    gaps = registry_gaps(STATE_MUTATING_REGISTRY)
    if gaps and args.strategy == STRATEGY_INSTRUCTIONS:
        logger.info("instructions not treated as price-affecting: %s", ", ".join(gaps))

    classifier = build_classifier(args.strategy, addresses)
    price_source = PriceSource(args.price_source)
    get_tx = partial(fetch_transaction, rpc_url, timeout_s=DEFAULT_TIMEOUT)
    get_account = partial(fetch_account_bytes, rpc_url, timeout_s=DEFAULT_TIMEOUT)

    def fetch_state(min_slot: int | None) -> bytes:
        return get_account(addresses.state_address, min_slot)

    failures = 0
    jobs = [("file", str(path)) for path in args.tx_file] + [("rpc", sig) for sig in args.signatures]
    with tqdm(jobs, desc="🔍 Analyzing transactions", unit="tx", file=sys.stderr, disable=len(jobs) < 2) as pbar:
        for kind, ident in pbar:
            try:
                if kind == "file":
                    try:
                        tx = _load_tx_file(Path(ident))
                    except TransactionDecodeError as ex:
                        tqdm.write(f"⚠️  {ident}: not decodable, treated as not relevant ({ex})", file=sys.stderr)
                        _emit(ident, None, as_json=args.json)
                        continue
                    label = tx.signature or ident
                    snapshot = analyze(
                        tx, fetch_state, classifier=classifier, addresses=addresses, price_source=price_source
                    )
                else:
                    label = ident
                    snapshot = analyze_signature(
                        ident,
                        get_tx,
                        get_account,
                        classifier=classifier,
                        addresses=addresses,
                        price_source=price_source,
                    )
            except (ValuationError, OSError, json.JSONDecodeError) as ex:
                failures += 1
                tqdm.write(f"⚠️  {ident}: {type(ex).__name__}: {ex}", file=sys.stderr)
                continue
            _emit(label, snapshot, as_json=args.json)

    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
