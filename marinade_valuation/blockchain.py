"""Solana JSON-RPC transport: transactions and account data by identifier."""

import logging
from typing import Any

import requests
from solders.pubkey import Pubkey
from solders.signature import Signature

from marinade_valuation.errors import NotFoundError, TransactionDecodeError, TransportError
from marinade_valuation.models import TransactionView
from marinade_valuation.parsing import decode_account_data, parse_rpc_transaction

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
MAX_SUPPORTED_TRANSACTION_VERSION = 0

# JSON-RPC error codes that mean "this transaction cannot be represented", not a transport failure.
UNSUPPORTED_TRANSACTION_VERSION_CODE = -32015


def validate_signature(signature: str) -> str:
    """Check a base58 transaction signature, returning it normalized."""
    try:
        return str(Signature.from_string(signature.strip()))
    except ValueError as ex:
        raise TransportError(f"Invalid transaction signature: {signature!r}") from ex


def validate_address(address: str) -> str:
    """Check a base58 account address, returning it normalized."""
    try:
        return str(Pubkey.from_string(address.strip()))
    except ValueError as ex:
        raise TransportError(f"Invalid account address: {address!r}") from ex


def rpc_request(
    rpc_url: str,
    method: str,
    params: list[Any],
    *,
    timeout_s: int = DEFAULT_TIMEOUT,
    session: requests.Session | None = None,
) -> Any:
    """Issue one JSON-RPC call and return its `result`."""
    payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
    http = session or requests
    try:
        resp = http.post(rpc_url, json=payload, timeout=timeout_s)
        resp.raise_for_status()
        body = resp.json()
    except requests.RequestException as ex:
        raise TransportError(f"{method} request to {rpc_url} failed: {ex}") from ex
    except ValueError as ex:
        raise TransportError(f"{method} returned a non-JSON response") from ex

    if not isinstance(body, dict):
        raise TransportError(f"{method} returned an unexpected response: {body!r}")
    error = body.get("error")
    if error:
        code = error.get("code") if isinstance(error, dict) else None
        message = error.get("message") if isinstance(error, dict) else str(error)
        if code == UNSUPPORTED_TRANSACTION_VERSION_CODE:
            raise TransactionDecodeError(f"{method}: {message}")
        raise TransportError(f"RPC error from {method}: {message} (code={code})")
    return body.get("result")


def fetch_transaction(
    rpc_url: str,
    signature: str,
    *,
    commitment: str = "confirmed",
    timeout_s: int = DEFAULT_TIMEOUT,
    session: requests.Session | None = None,
) -> TransactionView:
    """Fetch a confirmed transaction (legacy or v0) and parse it."""
    sig = validate_signature(signature)
    logger.debug("fetching transaction %s", sig)
    result = rpc_request(
        rpc_url,
        "getTransaction",
        [
            sig,
            {
                "encoding": "json",
                "commitment": commitment,
                "maxSupportedTransactionVersion": MAX_SUPPORTED_TRANSACTION_VERSION,
            },
        ],
        timeout_s=timeout_s,
        session=session,
    )
    if result is None:
        raise NotFoundError(f"Transaction {sig} not found")
    return parse_rpc_transaction(result, signature=sig)


def fetch_account_bytes(
    rpc_url: str,
    address: str,
    min_slot: int | None = None,
    *,
    commitment: str = "processed",
    timeout_s: int = DEFAULT_TIMEOUT,
    session: requests.Session | None = None,
) -> bytes:
    """Fetch raw account data, optionally from a node that has reached `min_slot`."""
    addr = validate_address(address)
    config: dict[str, Any] = {"encoding": "base64", "commitment": commitment}
    if min_slot is not None:
        config["minContextSlot"] = int(min_slot)
    logger.debug("fetching account %s (min_slot=%s)", addr, min_slot)

    result = rpc_request(rpc_url, "getAccountInfo", [addr, config], timeout_s=timeout_s, session=session)
    value = (result or {}).get("value")
    if value is None:
        raise NotFoundError(f"Account {addr} not found")
    data = decode_account_data(value.get("data"))
    logger.debug("account %s: %d bytes at context slot %s", addr, len(data), (result.get("context") or {}).get("slot"))
    return data
