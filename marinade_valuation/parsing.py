"""State-account decoding and RPC transaction parsing."""

import base64
import binascii
import struct
from dataclasses import fields
from typing import Any

import base58

from marinade_valuation.constants import DISCRIMINATOR_SIZE, STATE_LAYOUT
from marinade_valuation.discriminators import STATE_ACCOUNT_TAG
from marinade_valuation.errors import DecodeError, TransactionDecodeError
from marinade_valuation.formatters import as_int
from marinade_valuation.models import AccountDataEntry, Instruction, ProtocolState, TransactionView

STATE_STRUCT = struct.Struct("<" + "".join(fmt for _, fmt in STATE_LAYOUT))
STATE_FIELD_NAMES: tuple[str, ...] = tuple(name for name, _ in STATE_LAYOUT)
STATE_ACCOUNT_SIZE = DISCRIMINATOR_SIZE + STATE_STRUCT.size

_PUBKEY_FIELDS = frozenset(name for name, fmt in STATE_LAYOUT if fmt == "32s")
_KEPT_FIELDS = tuple(f.name for f in fields(ProtocolState))


def decode_state(data: bytes, *, check_discriminator: bool = True) -> ProtocolState:
    """
    Decode a Marinade `State` account.

    The buffer must hold at least the full fixed layout; trailing bytes (the account is
    allocated larger than the struct) are ignored. Any mismatch raises DecodeError and
    nothing is returned partially.
    """
    buf = bytes(data)
    if len(buf) < STATE_ACCOUNT_SIZE:
        raise DecodeError(f"State account data too short: {len(buf)} bytes, need {STATE_ACCOUNT_SIZE}")
    if check_discriminator and buf[:DISCRIMINATOR_SIZE] != STATE_ACCOUNT_TAG:
        raise DecodeError(
            f"Unexpected account discriminator {buf[:DISCRIMINATOR_SIZE].hex()} "
            f"(expected {STATE_ACCOUNT_TAG.hex()})"
        )
    try:
        values = STATE_STRUCT.unpack_from(buf, DISCRIMINATOR_SIZE)
    except struct.error as ex:
        raise DecodeError(f"Failed to unpack State account: {ex}") from ex

    raw = dict(zip(STATE_FIELD_NAMES, values))
    kept = {name: raw[name] for name in _KEPT_FIELDS}
    kept["msol_mint"] = base58.b58encode(kept["msol_mint"]).decode("ascii")
    return ProtocolState(**kept)


def encode_state(state: ProtocolState) -> bytes:
    """Serialize `state` into the fixed layout; fields not kept by ProtocolState are zero."""
    kept = {name: getattr(state, name) for name in _KEPT_FIELDS}
    mint = base58.b58decode(kept["msol_mint"])
    if len(mint) != 32:
        raise ValueError(f"msol_mint must decode to 32 bytes, got {len(mint)}")
    kept["msol_mint"] = mint

    values: list[Any] = []
    for name, fmt in STATE_LAYOUT:
        if name in kept:
            values.append(kept[name])
        elif name in _PUBKEY_FIELDS:
            values.append(bytes(32))
        elif fmt == "?":
            values.append(False)
        else:
            values.append(0)
    try:
        body = STATE_STRUCT.pack(*values)
    except struct.error as ex:
        raise ValueError(f"State field out of range: {ex}") from ex
    return STATE_ACCOUNT_TAG + body


def decode_account_data(value: Any) -> bytes:
    """Decode an RPC account `data` field (`[payload, "base64"]`, `[payload, "base58"]` or a bare base64 string)."""
    encoding = "base64"
    payload = value
    if isinstance(value, (list, tuple)):
        if not value:
            raise DecodeError("Empty account data field")
        payload = value[0]
        if len(value) > 1:
            encoding = str(value[1])
    if not isinstance(payload, str):
        raise DecodeError(f"Unsupported account data payload: {type(payload).__name__}")
    try:
        if encoding == "base64":
            return base64.b64decode(payload, validate=True)
        if encoding == "base58":
            return base58.b58decode(payload)
    except (binascii.Error, ValueError) as ex:
        raise DecodeError(f"Invalid {encoding} account data") from ex
    raise DecodeError(f"Unsupported account data encoding: {encoding}")


def _key_str(key: Any) -> str:
    # jsonParsed responses carry {"pubkey": ..., "signer": ..., "writable": ...}
    if isinstance(key, dict):
        return str(key["pubkey"])
    return str(key)


def _combined_account_keys(message: dict[str, Any], meta: dict[str, Any]) -> tuple[str, ...]:
    keys = [_key_str(k) for k in message.get("accountKeys") or []]
    loaded = meta.get("loadedAddresses") or {}
    keys.extend(str(k) for k in loaded.get("writable") or [])
    keys.extend(str(k) for k in loaded.get("readonly") or [])
    return tuple(keys)


def _parse_instruction(raw: dict[str, Any], account_keys: tuple[str, ...], parent_index: int | None) -> Instruction:
    if "programIdIndex" in raw:
        index = as_int(raw["programIdIndex"])
        program_id = account_keys[index] if 0 <= index < len(account_keys) else None
    else:
        program_id = raw.get("programId")

    data = raw.get("data")
    if data is None:
        # jsonParsed instructions of known programs carry `parsed` instead of raw data.
        return Instruction(program_id=program_id, data=b"", parent_index=parent_index)
    try:
        payload = base58.b58decode(data)
    except ValueError as ex:
        raise TransactionDecodeError(f"Instruction data is not valid base58: {data!r}") from ex
    return Instruction(program_id=program_id, data=payload, parent_index=parent_index)


def _parse_account_data_entries(entries: Any) -> tuple[AccountDataEntry, ...] | None:
    if entries is None:
        return None
    out = []
    for entry in entries:
        out.append(
            AccountDataEntry(
                account_index=as_int(entry.get("accountIndex"), default=-1),
                data=decode_account_data(entry.get("data")),
            )
        )
    return tuple(out)


def parse_rpc_transaction(result: dict[str, Any], *, signature: str | None = None) -> TransactionView:
    """
    Build a TransactionView from a `getTransaction` result (json or jsonParsed encoding).

    Raises TransactionDecodeError when the payload cannot be interpreted as a transaction.
    """
    if not isinstance(result, dict):
        raise TransactionDecodeError("Unexpected transaction format (expected JSON object)")
    transaction = result.get("transaction")
    if not isinstance(transaction, dict):
        # base58/base64 encodings return [payload, encoding]; only JSON shapes are supported.
        raise TransactionDecodeError("Transaction must be fetched with json or jsonParsed encoding")
    message = transaction.get("message")
    if not isinstance(message, dict):
        raise TransactionDecodeError("Transaction has no message")
    meta = result.get("meta") or {}

    try:
        account_keys = _combined_account_keys(message, meta)
        instructions = []
        for raw in message.get("instructions") or []:
            instructions.append(_parse_instruction(raw, account_keys, None))
        inner = []
        for group in meta.get("innerInstructions") or []:
            parent = as_int(group.get("index"))
            for raw in group.get("instructions") or []:
                inner.append(_parse_instruction(raw, account_keys, parent))
        pre_entries = _parse_account_data_entries(meta.get("preAccountData"))
        post_entries = _parse_account_data_entries(meta.get("postAccountData"))
        signatures = transaction.get("signatures") or []
        sig = signature or (str(signatures[0]) if signatures else "")
        slot = as_int(result.get("slot"))
        block_time = result.get("blockTime")
        if block_time is not None:
            block_time = as_int(block_time)
    except TransactionDecodeError:
        raise
    except (DecodeError, KeyError, TypeError, ValueError, AttributeError) as ex:
        raise TransactionDecodeError(f"Malformed transaction payload: {ex}") from ex

    return TransactionView(
        signature=sig,
        slot=slot,
        block_time=block_time,
        account_keys=account_keys,
        instructions=tuple(instructions),
        inner_instructions=tuple(inner),
        pre_account_data=pre_entries,
        post_account_data=post_entries,
        failed=meta.get("err") is not None,
    )
