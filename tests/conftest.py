import base64

import base58
import pytest

from marinade_valuation.constants import MARINADE_PROGRAM_ID, MARINADE_STATE_ADDRESS, MSOL_MINT
from marinade_valuation.models import ProtocolState
from marinade_valuation.parsing import encode_state

DEPOSIT_SIGNATURE = "4uL95njGxnL7oPRBv6qb9ZKeWbTfKifbJgKe5zJ98FFyh7TJofUghQ2tcp4gR9fUHsX5exHayzcK9Zt1SR1Cwy7k"
PAYER = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


@pytest.fixture
def make_state():
    def _make(**overrides) -> ProtocolState:
        fields = {
            "msol_mint": MSOL_MINT,
            "total_active_balance": 100,
            "delayed_unstake_cooling_down": 0,
            "emergency_cooling_down": 20,
            "available_reserve_balance": 30,
            "circulating_ticket_count": 1,
            "circulating_ticket_balance": 10,
            "msol_supply": 50,
            "msol_price": 0,
            "paused": False,
        }
        fields.update(overrides)
        return ProtocolState(**fields)

    return _make


@pytest.fixture
def make_rpc_tx():
    """Build a getTransaction (json encoding) result around (program index, payload) instructions."""

    def _make(
        instructions,
        *,
        account_keys=(PAYER, MARINADE_STATE_ADDRESS, MARINADE_PROGRAM_ID),
        loaded_writable=(),
        loaded_readonly=(),
        inner=None,
        block_time=1_700_000_000,
        slot=250_000_000,
        err=None,
        pre_account_data=None,
        post_account_data=None,
        signature=DEPOSIT_SIGNATURE,
    ):
        meta = {
            "err": err,
            "fee": 5000,
            "preBalances": [],
            "postBalances": [],
            "loadedAddresses": {"writable": list(loaded_writable), "readonly": list(loaded_readonly)},
            "innerInstructions": [
                {
                    "index": parent,
                    "instructions": [
                        {"programIdIndex": idx, "accounts": [], "data": base58.b58encode(data).decode("ascii")}
                        for idx, data in group
                    ],
                }
                for parent, group in (inner or {}).items()
            ],
        }
        if pre_account_data is not None:
            meta["preAccountData"] = [
                {"accountIndex": idx, "data": [base64.b64encode(data).decode("ascii"), "base64"]}
                for idx, data in pre_account_data.items()
            ]
        if post_account_data is not None:
            meta["postAccountData"] = [
                {"accountIndex": idx, "data": [base64.b64encode(data).decode("ascii"), "base64"]}
                for idx, data in post_account_data.items()
            ]
        return {
            "slot": slot,
            "blockTime": block_time,
            "version": 0,
            "meta": meta,
            "transaction": {
                "signatures": [signature],
                "message": {
                    "accountKeys": list(account_keys),
                    "header": {
                        "numRequiredSignatures": 1,
                        "numReadonlySignedAccounts": 0,
                        "numReadonlyUnsignedAccounts": 1,
                    },
                    "recentBlockhash": "EkSnNWid2cvwEVnVx9aBqawnmiCNiDgp3gUdkDPTKN1N",
                    "instructions": [
                        {"programIdIndex": idx, "accounts": [0, 1], "data": base58.b58encode(data).decode("ascii")}
                        for idx, data in instructions
                    ],
                },
            },
        }

    return _make


@pytest.fixture
def state_bytes(make_state):
    def _bytes(**overrides) -> bytes:
        return encode_state(make_state(**overrides))

    return _bytes
