import struct

import pytest

from marinade_valuation.constants import MARINADE_PROGRAM_ID, MARINADE_STATE_ADDRESS, MSOL_MINT, U64_MAX
from marinade_valuation.discriminators import STATE_ACCOUNT_TAG, instruction_tag
from marinade_valuation.errors import DecodeError, TransactionDecodeError
from marinade_valuation.parsing import (
    STATE_ACCOUNT_SIZE,
    decode_account_data,
    decode_state,
    encode_state,
    parse_rpc_transaction,
)


def test_state_layout_size_matches_onchain_schema():
    assert STATE_ACCOUNT_SIZE == 638


def test_decode_reproduces_encoded_state(make_state):
    state = make_state(
        total_active_balance=7_654_321_000_000_000,
        delayed_unstake_cooling_down=12_345,
        emergency_cooling_down=U64_MAX,
        available_reserve_balance=0,
        circulating_ticket_count=42,
        circulating_ticket_balance=1,
        msol_supply=6_000_000_000_000_000,
        msol_price=5_368_709_120,
        paused=True,
    )
    assert decode_state(encode_state(state)) == state


def test_decode_reads_fields_at_fixed_offsets(make_state):
    buf = bytearray(encode_state(make_state()))
    struct.pack_into("<Q", buf, 376, 111)  # total_active_balance
    struct.pack_into("<Q", buf, 496, 222)  # available_reserve_balance
    struct.pack_into("<Q", buf, 504, 333)  # msol_supply
    struct.pack_into("<Q", buf, 512, 444)  # msol_price
    struct.pack_into("<Q", buf, 528, 555)  # circulating_ticket_balance
    struct.pack_into("<Q", buf, 568, 666)  # emergency_cooling_down
    struct.pack_into("<Q", buf, 226, 777)  # delayed_unstake_cooling_down

    state = decode_state(bytes(buf))
    assert state.total_active_balance == 111
    assert state.available_reserve_balance == 222
    assert state.msol_supply == 333
    assert state.msol_price == 444
    assert state.circulating_ticket_balance == 555
    assert state.emergency_cooling_down == 666
    assert state.delayed_unstake_cooling_down == 777
    assert state.msol_mint == MSOL_MINT


def test_decode_ignores_trailing_allocation(state_bytes):
    raw = state_bytes()
    assert decode_state(raw + bytes(10_000 - len(raw))) == decode_state(raw)


def test_decode_rejects_every_truncation(state_bytes):
    raw = state_bytes()
    for cut in range(len(raw)):
        with pytest.raises(DecodeError):
            decode_state(raw[:cut])


def test_decode_rejects_wrong_discriminator(state_bytes):
    raw = state_bytes()
    bad = instruction_tag("deposit") + raw[8:]
    with pytest.raises(DecodeError, match="discriminator"):
        decode_state(bad)
    # Explicitly disabled check decodes the body anyway.
    assert decode_state(bad, check_discriminator=False).msol_supply == 50


def test_encode_writes_account_discriminator(state_bytes):
    assert state_bytes()[:8] == STATE_ACCOUNT_TAG


@pytest.mark.parametrize("value", [-1, U64_MAX + 1])
def test_encode_rejects_out_of_range_counters(make_state, value):
    with pytest.raises(ValueError):
        encode_state(make_state(msol_supply=value))


def test_decode_account_data_variants():
    assert decode_account_data(["AQID", "base64"]) == b"\x01\x02\x03"
    assert decode_account_data("AQID") == b"\x01\x02\x03"
    assert decode_account_data(["Ldp", "base58"]) == b"\x01\x02\x03"
    with pytest.raises(DecodeError):
        decode_account_data(["!!!", "base64"])
    with pytest.raises(DecodeError):
        decode_account_data(["AQID", "zstd"])
    with pytest.raises(DecodeError):
        decode_account_data(None)


def test_parse_rpc_transaction_resolves_lookup_table_programs(make_rpc_tx):
    deposit = instruction_tag("deposit") + (1_000_000).to_bytes(8, "little")
    # Program id sits in the loaded readonly addresses: index 3 = 2 static + 1 writable.
    raw = make_rpc_tx(
        [(3, deposit)],
        account_keys=("9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM", MARINADE_STATE_ADDRESS),
        loaded_writable=("7GgPYjS5Dza89wV6FpZ23kUJRG5vbQ1GM25ezspYFSoE",),
        loaded_readonly=(MARINADE_PROGRAM_ID,),
    )
    tx = parse_rpc_transaction(raw)

    assert tx.account_keys[-1] == MARINADE_PROGRAM_ID
    assert tx.instructions[0].program_id == MARINADE_PROGRAM_ID
    assert tx.instructions[0].data == deposit
    assert tx.instructions[0].tag == instruction_tag("deposit")
    assert tx.block_time == 1_700_000_000
    assert tx.slot == 250_000_000
    assert tx.failed is False
    assert tx.pre_account_data is None


def test_parse_rpc_transaction_inner_instructions_and_bad_index(make_rpc_tx):
    raw = make_rpc_tx([(9, b"\x02\x00")], inner={0: [(2, instruction_tag("claim"))]}, err={"InstructionError": [0, 1]})
    tx = parse_rpc_transaction(raw)

    assert tx.instructions[0].program_id is None
    assert tx.instructions[0].tag is None
    assert tx.inner_instructions[0].program_id == MARINADE_PROGRAM_ID
    assert tx.inner_instructions[0].parent_index == 0
    assert tx.failed is True


def test_parse_rpc_transaction_account_snapshots(make_rpc_tx, state_bytes):
    raw = make_rpc_tx([], pre_account_data={1: state_bytes()}, post_account_data={1: state_bytes(msol_supply=60)})
    tx = parse_rpc_transaction(raw)

    assert tx.pre_account_data[0].account_index == 1
    assert decode_state(tx.post_account_data[0].data).msol_supply == 60


def test_parse_rpc_transaction_json_parsed_keys(make_rpc_tx):
    raw = make_rpc_tx([(2, instruction_tag("claim"))])
    raw["transaction"]["message"]["accountKeys"] = [
        {"pubkey": k, "signer": i == 0, "writable": i < 2}
        for i, k in enumerate(raw["transaction"]["message"]["accountKeys"])
    ]
    tx = parse_rpc_transaction(raw)
    assert tx.instructions[0].program_id == MARINADE_PROGRAM_ID


@pytest.mark.parametrize(
    "mutate",
    [
        lambda r: r["transaction"]["message"]["instructions"][0].update(data="0OIl"),
        lambda r: r.update(transaction=["AQID", "base64"]),
        lambda r: r["transaction"].pop("message"),
        lambda r: r["meta"].update(postAccountData=[{"accountIndex": 1, "data": ["%%%", "base64"]}]),
        lambda r: r.update(slot="not-a-slot"),
        lambda r: r.update(blockTime="yesterday"),
        lambda r: r.update(slot=[250_000_000]),
    ],
)
def test_parse_rpc_transaction_malformed(make_rpc_tx, mutate):
    raw = make_rpc_tx([(2, instruction_tag("deposit"))])
    mutate(raw)
    with pytest.raises(TransactionDecodeError):
        parse_rpc_transaction(raw)


def test_parse_rpc_transaction_rejects_non_object():
    with pytest.raises(TransactionDecodeError):
        parse_rpc_transaction(None)
