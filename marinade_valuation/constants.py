"""Constants and configuration for Marinade mSOL valuation."""

from decimal import Decimal

# Marinade liquid staking program and its single global state account (mainnet).
MARINADE_PROGRAM_ID = "MarBmsSgKXdrN1egZf5sqe1TMai9K1rChYNDJgjq7aD"
MARINADE_STATE_ADDRESS = "8szGkuLTAux9XMgZ2vtY39jVSowEcpBfFfD8hXSEqdGC"

MSOL_MINT = "mSoLzYCxHdYgdzU16g5QSh3i5K3z3KZK7ytfqcJm7So"
SOL_MINT = "So11111111111111111111111111111111111111112"

DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
RPC_URL_ENV_VAR = "SOLANA_RPC_URL"

# Anchor prefixes used to derive 8-byte discriminators.
ANCHOR_ACCOUNT_NAMESPACE = "account"
ANCHOR_INSTRUCTION_NAMESPACE = "global"
STATE_ACCOUNT_NAME = "State"
DISCRIMINATOR_SIZE = 8

# Anchor discriminator of `deposit`, as published in the program IDL.
DEPOSIT_TAG = bytes([0xF2, 0x23, 0xC6, 0x89, 0x52, 0xE1, 0xF2, 0xB6])

# Borsh layout of the Marinade `State` account after the discriminator.
# Field order and widths follow the on-chain schema; names prefixed with "_" are
# decoded for alignment only.
LIST_FIELDS: tuple[tuple[str, str], ...] = (
    ("account", "32s"),
    ("item_size", "I"),
    ("count", "I"),
    ("new_account", "32s"),
    ("copied_count", "I"),
)

STATE_LAYOUT: tuple[tuple[str, str], ...] = (
    ("msol_mint", "32s"),
    ("_admin_authority", "32s"),
    ("_operational_sol_account", "32s"),
    ("_treasury_msol_account", "32s"),
    ("_reserve_bump_seed", "B"),
    ("_msol_mint_authority_bump_seed", "B"),
    ("_rent_exempt_for_token_acc", "Q"),
    ("_reward_fee", "I"),
    # stake_system
    *((f"_stake_list_{name}", fmt) for name, fmt in LIST_FIELDS),
    ("delayed_unstake_cooling_down", "Q"),
    ("_stake_deposit_bump_seed", "B"),
    ("_stake_withdraw_bump_seed", "B"),
    ("_slots_for_stake_delta", "Q"),
    ("_last_stake_delta_epoch", "Q"),
    ("_min_stake", "Q"),
    ("_extra_stake_delta_runs", "I"),
    # validator_system
    *((f"_validator_list_{name}", fmt) for name, fmt in LIST_FIELDS),
    ("_manager_authority", "32s"),
    ("_total_validator_score", "I"),
    ("total_active_balance", "Q"),
    ("_auto_add_validator_enabled", "B"),
    # liq_pool
    ("_lp_mint", "32s"),
    ("_lp_mint_authority_bump_seed", "B"),
    ("_sol_leg_bump_seed", "B"),
    ("_msol_leg_authority_bump_seed", "B"),
    ("_msol_leg", "32s"),
    ("_lp_liquidity_target", "Q"),
    ("_lp_max_fee", "I"),
    ("_lp_min_fee", "I"),
    ("_treasury_cut", "I"),
    ("_lp_supply", "Q"),
    ("_lent_from_sol_leg", "Q"),
    ("_liquidity_sol_cap", "Q"),
    # accounting
    ("available_reserve_balance", "Q"),
    ("msol_supply", "Q"),
    ("msol_price", "Q"),
    ("circulating_ticket_count", "Q"),
    ("circulating_ticket_balance", "Q"),
    ("_lent_from_reserve", "Q"),
    ("_min_deposit", "Q"),
    ("_min_withdraw", "Q"),
    ("_staking_sol_cap", "Q"),
    ("emergency_cooling_down", "Q"),
    ("_pause_authority", "32s"),
    ("paused", "?"),
    ("_delayed_unstake_fee", "I"),
    ("_withdraw_stake_account_fee", "I"),
    ("_withdraw_stake_account_enabled", "?"),
    ("_last_stake_move_epoch", "Q"),
    ("_stake_moved", "Q"),
    ("_max_stake_moved_per_epoch", "I"),
)

# Every instruction of the Marinade program, in IDL order.
MARINADE_INSTRUCTIONS: tuple[str, ...] = (
    "initialize",
    "change_authority",
    "add_validator",
    "remove_validator",
    "set_validator_score",
    "config_validator_system",
    "deposit",
    "deposit_stake_account",
    "liquid_unstake",
    "add_liquidity",
    "remove_liquidity",
    "config_lp",
    "config_marinade",
    "order_unstake",
    "claim",
    "stake_reserve",
    "update_active",
    "update_deactivated",
    "deactivate_stake",
    "emergency_unstake",
    "partial_unstake",
    "merge_stakes",
    "redelegate",
    "pause",
    "resume",
    "withdraw_stake_account",
    "realloc_validator_list",
    "realloc_stake_list",
)

# Instructions whose execution marks a transaction as price-affecting.
STATE_MUTATING_INSTRUCTIONS: tuple[str, ...] = (
    "initialize",
    "add_validator",
    "remove_validator",
    "deposit",
    "deposit_stake_account",
    "liquid_unstake",
    "add_liquidity",
    "remove_liquidity",
    "order_unstake",
    "claim",
    "withdraw_stake_account",
)

# Maintenance cranks that also move active/reserve/cooling balances or mint fee shares,
# but are not registered. Transactions carrying only these are reported as not relevant.
UNREGISTERED_MUTATING_INSTRUCTIONS: tuple[str, ...] = (
    "stake_reserve",
    "update_active",
    "update_deactivated",
    "deactivate_stake",
    "emergency_unstake",
    "partial_unstake",
    "merge_stakes",
    "redelegate",
)

LAMPORTS_PER_SOL = 1_000_000_000
SOL_DECIMALS = Decimal(LAMPORTS_PER_SOL)
U64_MAX = 2**64 - 1
PRICE_DENOMINATOR = 2**32  # State.msol_price is a 32.32 fixed-point ratio
PRICE_DRIFT_TOLERANCE_BP = 100
TOTAL_BASIS_POINTS = 100_00

# Explorer URLs
SOLSCAN_BASE = "https://solscan.io"
