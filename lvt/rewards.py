"""
Trade rewards, the rolling reward window, strategy boosts and claim gates.

The global reward multiplier is refreshed every time the rolling window
collects `reward_window` samples (50 by default): it becomes the integer
average of the window, optionally scaled by market-condition bonuses.
"""
from enum import IntEnum

from lvt.checked import checked_add, checked_mul, checked_sub_i64
from lvt.errors import InsufficientLiquidityForRewards, MinimumHoldingPeriodNotMet
from lvt.records import GlobalState, UserAccount

REWARD_WINDOW = 50
MIN_CLAIM_VOLUME = 100
CLAIM_COOLDOWN = 3600  # seconds

BONUS = 10
NO_BONUS = 1
FAST_EXECUTION_DELAY = 100
LOW_SLIPPAGE = 50
DEEP_LIQUIDITY = 1000
# 300 basis points
EXCESSIVE_SLIPPAGE = 300

HIGH_VOLATILITY = 1000
WIDE_ORDER_BOOK_GAP = 500
VOLATILITY_BONUS_PCT = 110
GAP_BONUS_PCT = 105


class StrategyType(IntEnum):
    MARKET_MAKING = 1
    ARBITRAGE = 2
    OPTIONS_HEDGING = 3


STRATEGY_BOOSTS = {
    StrategyType.MARKET_MAKING: 50,
    StrategyType.ARBITRAGE: 100,
    StrategyType.OPTIONS_HEDGING: 75,
}


def trade_bonuses(execution_delay: int, slippage: int,
                  liquidity_provided: int) -> tuple[int, int, int]:
    """Return (execution, slippage, liquidity) bonus factors."""
    execution_bonus = BONUS if execution_delay < FAST_EXECUTION_DELAY else NO_BONUS
    slippage_bonus = BONUS if slippage < LOW_SLIPPAGE else NO_BONUS
    liquidity_bonus = BONUS if liquidity_provided > DEEP_LIQUIDITY else NO_BONUS
    return execution_bonus, slippage_bonus, liquidity_bonus


def compute_trade_reward(trade_amount: int, execution_delay: int,
                         slippage: int, liquidity_provided: int) -> int:
    """
    Reward for a single trade.

    reward = amount * execution_bonus * slippage_bonus * liquidity_bonus,
    halved (truncating) when slippage exceeds 300.

    Raises:
        ArithmeticOverflow: if the product does not fit in u64
    """
    reward = trade_amount
    for bonus in trade_bonuses(execution_delay, slippage, liquidity_provided):
        reward = checked_mul(reward, bonus)

    if slippage > EXCESSIVE_SLIPPAGE:
        reward //= 2
    return reward


def compute_reward_multiplier(accrued: int, trade_count: int) -> int:
    """Per-user average reward per trade, 1 for an account with no trades."""
    if trade_count == 0:
        return 1
    return accrued // trade_count


def _add_sample(state: GlobalState, reward: int, window: int):
    state.reward_sum = checked_add(state.reward_sum, reward)
    state.reward_count = checked_add(state.reward_count, 1)
    if state.reward_count >= window:
        return state.reward_sum // state.reward_count
    return None


def _reset_window(state: GlobalState):
    state.reward_sum = 0
    state.reward_count = 0


def record_reward_sample(state: GlobalState, reward: int,
                         window: int = REWARD_WINDOW) -> bool:
    """
    Add a trade reward to the window.

    Returns True when the window completed and the multiplier was refreshed.
    """
    average = _add_sample(state, reward, window)
    if average is None:
        return False
    state.global_reward_multiplier = average
    _reset_window(state)
    return True


def roll_dynamic_reward(state: GlobalState, recent_reward: int,
                        market_volatility: int, order_book_gap: int,
                        window: int = REWARD_WINDOW) -> bool:
    """
    Add an externally aggregated reward sample to the window.

    On completion the multiplier is the window average scaled by a
    volatility bonus (110% above 1000) and an order-book gap bonus
    (105% above 500).
    """
    average = _add_sample(state, recent_reward, window)
    if average is None:
        return False

    volatility_bonus = VOLATILITY_BONUS_PCT if market_volatility > HIGH_VOLATILITY else 100
    gap_bonus = GAP_BONUS_PCT if order_book_gap > WIDE_ORDER_BOOK_GAP else 100
    scaled = checked_mul(checked_mul(average, volatility_bonus), gap_bonus)
    state.global_reward_multiplier = scaled // (100 * 100)
    _reset_window(state)
    return True


def strategy_boost(strategy_type: int) -> int:
    """Bonus for a strategy tag; unknown tags earn nothing."""
    try:
        return STRATEGY_BOOSTS[StrategyType(strategy_type)]
    except ValueError:
        return 0


def apply_strategy_boost(account: UserAccount, strategy_type: int) -> int:
    bonus = strategy_boost(strategy_type)
    if bonus:
        account.accrued_rewards = checked_add(account.accrued_rewards, bonus)
    return bonus


def check_claim(account: UserAccount, now: int):
    """
    Gate a reward claim.

    Raises:
        InsufficientLiquidityForRewards: cumulative volume below MIN_CLAIM_VOLUME
        MinimumHoldingPeriodNotMet: last claim less than CLAIM_COOLDOWN seconds ago
    """
    if account.cumulative_volume < MIN_CLAIM_VOLUME:
        raise InsufficientLiquidityForRewards(
            f"volume {account.cumulative_volume} < {MIN_CLAIM_VOLUME}"
        )
    elapsed = checked_sub_i64(now, account.last_claim_time)
    if elapsed < CLAIM_COOLDOWN:
        raise MinimumHoldingPeriodNotMet(f"{CLAIM_COOLDOWN - elapsed}s remaining")
