"""
Pure reward, tier and checked-arithmetic tests.
"""
import pytest
from lvt.checked import (
    I64_MAX,
    U64_MAX,
    checked_add,
    checked_add_i64,
    checked_mul,
    checked_sub,
    require_i64,
    require_u64,
)
from lvt.errors import (
    ArithmeticOverflow,
    ArithmeticUnderflow,
    InsufficientLiquidityForRewards,
    InvalidInstruction,
    MinimumHoldingPeriodNotMet,
)
from lvt.records import GlobalState, UserAccount
from lvt.rewards import (
    StrategyType,
    check_claim,
    compute_reward_multiplier,
    compute_trade_reward,
    record_reward_sample,
    roll_dynamic_reward,
    strategy_boost,
    trade_bonuses,
)
from lvt.tiers import StakingTier, apply_tier, fee_discount_for_stake, tier_for, tier_for_stake


class TestCheckedArithmetic:
    def test_u64_bounds(self):
        assert checked_add(U64_MAX - 1, 1) == U64_MAX
        with pytest.raises(ArithmeticOverflow):
            checked_add(U64_MAX, 1)
        with pytest.raises(ArithmeticUnderflow):
            checked_sub(0, 1)
        with pytest.raises(ArithmeticOverflow):
            checked_mul(2**32, 2**32)

    def test_i64_bounds(self):
        assert checked_add_i64(-5, 3) == -2
        with pytest.raises(ArithmeticOverflow):
            checked_add_i64(I64_MAX, 1)

    def test_parameter_validation(self):
        assert require_u64('x', 0) == 0
        assert require_i64('t', -1) == -1
        for bad in (-1, U64_MAX + 1, True, 1.5, "10"):
            with pytest.raises(InvalidInstruction):
                require_u64('x', bad)


class TestTiers:
    @pytest.mark.parametrize("staked,expected", [
        (0, (0, 0)),
        (499, (0, 0)),
        (500, (10, 0)),
        (5_000, (20, 5)),
        (49_999, (20, 5)),
        (50_000, (30, 10)),
        (U64_MAX, (30, 10)),
    ])
    def test_tier_table(self, staked, expected):
        assert tier_for_stake(staked) == expected
        assert fee_discount_for_stake(staked) == expected[0]

    def test_apply_tier_downgrades(self):
        account = UserAccount({'staked_amount': 100, 'fee_discount': 30, 'trading_rebate': 10})
        assert apply_tier(account) is StakingTier.NONE
        assert (account.fee_discount, account.trading_rebate) == (0, 0)

    def test_tier_names(self):
        assert tier_for(5_000) is StakingTier.ADVANCED
        assert StakingTier.PRO.min_stake == 50_000


class TestTradeReward:
    def test_bonus_thresholds(self):
        assert trade_bonuses(99, 49, 1001) == (10, 10, 10)
        assert trade_bonuses(100, 50, 1000) == (1, 1, 1)
        assert trade_bonuses(-5, 0, 0) == (10, 10, 1)

    def test_reward_formula(self):
        assert compute_trade_reward(1000, 50, 10, 2000) == 1_000_000
        assert compute_trade_reward(7, 100, 300, 0) == 7
        assert compute_trade_reward(7, 100, 301, 0) == 3
        assert compute_trade_reward(0, 0, 0, 5000) == 0

    def test_reward_overflow(self):
        with pytest.raises(ArithmeticOverflow):
            compute_trade_reward(U64_MAX // 100, 0, 0, 5000)

    def test_reward_multiplier_helper(self):
        assert compute_reward_multiplier(500, 0) == 1
        assert compute_reward_multiplier(500, 3) == 166


class TestRewardWindow:
    def test_record_sample_rolls(self):
        state = GlobalState()
        for _ in range(49):
            assert record_reward_sample(state, 3) is False
        assert record_reward_sample(state, 53) is True
        assert state.global_reward_multiplier == (49 * 3 + 53) // 50
        assert (state.reward_sum, state.reward_count) == (0, 0)

    def test_custom_window(self):
        state = GlobalState()
        record_reward_sample(state, 10, window=2)
        assert record_reward_sample(state, 21, window=2) is True
        assert state.global_reward_multiplier == 15

    def test_dynamic_volatility_only(self):
        state = GlobalState({'reward_sum': 49 * 200, 'reward_count': 49})
        assert roll_dynamic_reward(state, 200, 1001, 0) is True
        assert state.global_reward_multiplier == 220

    def test_dynamic_gap_only(self):
        state = GlobalState({'reward_sum': 49 * 200, 'reward_count': 49})
        roll_dynamic_reward(state, 200, 0, 501)
        assert state.global_reward_multiplier == 210

    def test_dynamic_window_open_leaves_multiplier(self):
        state = GlobalState({'global_reward_multiplier': 7})
        assert roll_dynamic_reward(state, 10**6, 5000, 5000) is False
        assert state.global_reward_multiplier == 7


class TestStrategyAndClaims:
    def test_strategy_boosts(self):
        assert strategy_boost(StrategyType.MARKET_MAKING) == 50
        assert strategy_boost(2) == 100
        assert strategy_boost(3) == 75
        assert strategy_boost(9) == 0

    def test_claim_gates(self):
        account = UserAccount({'cumulative_volume': 100, 'last_claim_time': 1000})
        check_claim(account, 4600)
        with pytest.raises(MinimumHoldingPeriodNotMet):
            check_claim(account, 4599)

        account.cumulative_volume = 99
        with pytest.raises(InsufficientLiquidityForRewards):
            check_claim(account, 10**9)
