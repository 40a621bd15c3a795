"""
Multi-tier staking discounts.
"""
from enum import Enum

from lvt.records import UserAccount


class StakingTier(Enum):
    # (minimum stake, fee discount %, trading rebate %)
    PRO = (50_000, 30, 10)
    ADVANCED = (5_000, 20, 5)
    BASIC = (500, 10, 0)
    NONE = (0, 0, 0)

    @property
    def min_stake(self) -> int:
        return self.value[0]

    @property
    def fee_discount(self) -> int:
        return self.value[1]

    @property
    def trading_rebate(self) -> int:
        return self.value[2]


def tier_for(staked_amount: int) -> StakingTier:
    for tier in StakingTier:  # highest threshold first
        if staked_amount >= tier.min_stake:
            return tier
    return StakingTier.NONE


def tier_for_stake(staked_amount: int) -> tuple[int, int]:
    """Return (fee_discount, trading_rebate) for a staked amount."""
    tier = tier_for(staked_amount)
    return tier.fee_discount, tier.trading_rebate


def fee_discount_for_stake(staked_amount: int) -> int:
    return tier_for(staked_amount).fee_discount


def apply_tier(account: UserAccount) -> StakingTier:
    """Recompute an account's discount and rebate from its stake."""
    tier = tier_for(account.staked_amount)
    account.fee_discount = tier.fee_discount
    account.trading_rebate = tier.trading_rebate
    return tier
