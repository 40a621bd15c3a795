"""
Fee rate adjustments.

The two automatic paths move the fee by a fixed step with no floor or
ceiling other than the u64 range. Only the governance path enforces the
[MIN_VOTE_FEE_RATE, MAX_VOTE_FEE_RATE] bounds.
"""
import logging

from lvt.checked import checked_add, checked_sub
from lvt.errors import InsufficientVotes, InvalidFeeRate
from lvt.records import GlobalState, GovernanceVote

logger = logging.getLogger(__name__)

INITIAL_FEE_RATE = 1000
MIN_VOTE_FEE_RATE = 500
MAX_VOTE_FEE_RATE = 5000

LIQUIDITY_FEE_THRESHOLD = 1_000_000
LIQUIDITY_FEE_STEP = 100
VOLATILITY_FEE_THRESHOLD = 1000
VOLATILITY_FEE_STEP = 50


def _step(state: GlobalState, raise_fee: bool, step: int, now: int):
    if raise_fee:
        state.fee_rate = checked_add(state.fee_rate, step)
    else:
        state.fee_rate = checked_sub(state.fee_rate, step)
    state.last_fee_update = now


def adjust_for_liquidity(state: GlobalState, now: int):
    """Raise the fee while liquidity is thin, lower it once liquidity is deep."""
    thin = state.total_liquidity < LIQUIDITY_FEE_THRESHOLD
    _step(state, thin, LIQUIDITY_FEE_STEP, now)
    logger.debug(f"Liquidity {state.total_liquidity}: fee_rate -> {state.fee_rate}")


def adjust_for_volatility(state: GlobalState, current_volatility: int, now: int):
    volatile = current_volatility > VOLATILITY_FEE_THRESHOLD
    _step(state, volatile, VOLATILITY_FEE_STEP, now)
    logger.debug(f"Volatility {current_volatility}: fee_rate -> {state.fee_rate}")


def apply_fee_vote(state: GlobalState, governance: GovernanceVote, new_fee_rate: int, now: int):
    """
    Set the fee rate once governance has enough votes.

    Raises:
        InsufficientVotes: vote_count below required_votes
        InvalidFeeRate: new_fee_rate outside the governance bounds
    """
    if not governance.quorum_reached:
        raise InsufficientVotes(f"{governance.vote_count}/{governance.required_votes} votes")
    if not MIN_VOTE_FEE_RATE <= new_fee_rate <= MAX_VOTE_FEE_RATE:
        raise InvalidFeeRate(f"{new_fee_rate} not in [{MIN_VOTE_FEE_RATE}, {MAX_VOTE_FEE_RATE}]")

    state.fee_rate = new_fee_rate
    state.last_fee_update = now
    governance.vote_count = 0


def cast_vote(governance: GovernanceVote):
    governance.vote_count = checked_add(governance.vote_count, 1)
