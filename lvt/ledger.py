"""
LVT ledger: applies instructions to the record store.

Every instruction runs as one transition. Records are read through a staged
transaction, mutated in memory and written back only if every check and
every checked arithmetic step succeeds. Any ValidationError aborts the
transition with no partial write.
"""
import inspect
import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Optional

from lvt import core
from lvt.checked import (
    checked_add,
    checked_add_i64,
    require_i64,
    require_u64,
    require_u8,
)
from lvt.core import Instruction
from lvt.db import DB
from lvt.errors import (
    AccountExists,
    AccountNotFound,
    AlreadyInitialized,
    InvalidDelay,
    InvalidInstruction,
    InvalidSignature,
    NotInitialized,
    ValidationError,
    WashTradingAttempt,
)
from lvt.fees import (
    INITIAL_FEE_RATE,
    adjust_for_liquidity,
    adjust_for_volatility,
    apply_fee_vote,
    cast_vote,
)
from lvt.lending import issue_loan
from lvt.records import (
    IDENTITY_LEN,
    MAX_TRADE_PAIR_LEN,
    GlobalState,
    GovernanceVote,
    LeaderboardEntry,
    Loan,
    LPAccount,
    TradeRecord,
    UserAccount,
)
from lvt.rewards import (
    apply_strategy_boost,
    check_claim,
    compute_trade_reward,
    record_reward_sample,
    roll_dynamic_reward,
)
from lvt.store import RecordStore, StagedState
from lvt.tiers import apply_tier

logger = logging.getLogger(__name__)

BATCH_DELAY_MODULUS = 10


def wall_clock() -> int:
    return int(time.time())


def clock_modulus_delay(now: int, modulus: int = BATCH_DELAY_MODULUS) -> int:
    """
    Batch delay derived from the clock.

    Deterministic and predictable by anyone who knows the timestamp; the
    value is advisory only.
    """
    return now % modulus


def _require_identity(name: str, value) -> bytes:
    if not isinstance(value, (bytes, bytearray)) or len(value) != IDENTITY_LEN:
        raise InvalidInstruction(f"{name} must be a {IDENTITY_LEN}-byte identity")
    return bytes(value)


class Ledger:
    def __init__(self, db_path: str = None, db: DB = None,
                 clock: Callable[[], int] = None,
                 delay_provider: Callable[[int], int] = None,
                 monitor=None):
        if db:
            self.db = db
        elif db_path:
            self.db = DB(db_path)
        else:
            raise ValueError("Either db_path or a DB object must be provided.")

        self.clock = clock or wall_clock
        self.delay_provider = delay_provider or clock_modulus_delay
        self.store = RecordStore(self.db)
        self.monitor = monitor
        self._lock = threading.Lock()

        self._handlers = {
            core.INITIALIZE: self.initialize,
            core.OPEN_ACCOUNT: self.open_account,
            core.RECORD_TRADE: self.record_trade,
            core.RECORD_LIQUIDITY_DEPOSIT: self.record_liquidity_deposit,
            core.STAKE_WITH_LOCKUP: self.stake_with_lockup,
            core.CLAIM_REWARDS: self.claim_rewards,
            core.ADJUST_FEE_DYNAMICALLY: self.adjust_fee_dynamically,
            core.AUTO_ADJUST_FEE: self.auto_adjust_fee,
            core.BATCH_TRADING_ORDERS_WITH_DELAY: self.batch_trading_orders_with_delay,
            core.CAST_VOTE: self.cast_vote,
            core.UPDATE_FEE_STRUCTURE_BY_VOTE: self.update_fee_structure_by_vote,
            core.UPDATE_DYNAMIC_REWARD: self.update_dynamic_reward,
            core.UPDATE_LEADERBOARD: self.update_leaderboard,
            core.REWARD_STRATEGY_BOOST: self.reward_strategy_boost,
            core.BATCH_PROCESS_TRADES: self.batch_process_trades,
            core.BORROW_AGAINST_LVT: self.borrow_against_lvt,
        }

    # ==========================================================================
    # DISPATCH
    # ==========================================================================

    def execute(self, instruction: Instruction, require_signature: bool = False):
        """
        Apply an instruction and return the handler's result.

        The caller identity is trusted as given unless require_signature is
        set, in which case the instruction must carry a valid signature by
        its caller.
        """
        handler = self._handlers.get(instruction.name)
        if handler is None:
            raise InvalidInstruction(f"Unknown instruction: {instruction.name}")

        if require_signature and not instruction.verify_signature():
            raise InvalidSignature(instruction.name)

        try:
            inspect.signature(handler).bind(instruction.caller, **instruction.params)
        except TypeError as e:
            raise InvalidInstruction(f"{instruction.name}: {e}") from e

        return handler(instruction.caller, **instruction.params)

    @contextmanager
    def _transition(self, name: str):
        """Serialize, stage and commit one instruction."""
        start = time.perf_counter()
        status = 'rejected'
        with self._lock:
            try:
                with self.store.transaction() as txn:
                    yield txn
                status = 'ok'
            except ValidationError as e:
                logger.warning(f"{name} rejected: {e}")
                raise
            except Exception:
                status = 'error'
                logger.exception(f"{name} failed")
                raise
            finally:
                if self.monitor is not None:
                    self.monitor.record_instruction(name, status, time.perf_counter() - start)

    def now(self) -> int:
        return require_i64('clock', int(self.clock()))

    # ==========================================================================
    # STATE HELPERS
    # ==========================================================================

    @staticmethod
    def _require_global(txn: StagedState) -> GlobalState:
        state = txn.get_global()
        if state is None:
            raise NotInitialized()
        return state

    @staticmethod
    def _require_governance(txn: StagedState) -> GovernanceVote:
        governance = txn.get_governance()
        if governance is None:
            raise NotInitialized()
        return governance

    @staticmethod
    def _require_user(txn: StagedState, owner: bytes) -> UserAccount:
        owner = _require_identity('caller', owner)
        account = txn.get_user(owner)
        if account is None:
            raise AccountNotFound(owner.hex())
        return account

    def get_global_state(self) -> Optional[GlobalState]:
        return self.store.get_global()

    def get_governance(self) -> Optional[GovernanceVote]:
        return self.store.get_governance()

    def get_user(self, owner: bytes) -> Optional[UserAccount]:
        return self.store.get_user(owner)

    def get_lp(self, owner: bytes) -> Optional[LPAccount]:
        return self.store.get_lp(owner)

    def get_leaderboard(self, user: bytes) -> Optional[LeaderboardEntry]:
        return self.store.get_leaderboard(user)

    # ==========================================================================
    # SETUP
    # ==========================================================================

    def initialize(self, caller: bytes, treasury: bytes, required_votes: int = 1) -> GlobalState:
        """Create the global state and governance records."""
        with self._transition(core.INITIALIZE) as txn:
            treasury = _require_identity('treasury', treasury)
            required_votes = require_u64('required_votes', required_votes)
            if txn.get_global() is not None:
                raise AlreadyInitialized()

            state = GlobalState({
                'fee_rate': INITIAL_FEE_RATE,
                'last_fee_update': self.now(),
                'treasury': treasury,
                'global_reward_multiplier': 1,
            })
            txn.put_global(state)
            txn.put_governance(GovernanceVote({'vote_count': 0, 'required_votes': required_votes}))

        logger.info(f"Protocol initialized: fee_rate={state.fee_rate}, treasury={treasury.hex()[:8]}")
        return state

    def open_account(self, caller: bytes, is_institutional: bool = False) -> UserAccount:
        with self._transition(core.OPEN_ACCOUNT) as txn:
            owner = _require_identity('caller', caller)
            if txn.get_user(owner) is not None:
                raise AccountExists(owner.hex())
            account = UserAccount({'owner': owner, 'is_institutional': bool(is_institutional)})
            apply_tier(account)
            txn.put_user(account)

        logger.info(f"Opened account {owner.hex()[:8]} (institutional={account.is_institutional})")
        return account

    # ==========================================================================
    # TRADING
    # ==========================================================================

    def record_trade(self, caller: bytes, trade_amount: int, trade_timestamp: int,
                     trade_pair: str, execution_delay: int, slippage: int,
                     liquidity_provided: int, counterparty: bytes) -> TradeRecord:
        """
        Record a trade, accrue its reward and roll the reward window.

        The wash-trade check only compares the caller's own account owner with
        the supplied counterparty; it cannot detect a second wallet held by the
        same party.
        """
        with self._transition(core.RECORD_TRADE) as txn:
            trade_amount = require_u64('trade_amount', trade_amount)
            trade_timestamp = require_i64('trade_timestamp', trade_timestamp)
            execution_delay = require_i64('execution_delay', execution_delay)
            slippage = require_u64('slippage', slippage)
            liquidity_provided = require_u64('liquidity_provided', liquidity_provided)
            counterparty = _require_identity('counterparty', counterparty)
            if not isinstance(trade_pair, str) or len(trade_pair.encode('utf-8')) > MAX_TRADE_PAIR_LEN:
                raise InvalidInstruction(f"trade_pair must be a string of at most {MAX_TRADE_PAIR_LEN} bytes")

            state = self._require_global(txn)
            account = self._require_user(txn, caller)

            if account.owner == counterparty:
                raise WashTradingAttempt(account.owner.hex())

            state.total_trades = checked_add(state.total_trades, 1)
            state.total_liquidity = checked_add(state.total_liquidity, trade_amount)

            account.trade_count = checked_add(account.trade_count, 1)
            account.cumulative_volume = checked_add(account.cumulative_volume, trade_amount)

            trade = TradeRecord({
                'user': account.owner,
                'trade_amount': trade_amount,
                'trade_timestamp': trade_timestamp,
                'trade_pair': trade_pair,
                'execution_delay': execution_delay,
                'slippage': slippage,
                'liquidity_provided': liquidity_provided,
            })
            txn.create_trade(state.total_trades, trade)

            reward = compute_trade_reward(trade_amount, execution_delay, slippage, liquidity_provided)
            account.accrued_rewards = checked_add(account.accrued_rewards, reward)

            rolled = record_reward_sample(state, reward)
            account.reward_multiplier = state.global_reward_multiplier

            txn.put_global(state)
            txn.put_user(account)

        logger.debug(f"Trade #{state.total_trades} {trade_pair} amount={trade_amount} reward={reward}")
        if rolled:
            logger.info(f"Reward window complete: multiplier={state.global_reward_multiplier}")
        return trade

    def record_liquidity_deposit(self, caller: bytes, deposit_amount: int,
                                 deposit_timestamp: int) -> LPAccount:
        with self._transition(core.RECORD_LIQUIDITY_DEPOSIT) as txn:
            owner = _require_identity('caller', caller)
            deposit_amount = require_u64('deposit_amount', deposit_amount)
            deposit_timestamp = require_i64('deposit_timestamp', deposit_timestamp)

            lp = txn.get_lp(owner) or LPAccount({'owner': owner})
            lp.total_deposit = checked_add(lp.total_deposit, deposit_amount)
            lp.last_deposit = deposit_timestamp
            txn.put_lp(lp)

        return lp

    def update_leaderboard(self, caller: bytes, trade_volume: int, trade_count: int) -> LeaderboardEntry:
        with self._transition(core.UPDATE_LEADERBOARD) as txn:
            user = _require_identity('caller', caller)
            trade_volume = require_u64('trade_volume', trade_volume)
            trade_count = require_u64('trade_count', trade_count)

            entry = txn.get_leaderboard(user) or LeaderboardEntry({'user': user})
            entry.trade_volume = checked_add(entry.trade_volume, trade_volume)
            entry.trade_count = checked_add(entry.trade_count, trade_count)
            entry.last_update = self.now()
            txn.put_leaderboard(entry)

        return entry

    # ==========================================================================
    # STAKING, REWARDS, LENDING
    # ==========================================================================

    def stake_with_lockup(self, caller: bytes, amount: int, lockup_duration: int) -> UserAccount:
        """Add stake, optionally lock it, and refresh the staking tier."""
        with self._transition(core.STAKE_WITH_LOCKUP) as txn:
            owner = _require_identity('caller', caller)
            amount = require_u64('amount', amount)
            lockup_duration = require_i64('lockup_duration', lockup_duration)

            account = txn.get_user(owner) or UserAccount({'owner': owner})
            account.staked_amount = checked_add(account.staked_amount, amount)
            if lockup_duration > 0:
                account.lockup_end = checked_add_i64(self.now(), lockup_duration)
            tier = apply_tier(account)
            txn.put_user(account)

        logger.info(f"{owner.hex()[:8]} staked {amount} (total {account.staked_amount}, tier {tier.name})")
        return account

    def claim_rewards(self, caller: bytes) -> int:
        """
        Authorize a reward claim and reset the accrued balance.

        Returns the amount to be paid out from the treasury; the transfer
        itself happens outside the ledger.
        """
        with self._transition(core.CLAIM_REWARDS) as txn:
            account = self._require_user(txn, caller)
            now = self.now()
            check_claim(account, now)

            claimed = account.accrued_rewards
            account.accrued_rewards = 0
            account.last_claim_time = now
            txn.put_user(account)

        logger.info(f"{account.owner.hex()[:8]} claimed {claimed} rewards")
        return claimed

    def reward_strategy_boost(self, caller: bytes, strategy_type: int) -> int:
        with self._transition(core.REWARD_STRATEGY_BOOST) as txn:
            strategy_type = require_u8('strategy_type', strategy_type)
            account = self._require_user(txn, caller)
            bonus = apply_strategy_boost(account, strategy_type)
            if bonus:
                txn.put_user(account)

        return bonus

    def update_dynamic_reward(self, caller: bytes, recent_reward: int,
                              market_volatility: int, order_book_gap: int) -> bool:
        with self._transition(core.UPDATE_DYNAMIC_REWARD) as txn:
            recent_reward = require_u64('recent_reward', recent_reward)
            market_volatility = require_u64('market_volatility', market_volatility)
            order_book_gap = require_u64('order_book_gap', order_book_gap)

            state = self._require_global(txn)
            rolled = roll_dynamic_reward(state, recent_reward, market_volatility,
                                         order_book_gap)
            txn.put_global(state)

        if rolled:
            logger.info(f"Dynamic reward window complete: multiplier={state.global_reward_multiplier}")
        return rolled

    def borrow_against_lvt(self, caller: bytes, borrow_amount: int) -> Loan:
        with self._transition(core.BORROW_AGAINST_LVT) as txn:
            borrow_amount = require_u64('borrow_amount', borrow_amount)
            account = self._require_user(txn, caller)
            loan = issue_loan(account, borrow_amount, self.now())
            seq = txn.create_loan(loan)

        logger.info(f"Loan #{seq}: {account.owner.hex()[:8]} borrowed {borrow_amount} due {loan.due_time}")
        return loan

    # ==========================================================================
    # FEES & GOVERNANCE
    # ==========================================================================

    def adjust_fee_dynamically(self, caller: bytes) -> GlobalState:
        with self._transition(core.ADJUST_FEE_DYNAMICALLY) as txn:
            state = self._require_global(txn)
            adjust_for_liquidity(state, self.now())
            txn.put_global(state)

        logger.info(f"Fee rate adjusted for liquidity: {state.fee_rate}")
        return state

    def auto_adjust_fee(self, caller: bytes, current_volatility: int) -> GlobalState:
        with self._transition(core.AUTO_ADJUST_FEE) as txn:
            current_volatility = require_u64('current_volatility', current_volatility)
            state = self._require_global(txn)
            adjust_for_volatility(state, current_volatility, self.now())
            txn.put_global(state)

        logger.info(f"Fee rate adjusted for volatility: {state.fee_rate}")
        return state

    def cast_vote(self, caller: bytes) -> GovernanceVote:
        with self._transition(core.CAST_VOTE) as txn:
            caller = _require_identity('caller', caller)
            governance = self._require_governance(txn)
            cast_vote(governance)
            txn.put_governance(governance)

        logger.info(f"Vote cast by {caller.hex()[:8]}: {governance.vote_count}/{governance.required_votes}")
        return governance

    def update_fee_structure_by_vote(self, caller: bytes, new_fee_rate: int) -> GlobalState:
        with self._transition(core.UPDATE_FEE_STRUCTURE_BY_VOTE) as txn:
            new_fee_rate = require_u64('new_fee_rate', new_fee_rate)
            governance = self._require_governance(txn)
            state = self._require_global(txn)
            apply_fee_vote(state, governance, new_fee_rate, self.now())
            txn.put_global(state)
            txn.put_governance(governance)

        logger.info(f"Fee rate set by governance: {state.fee_rate}")
        return state

    # ==========================================================================
    # BATCHING
    # ==========================================================================

    def batch_trading_orders_with_delay(self, caller: bytes, delay: int) -> int:
        """Validate an execution delay for batched orders. Writes nothing."""
        with self._transition(core.BATCH_TRADING_ORDERS_WITH_DELAY):
            delay = require_i64('delay', delay)
            if delay <= 0:
                raise InvalidDelay(f"delay={delay}")

        logger.info(f"Batch orders will be executed after a delay of {delay} seconds")
        return delay

    def batch_process_trades(self, caller: bytes) -> int:
        with self._transition(core.BATCH_PROCESS_TRADES) as txn:
            state = self._require_global(txn)
            now = self.now()
            delay = self.delay_provider(now)
            state.last_fee_update = checked_add_i64(now, delay)
            txn.put_global(state)

        logger.info(f"Trades will be processed with a randomized delay of {delay} seconds")
        return delay

    def close(self):
        self.db.close()
