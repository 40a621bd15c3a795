"""
Ledger record types.

Each record has a fixed field list, loads from the dict stored in the
record store and converts back with to_dict(). TradeRecord and Loan are
immutable once created.
"""
from lvt.checked import U64_MAX, I64_MIN, I64_MAX

IDENTITY_LEN = 32
MAX_TRADE_PAIR_LEN = 32
BLANK_IDENTITY = b'\x00' * IDENTITY_LEN


def _identity(value) -> bytes:
    if isinstance(value, str):
        value = bytes.fromhex(value)
    value = bytes(value)
    if len(value) != IDENTITY_LEN:
        raise ValueError(f"Identity must be {IDENTITY_LEN} bytes, got {len(value)}")
    return value


class Record:
    """Base for fixed-layout records."""

    # name -> 'u64' | 'i64' | 'identity' | 'bool' | 'str'
    FIELDS: dict = {}
    IMMUTABLE = False

    def __init__(self, data: dict = None):
        data = data or {}
        unknown = set(data) - set(self.FIELDS)
        if unknown:
            raise ValueError(f"Unknown {type(self).__name__} fields: {sorted(unknown)}")

        for name, kind in self.FIELDS.items():
            value = data.get(name, self._default(name, kind))
            object.__setattr__(self, name, self._coerce(name, kind, value))
        object.__setattr__(self, '_sealed', self.IMMUTABLE)

    def _default(self, name: str, kind: str):
        if kind == 'identity':
            return BLANK_IDENTITY
        if kind == 'bool':
            return False
        if kind == 'str':
            return ''
        return 0

    def _coerce(self, name: str, kind: str, value):
        if kind == 'identity':
            return _identity(value)
        if kind == 'bool':
            return bool(value)
        if kind == 'str':
            return str(value)

        value = int(value)
        if kind == 'u64' and not 0 <= value <= U64_MAX:
            raise ValueError(f"{name}={value} is outside u64 range")
        if kind == 'i64' and not I64_MIN <= value <= I64_MAX:
            raise ValueError(f"{name}={value} is outside i64 range")
        return value

    def __setattr__(self, name, value):
        if getattr(self, '_sealed', False):
            raise AttributeError(f"{type(self).__name__} is immutable")
        if name not in self.FIELDS:
            raise AttributeError(f"{type(self).__name__} has no field {name!r}")
        object.__setattr__(self, name, self._coerce(name, self.FIELDS[name], value))

    def to_dict(self) -> dict:
        """Convert to dict for storage."""
        return {name: getattr(self, name) for name in self.FIELDS}

    def __eq__(self, other):
        return type(self) is type(other) and self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        parts = []
        for name, value in self.to_dict().items():
            if isinstance(value, bytes):
                value = value.hex()[:8]
            parts.append(f"{name}={value}")
        return f"{type(self).__name__}({', '.join(parts)})"


class GlobalState(Record):
    """Protocol-wide counters, fee parameters and the reward window."""
    FIELDS = {
        'total_trades': 'u64',
        'total_liquidity': 'u64',
        'fee_rate': 'u64',
        'last_fee_update': 'i64',
        'treasury': 'identity',
        'reward_sum': 'u64',
        'reward_count': 'u64',
        'global_reward_multiplier': 'u64',
    }

    def _default(self, name, kind):
        if name == 'global_reward_multiplier':
            return 1
        return super()._default(name, kind)


class UserAccount(Record):
    FIELDS = {
        'owner': 'identity',
        'staked_amount': 'u64',
        'accrued_rewards': 'u64',
        'reward_multiplier': 'u64',
        'trade_count': 'u64',
        'cumulative_volume': 'u64',
        'fee_discount': 'u64',
        'lockup_end': 'i64',         # 0 when there is no lockup
        'is_institutional': 'bool',
        'last_claim_time': 'i64',
        'trading_rebate': 'u64',
    }

    def is_locked(self, now: int) -> bool:
        """True while the lockup set by staking has not yet expired."""
        return self.lockup_end > now


class TradeRecord(Record):
    FIELDS = {
        'user': 'identity',
        'trade_amount': 'u64',
        'trade_timestamp': 'i64',
        'trade_pair': 'str',
        'execution_delay': 'i64',
        'slippage': 'u64',
        'liquidity_provided': 'u64',
    }
    IMMUTABLE = True

    def _coerce(self, name, kind, value):
        value = super()._coerce(name, kind, value)
        if name == 'trade_pair' and len(value.encode('utf-8')) > MAX_TRADE_PAIR_LEN:
            raise ValueError(f"trade_pair exceeds {MAX_TRADE_PAIR_LEN} bytes")
        return value


class LPAccount(Record):
    FIELDS = {
        'owner': 'identity',
        'total_deposit': 'u64',
        'last_deposit': 'i64',
    }


class GovernanceVote(Record):
    FIELDS = {
        'vote_count': 'u64',
        'required_votes': 'u64',
    }

    @property
    def quorum_reached(self) -> bool:
        return self.vote_count >= self.required_votes


class LeaderboardEntry(Record):
    FIELDS = {
        'user': 'identity',
        'trade_volume': 'u64',
        'trade_count': 'u64',
        'last_update': 'i64',
    }


class Loan(Record):
    FIELDS = {
        'borrower': 'identity',
        'collateral': 'u64',
        'borrow_amount': 'u64',
        'interest_rate': 'u64',
        'start_time': 'i64',
        'due_time': 'i64',
    }
    IMMUTABLE = True
