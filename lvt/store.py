"""
Key-addressed record store with staged, all-or-nothing transactions.

Records are msgpack-encoded dicts stored in LevelDB. A transaction buffers
every write in memory and flushes them through a single write batch when
the transition succeeds; an exception discards the buffer.
"""
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import msgpack

from lvt.db import DB
from lvt.records import (
    GlobalState,
    GovernanceVote,
    LeaderboardEntry,
    Loan,
    LPAccount,
    TradeRecord,
    UserAccount,
)

logger = logging.getLogger(__name__)

# Key layout
GLOBAL_KEY = b'GLOBAL'
GOVERNANCE_KEY = b'GOVERNANCE'
LOAN_SEQ_KEY = b'META:loan_seq'
USER_PREFIX = b'USER:'
LP_PREFIX = b'LP:'
LEADERBOARD_PREFIX = b'LEADERBOARD:'
TRADE_PREFIX = b'TRADE:'
LOAN_PREFIX = b'LOAN:'


def _seq_key(prefix: bytes, seq: int) -> bytes:
    return prefix + seq.to_bytes(8, 'big')


def encode(data) -> bytes:
    return msgpack.packb(data, use_bin_type=True)


def decode(raw: bytes):
    return msgpack.unpackb(raw, raw=False)


class RecordAccess:
    """Typed reads over a raw key/value getter."""

    def _get_raw(self, key: bytes) -> Optional[bytes]:
        raise NotImplementedError

    def _load(self, key: bytes, record_cls):
        raw = self._get_raw(key)
        if raw is None:
            return None
        return record_cls(decode(raw))

    def get_global(self) -> Optional[GlobalState]:
        return self._load(GLOBAL_KEY, GlobalState)

    def get_governance(self) -> Optional[GovernanceVote]:
        return self._load(GOVERNANCE_KEY, GovernanceVote)

    def get_user(self, owner: bytes) -> Optional[UserAccount]:
        return self._load(USER_PREFIX + owner, UserAccount)

    def get_lp(self, owner: bytes) -> Optional[LPAccount]:
        return self._load(LP_PREFIX + owner, LPAccount)

    def get_leaderboard(self, user: bytes) -> Optional[LeaderboardEntry]:
        return self._load(LEADERBOARD_PREFIX + user, LeaderboardEntry)

    def get_trade(self, seq: int) -> Optional[TradeRecord]:
        return self._load(_seq_key(TRADE_PREFIX, seq), TradeRecord)

    def get_loan(self, seq: int) -> Optional[Loan]:
        return self._load(_seq_key(LOAN_PREFIX, seq), Loan)

    def loan_count(self) -> int:
        raw = self._get_raw(LOAN_SEQ_KEY)
        return decode(raw) if raw is not None else 0


class StagedState(RecordAccess):
    """
    Write buffer for one transition.

    Reads see staged writes first, then committed state. Creation of an
    append-only record at an occupied key is refused.
    """

    def __init__(self, db: DB):
        self._db = db
        self._writes: dict[bytes, bytes] = {}

    def _get_raw(self, key: bytes) -> Optional[bytes]:
        if key in self._writes:
            return self._writes[key]
        return self._db.get(key)

    def _put(self, key: bytes, record):
        self._writes[key] = encode(record.to_dict())

    def _create(self, key: bytes, record):
        if self._get_raw(key) is not None:
            raise RuntimeError(f"Record already exists at {key!r}")
        self._put(key, record)

    @property
    def pending(self) -> dict[bytes, bytes]:
        return dict(self._writes)

    def put_global(self, state: GlobalState):
        self._put(GLOBAL_KEY, state)

    def put_governance(self, governance: GovernanceVote):
        self._put(GOVERNANCE_KEY, governance)

    def put_user(self, account: UserAccount):
        self._put(USER_PREFIX + account.owner, account)

    def put_lp(self, account: LPAccount):
        self._put(LP_PREFIX + account.owner, account)

    def put_leaderboard(self, entry: LeaderboardEntry):
        self._put(LEADERBOARD_PREFIX + entry.user, entry)

    def create_trade(self, seq: int, trade: TradeRecord):
        self._create(_seq_key(TRADE_PREFIX, seq), trade)

    def create_loan(self, loan: Loan) -> int:
        """Append a loan under the next loan sequence number."""
        seq = self.loan_count() + 1
        self._create(_seq_key(LOAN_PREFIX, seq), loan)
        self._writes[LOAN_SEQ_KEY] = encode(seq)
        return seq


class RecordStore(RecordAccess):
    """Committed ledger state plus the transaction boundary."""

    def __init__(self, db: DB):
        self.db = db

    def _get_raw(self, key: bytes) -> Optional[bytes]:
        return self.db.get(key)

    @contextmanager
    def transaction(self):
        """
        Stage one transition.

        Example:
            with store.transaction() as txn:
                account = txn.get_user(owner)
                account.accrued_rewards = 0
                txn.put_user(account)
        """
        staged = StagedState(self.db)
        try:
            yield staged
        except Exception:
            logger.debug(f"Discarding {len(staged.pending)} staged writes")
            raise

        writes = staged.pending
        if not writes:
            return
        with self.db.write_batch() as batch:
            for key, value in writes.items():
                batch.put(key, value)
        logger.debug(f"Committed {len(writes)} record writes")

    def iter_trades(self) -> Iterator[tuple[int, TradeRecord]]:
        for key, raw in self.db.iterator(prefix=TRADE_PREFIX):
            yield int.from_bytes(key[len(TRADE_PREFIX):], 'big'), TradeRecord(decode(raw))

    def iter_loans(self, borrower: bytes = None) -> Iterator[tuple[int, Loan]]:
        for key, raw in self.db.iterator(prefix=LOAN_PREFIX):
            loan = Loan(decode(raw))
            if borrower is None or loan.borrower == borrower:
                yield int.from_bytes(key[len(LOAN_PREFIX):], 'big'), loan

    def top_traders(self, limit: int = 10) -> list[LeaderboardEntry]:
        """Leaderboard entries ordered by trade volume, then trade count."""
        entries = [LeaderboardEntry(decode(raw))
                   for _, raw in self.db.iterator(prefix=LEADERBOARD_PREFIX)]
        entries.sort(key=lambda e: (e.trade_volume, e.trade_count), reverse=True)
        return entries[:limit]
