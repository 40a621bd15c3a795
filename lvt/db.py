"""
LevelDB wrapper backing the ledger record store.
"""
import plyvel
import logging
from typing import Optional, Iterator
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class DB:
    def __init__(self, db_path: str, create_if_missing: bool = True,
                 write_buffer_size: int = 4 * 1024 * 1024,
                 max_open_files: int = 1000,
                 compression: Optional[str] = 'snappy'):
        """
        Open (or create) the database.

        Args:
            db_path: Path to database directory
            create_if_missing: Create database if it doesn't exist
            write_buffer_size: Size of write buffer
            max_open_files: Maximum number of open files
            compression: 'snappy' or None
        """
        self.path = db_path
        try:
            self._db = plyvel.DB(
                db_path,
                create_if_missing=create_if_missing,
                write_buffer_size=write_buffer_size,
                max_open_files=max_open_files,
                compression=compression,
            )
            self._closed = False
            logger.info(f"Database opened at {db_path}")
        except Exception as e:
            logger.error(f"Failed to open database at {db_path}: {e}")
            raise

    def _ensure_open(self):
        if self._closed:
            raise RuntimeError("Database is closed")

    def get(self, key: bytes) -> Optional[bytes]:
        """
        Get value by key.

        Returns None if key doesn't exist.
        """
        self._ensure_open()
        try:
            return self._db.get(key)
        except Exception as e:
            logger.error(f"Error getting key {key!r}: {e}")
            raise

    @contextmanager
    def write_batch(self):
        """
        Context manager for atomic batch writes.

        The batch is written only if the block exits cleanly.

        Example:
            with db.write_batch() as batch:
                batch.put(b'key1', b'value1')
                batch.put(b'key2', b'value2')
        """
        self._ensure_open()
        batch = self._db.write_batch()
        try:
            yield batch
        except Exception as e:
            logger.error(f"Batch write aborted: {e}")
            raise
        else:
            batch.write()
        finally:
            batch.clear()

    def iterator(self, prefix: bytes) -> Iterator[tuple[bytes, bytes]]:
        """Iterate (key, value) pairs whose key starts with prefix."""
        self._ensure_open()
        return self._db.iterator(prefix=prefix)

    def close(self):
        if not self._closed:
            self._db.close()
            self._closed = True
            logger.info("Database closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
