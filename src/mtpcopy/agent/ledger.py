"""Copy-once ledger of transferred files.

This module provides:
- Ledger: SQLite-based record of every file identity ever transferred
- FileRecord: Represents one transferred file
- PassRecord: Represents one finished pass (transfer history)

Architecture:
    The ledger is the only source of truth for "already transferred".
    The destination directory is never inspected, so a copy deleted on the
    host is not copied again. Records are only ever added by a confirmed
    copy or an explicit import; nothing prunes them automatically.

Integrity:
    Every record is one committed statement with synchronous=FULL. A write
    torn by a crash is rolled back by SQLite's journal, so it is absent on
    the next load rather than corrupting earlier records. A file that SQLite
    cannot open or that fails quick_check raises CorruptLedger.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from mtpcopy.agent.transfer.types import CorruptLedger, PassResult

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1"


@dataclass
class FileRecord:
    """Represents a file that has been transferred.

    Attributes:
        identity: Identity key (see IdentityPolicy).
        path: Path relative to the device source root.
        size: Size on the device when copied, if known.
        mtime: Modification time on the device when copied, if known.
        device: Descriptor of the device it came from.
        destination: Host path it was copied to.
        transferred_at: Timestamp of the record.
    """

    identity: str
    path: str
    size: int | None
    mtime: float | None
    device: str | None
    destination: str | None
    transferred_at: float

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> FileRecord:
        """Create FileRecord from database row."""
        return cls(
            identity=row["identity"],
            path=row["path"],
            size=row["size"],
            mtime=row["mtime"],
            device=row["device"],
            destination=row["destination"],
            transferred_at=row["transferred_at"],
        )


@dataclass
class PassRecord:
    """Represents one finished pass in the transfer history."""

    id: int
    device: str
    started_at: float
    finished_at: float
    planned: int
    transferred: int
    failed: int
    aborted: str | None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> PassRecord:
        """Create PassRecord from database row."""
        return cls(
            id=row["id"],
            device=row["device"],
            started_at=row["started_at"],
            finished_at=row["finished_at"],
            planned=row["planned"],
            transferred=row["transferred"],
            failed=row["failed"],
            aborted=row["aborted"],
        )


class Ledger:
    """SQLite-based copy-once ledger.

    Single writer: one process owns the ledger file. The lock only guards
    the shared connection against the CLI and loop touching it together.
    """

    def __init__(self, db_path: Path) -> None:
        """Open (or create) the ledger database.

        Args:
            db_path: Path to SQLite database file.

        Raises:
            CorruptLedger: If the file exists but is not a usable ledger.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

        try:
            self._conn = sqlite3.connect(
                str(self._db_path),
                check_same_thread=False,
                isolation_level=None,  # Autocommit mode
            )
        except sqlite3.Error as e:
            raise CorruptLedger(f"Cannot open ledger {self._db_path}: {e}") from e
        self._conn.row_factory = sqlite3.Row

        try:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=FULL")
            self._check_integrity()
            self._create_tables()
        except sqlite3.DatabaseError as e:
            self._conn.close()
            raise CorruptLedger(f"Ledger {self._db_path} is unreadable: {e}") from e
        except CorruptLedger:
            self._conn.close()
            raise

    @classmethod
    def load(cls, db_path: Path) -> Ledger:
        """Load the ledger at db_path, creating it if it does not exist."""
        ledger = cls(db_path)
        logger.debug("Loaded ledger %s with %d records", db_path, ledger.count())
        return ledger

    @property
    def path(self) -> Path:
        """Path of the ledger database."""
        return self._db_path

    def _check_integrity(self) -> None:
        row = self._conn.execute("PRAGMA quick_check").fetchone()
        if row is None or row[0] != "ok":
            raise CorruptLedger(
                f"Ledger {self._db_path} failed integrity check: {row[0] if row else 'no result'}"
            )

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS transferred_files (
                identity TEXT PRIMARY KEY,
                path TEXT NOT NULL,
                size INTEGER,
                mtime REAL,
                device TEXT,
                destination TEXT,
                transferred_at REAL NOT NULL
            );

            -- One row per finished pass
            CREATE TABLE IF NOT EXISTS transfer_passes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                device TEXT NOT NULL,
                started_at REAL NOT NULL,
                finished_at REAL NOT NULL,
                planned INTEGER NOT NULL,
                transferred INTEGER NOT NULL,
                failed INTEGER NOT NULL,
                aborted TEXT
            );

            CREATE TABLE IF NOT EXISTS ledger_meta (
                key TEXT PRIMARY KEY,
                value TEXT
            );
        """)
        self._conn.execute(
            "INSERT OR IGNORE INTO ledger_meta (key, value) VALUES ('schema_version', ?)",
            (SCHEMA_VERSION,),
        )

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __enter__(self) -> Ledger:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # === File records ===

    def contains(self, identity: str) -> bool:
        """Check if an identity has been transferred.

        Raises:
            CorruptLedger: If the database cannot be read.
        """
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT 1 FROM transferred_files WHERE identity = ?",
                    (identity,),
                ).fetchone()
        except sqlite3.Error as e:
            raise CorruptLedger(f"Cannot read ledger: {e}") from e
        return row is not None

    def __contains__(self, identity: object) -> bool:
        return isinstance(identity, str) and self.contains(identity)

    def record(
        self,
        identity: str,
        *,
        path: str | None = None,
        size: int | None = None,
        mtime: float | None = None,
        device: str | None = None,
        destination: str | None = None,
    ) -> bool:
        """Record a transferred identity and persist it immediately.

        Recording an identity that is already present is a no-op.

        Args:
            identity: Identity key.
            path: Relative path on the device (defaults to the identity).
            size: Size on the device.
            mtime: Modification time on the device.
            device: Device descriptor.
            destination: Host path the file was copied to.

        Returns:
            True if a new record was added, False if it already existed.

        Raises:
            CorruptLedger: If the write fails.
        """
        try:
            with self._lock:
                cursor = self._conn.execute(
                    """
                    INSERT OR IGNORE INTO transferred_files (
                        identity, path, size, mtime, device, destination, transferred_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (identity, path or identity, size, mtime, device, destination, time.time()),
                )
        except sqlite3.Error as e:
            raise CorruptLedger(f"Cannot record {identity}: {e}") from e
        return cursor.rowcount > 0

    def get(self, identity: str) -> FileRecord | None:
        """Get a record by identity."""
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM transferred_files WHERE identity = ?",
                (identity,),
            ).fetchone()
        if row is None:
            return None
        return FileRecord.from_row(row)

    def records(self, limit: int | None = None) -> list[FileRecord]:
        """List records, most recent first."""
        query = "SELECT * FROM transferred_files ORDER BY transferred_at DESC, identity"
        params: tuple[int, ...] = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        return [FileRecord.from_row(row) for row in rows]

    def count(self) -> int:
        """Number of recorded identities."""
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) FROM transferred_files").fetchone()
        return int(row[0])

    def forget(self, identity: str) -> bool:
        """Remove a record so the file is copied again on the next pass.

        Only ever called on explicit user request.

        Returns:
            True if a record was removed.
        """
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM transferred_files WHERE identity = ?",
                (identity,),
            )
        return cursor.rowcount > 0

    def import_paths(self, lines: Iterable[str], destination_root: Path) -> int:
        """Import a plain-text list of previously transferred destination paths.

        Each non-empty line is a host path of a copied file. Paths under
        destination_root are recorded relative to it; other paths are
        recorded by file name. Imported identities are path-only.

        Returns:
            Number of new records.
        """
        destination_root = Path(destination_root)
        added = 0
        for line in lines:
            line = line.strip()
            if not line:
                continue
            host_path = Path(line)
            try:
                rel = host_path.relative_to(destination_root)
            except ValueError:
                rel = Path(host_path.name)
            identity = str(PurePosixPath(*rel.parts))
            if self.record(identity, destination=line):
                added += 1
        logger.info("Imported %d new records into %s", added, self._db_path)
        return added

    # === Pass history ===

    def record_pass(self, result: PassResult) -> None:
        """Append a finished pass to the history.

        Raises:
            CorruptLedger: If the write fails.
        """
        try:
            with self._lock:
                self._conn.execute(
                    """
                    INSERT INTO transfer_passes (
                        device, started_at, finished_at, planned, transferred, failed, aborted
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        result.device,
                        result.started_at,
                        result.finished_at or time.time(),
                        result.planned,
                        len(result.transferred),
                        len(result.failed),
                        result.aborted,
                    ),
                )
        except sqlite3.Error as e:
            raise CorruptLedger(f"Cannot record pass history: {e}") from e

    def passes(self, limit: int = 20) -> list[PassRecord]:
        """List finished passes, most recent first."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM transfer_passes ORDER BY id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [PassRecord.from_row(row) for row in rows]
