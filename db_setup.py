import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, List, Optional

from db_models import ContactRecord, LinkPrecedence

logger = logging.getLogger(__name__)

DB_NAME = "contacts.db"

SCHEMA = [
    '''
        CREATE TABLE IF NOT EXISTS Contact (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            phoneNumber TEXT,
            email TEXT,
            linkedId INTEGER,
            linkPrecedence TEXT CHECK(linkPrecedence IN ('secondary', 'primary')),
            createdAt DATETIME DEFAULT CURRENT_TIMESTAMP,
            updatedAt DATETIME DEFAULT CURRENT_TIMESTAMP,
            deletedAt DATETIME,
            FOREIGN KEY (linkedId) REFERENCES Contact (id)
        )
    ''',
    "CREATE INDEX IF NOT EXISTS idx_contact_email ON Contact (email)",
    "CREATE INDEX IF NOT EXISTS idx_contact_phone ON Contact (phoneNumber)",
    "CREATE INDEX IF NOT EXISTS idx_contact_linked ON Contact (linkedId)",
]


def now_timestamp() -> str:
    return datetime.now().isoformat(timespec="microseconds")


def init_db(conn: sqlite3.Connection):
    cursor = conn.cursor()
    for statement in SCHEMA:
        cursor.execute(statement)
    conn.commit()


class ContactStore:
    """
    SQLite-backed storage for Contact rows.

    One connection is held for the lifetime of the store: open() at process
    start, close() at shutdown. Every read excludes soft-deleted rows and is
    ordered by createdAt (id breaks ties).

    transaction() is the serialization point for callers that read and then
    write: it holds the store lock for the whole block and commits once at the
    end (or rolls back on error). Nested blocks join the outermost one, so an
    insert made outside a transaction commits immediately.
    """

    def __init__(self, db_name: str = DB_NAME):
        self.db_name = db_name
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._depth = 0

    def open(self) -> "ContactStore":
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_name, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            init_db(self._conn)
            logger.info("Opened contact store at %s", self.db_name)
        return self

    def close(self):
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info("Closed contact store at %s", self.db_name)

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Contact store is not open")
        return self._conn

    @contextmanager
    def transaction(self):
        with self._lock:
            self._depth += 1
            try:
                yield self
            except BaseException:
                if self._depth == 1:
                    self.conn.rollback()
                raise
            else:
                if self._depth == 1:
                    self.conn.commit()
            finally:
                self._depth -= 1

    def _select(self, query: str, params: Iterable = ()) -> List[ContactRecord]:
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute(query, tuple(params))
            rows = cursor.fetchall()
        return [ContactRecord(**dict(row)) for row in rows]

    def find_by_email_or_phone(self, email: Optional[str] = None, phone: Optional[str] = None) -> List[ContactRecord]:
        clauses = []
        params = []
        if email is not None:
            clauses.append("email = ?")
            params.append(email)
        if phone is not None:
            clauses.append("phoneNumber = ?")
            params.append(phone)
        if not clauses:
            return []

        query = f"""
            SELECT * FROM Contact
            WHERE deletedAt IS NULL
            AND ({" OR ".join(clauses)})
            ORDER BY createdAt ASC, id ASC
        """
        return self._select(query, params)

    def find_by_ids_or_linked_ids(self, root_ids: Iterable[int]) -> List[ContactRecord]:
        ids = sorted(set(root_ids))
        if not ids:
            return []

        placeholders = ", ".join("?" for _ in ids)
        query = f"""
            SELECT * FROM Contact
            WHERE deletedAt IS NULL
            AND (id IN ({placeholders}) OR linkedId IN ({placeholders}))
            ORDER BY createdAt ASC, id ASC
        """
        return self._select(query, ids + ids)

    def get(self, contact_id: int) -> Optional[ContactRecord]:
        records = self._select("SELECT * FROM Contact WHERE id = ?", (contact_id,))
        return records[0] if records else None

    def insert(
        self,
        email: Optional[str] = None,
        phone_number: Optional[str] = None,
        linked_id: Optional[int] = None,
        link_precedence: LinkPrecedence = LinkPrecedence.PRIMARY,
        contact_id: Optional[int] = None,
    ) -> ContactRecord:
        """Insert a row and return it as stored (id and timestamps assigned)."""
        now = now_timestamp()
        precedence = LinkPrecedence(link_precedence).value

        with self.transaction():
            cursor = self.conn.cursor()
            if contact_id:
                cursor.execute("""
                    INSERT INTO Contact (id, phoneNumber, email, linkedId, linkPrecedence, createdAt, updatedAt)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (contact_id, phone_number, email, linked_id, precedence, now, now))
                result_id = contact_id
            else:
                cursor.execute("""
                    INSERT INTO Contact (phoneNumber, email, linkedId, linkPrecedence, createdAt, updatedAt)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (phone_number, email, linked_id, precedence, now, now))
                result_id = cursor.lastrowid

        return ContactRecord(
            id=result_id,
            email=email,
            phoneNumber=phone_number,
            linkedId=linked_id,
            linkPrecedence=precedence,
            createdAt=now,
            updatedAt=now,
        )
