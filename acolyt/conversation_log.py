"""
Conversation logging to SQLite.
Stores user/assistant exchanges so per-user history survives a restart.
"""
import sqlite3
from contextlib import contextmanager
from typing import Dict, List, Sequence, Tuple


class ConversationLog:
    """SQLite-backed log of conversation turns keyed by user id."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.init_db()

    @contextmanager
    def get_conn(self):
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
        finally:
            conn.close()

    def init_db(self):
        """Initialize the conversation log database"""
        with self.get_conn() as conn:
            conn.execute("""
            CREATE TABLE IF NOT EXISTS conversation_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_identifier TEXT NOT NULL,
                role TEXT NOT NULL,
                content TEXT NOT NULL,
                timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """)
            # Create index for faster lookups
            conn.execute("CREATE INDEX IF NOT EXISTS idx_user_id ON conversation_log(user_identifier, id DESC)")
            conn.commit()

    def log_messages(self, user_identifier: str, messages: Sequence[Tuple[str, str]]):
        """
        Log several (role, content) messages in one transaction: all rows or none.

        Args:
            user_identifier: Chat user id
            messages: Ordered (role, content) pairs, role is "user" or "assistant"
        """
        with self.get_conn() as conn:
            with conn:
                conn.executemany(
                    "INSERT INTO conversation_log (user_identifier, role, content, timestamp) VALUES (?, ?, ?, CURRENT_TIMESTAMP)",
                    [(user_identifier, role, content) for role, content in messages]
                )

    def get_recent_messages(self, user_identifier: str, limit: int = 100) -> List[Dict]:
        """
        Retrieve recent conversation messages for a user

        Returns:
            List of message dictionaries with keys: role, content, timestamp (oldest first)
        """
        with self.get_conn() as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                """SELECT role, content, timestamp
                   FROM conversation_log
                   WHERE user_identifier = ?
                   ORDER BY id DESC
                   LIMIT ?""",
                (user_identifier, limit)
            )
            messages = [dict(row) for row in cursor.fetchall()]
            # Reverse to get chronological order (oldest first)
            return list(reversed(messages))

    def cleanup_old_messages(self, days: int = 30):
        """Delete messages older than specified days to keep database manageable"""
        with self.get_conn() as conn:
            conn.execute(
                "DELETE FROM conversation_log WHERE timestamp < datetime('now', ?)",
                (f'-{days} days',)
            )
            conn.commit()
