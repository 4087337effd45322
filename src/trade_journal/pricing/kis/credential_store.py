from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import List, Optional, Protocol

from trade_journal.core.types import Credential


class CredentialStore(Protocol):
    """Holds at most one live access token. No network calls."""

    def load_valid(self, now: float) -> Optional[Credential]: ...
    def replace(self, credential: Credential) -> None: ...


class SQLiteCredentialStore:
    """Single-row SQLite token table shared by every process on the host.

    Writes are "delete all, insert one" inside one transaction, so readers see
    either the previous token or the new one.
    """

    def __init__(self, path: str = "./.cache/kis_token.sqlite3"):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        with sqlite3.connect(self.path) as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS kis_token (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    access_token TEXT NOT NULL,
                    token_type TEXT NOT NULL,
                    expires_in REAL NOT NULL,
                    issued_at_unix REAL NOT NULL,
                    expires_at_unix REAL NOT NULL
                )
                """
            )
            con.commit()

    def load_valid(self, now: float) -> Optional[Credential]:
        with sqlite3.connect(self.path) as con:
            cur = con.execute(
                "SELECT access_token, token_type, expires_in, issued_at_unix, expires_at_unix FROM kis_token "
                "WHERE expires_at_unix > ? ORDER BY issued_at_unix DESC, id DESC LIMIT 1",
                (float(now),),
            )
            row = cur.fetchone()
        if not row:
            return None
        cred = Credential(
            access_token=str(row[0]),
            token_type=str(row[1]),
            expires_in=float(row[2]),
            issued_at_unix=float(row[3]),
            expires_at_unix=float(row[4]),
        )
        return cred if cred.is_valid(now) else None

    def replace(self, credential: Credential) -> None:
        with sqlite3.connect(self.path) as con:
            con.execute("DELETE FROM kis_token")
            con.execute(
                "INSERT INTO kis_token(access_token, token_type, expires_in, issued_at_unix, expires_at_unix) VALUES(?,?,?,?,?)",
                (
                    credential.access_token,
                    credential.token_type,
                    float(credential.expires_in),
                    float(credential.issued_at_unix),
                    float(credential.expires_at_unix),
                ),
            )
            con.commit()

    def count(self) -> int:
        with sqlite3.connect(self.path) as con:
            return int(con.execute("SELECT COUNT(*) FROM kis_token").fetchone()[0])


class InMemoryCredentialStore:
    """Process-local store, for tests and short-lived scripts."""

    def __init__(self, credential: Optional[Credential] = None):
        self._rows: List[Credential] = [credential] if credential else []

    def load_valid(self, now: float) -> Optional[Credential]:
        live = [c for c in self._rows if c.is_valid(now)]
        if not live:
            return None
        return max(live, key=lambda c: c.issued_at_unix)

    def replace(self, credential: Credential) -> None:
        self._rows = [credential]

    def count(self) -> int:
        return len(self._rows)
