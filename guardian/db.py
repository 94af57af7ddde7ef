"""
guardian/db.py  -  SQLite persistence

Only two things must survive a restart: the holdings list and the API
tokens. Quotes and scores are stored too so the portfolio can be shown
before the first refresh, but they are recomputed on every refresh.

  - Single file database (guardian.db), no server needed
  - Every write is mirrored to guardian_data.json as a readable backup
  - All SQL uses parameterised queries

Schema
──────
  holdings : one row per ticker, every Holding field, score as five columns
  settings : key/value pairs (brapi_token, groq_api_key)
"""

import json
import sqlite3
from contextlib import contextmanager
from dataclasses import asdict
from typing import Dict, Optional

from guardian.models import Holding, ScoreBreakdown

DB_FILE        = "guardian.db"
JSON_DATA_FILE = "guardian_data.json"

TOKEN_KEY      = "brapi_token"
GROQ_KEY       = "groq_api_key"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS holdings (
    ticker              TEXT PRIMARY KEY,
    name                TEXT    NOT NULL DEFAULT '',
    price               REAL    NOT NULL DEFAULT 0,
    cost                REAL    NOT NULL DEFAULT 0 CHECK(cost >= 0),
    quantity            REAL    NOT NULL DEFAULT 0 CHECK(quantity >= 0),
    lpa                 REAL    NOT NULL DEFAULT 0,
    vpa                 REAL    NOT NULL DEFAULT 0,
    roe                 REAL    NOT NULL DEFAULT 0,
    debt_to_ebitda      REAL    NOT NULL DEFAULT 0,
    change              REAL    NOT NULL DEFAULT 0,
    change_percent      REAL    NOT NULL DEFAULT 0,
    pl                  REAL    NOT NULL DEFAULT 0,
    pvp                 REAL    NOT NULL DEFAULT 0,
    dividend_yield      REAL    NOT NULL DEFAULT 0,
    ev_ebitda           REAL    NOT NULL DEFAULT 0,
    net_margin          REAL    NOT NULL DEFAULT 0,
    ebitda_margin       REAL    NOT NULL DEFAULT 0,
    last_updated        TEXT    NOT NULL DEFAULT '',
    is_favorite         INTEGER NOT NULL DEFAULT 0,
    price_score         INTEGER NOT NULL DEFAULT 0,
    profitability_score INTEGER NOT NULL DEFAULT 0,
    health_score        INTEGER NOT NULL DEFAULT 0,
    dividend_score      INTEGER NOT NULL DEFAULT 0,
    valuation_score     INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS settings (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

_HOLDING_COLUMNS = [
    "ticker", "name", "price", "cost", "quantity", "lpa", "vpa", "roe",
    "debt_to_ebitda", "change", "change_percent", "pl", "pvp",
    "dividend_yield", "ev_ebitda", "net_margin", "ebitda_margin",
    "last_updated", "is_favorite",
]
_SCORE_COLUMNS = [
    "price_score", "profitability_score", "health_score",
    "dividend_score", "valuation_score",
]


@contextmanager
def _tx(conn: sqlite3.Connection):
    """Commit on success, roll back on error."""
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def _row_to_holding(row: sqlite3.Row) -> Holding:
    fields = {c: row[c] for c in _HOLDING_COLUMNS}
    fields["is_favorite"] = bool(fields["is_favorite"])
    return Holding(**fields,
                   breakdown=ScoreBreakdown(**{c: row[c] for c in _SCORE_COLUMNS}))


def _holding_params(h: Holding) -> tuple:
    values = [getattr(h, c) for c in _HOLDING_COLUMNS]
    values[_HOLDING_COLUMNS.index("is_favorite")] = int(h.is_favorite)
    return tuple(values) + tuple(getattr(h.breakdown, c) for c in _SCORE_COLUMNS)


class Database:
    """All reads and writes go through this class."""

    def __init__(self, path: str = DB_FILE, backup_file: Optional[str] = JSON_DATA_FILE):
        self.backup_file = backup_file
        self.conn = sqlite3.connect(path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(_SCHEMA)

    # ── Holdings ──────────────────────────────────────────────────────────────

    def get_all_holdings(self) -> Dict[str, Holding]:
        rows = self.conn.execute("SELECT * FROM holdings ORDER BY ticker").fetchall()
        return {r["ticker"]: _row_to_holding(r) for r in rows}

    def get_holding(self, ticker: str) -> Optional[Holding]:
        row = self.conn.execute(
            "SELECT * FROM holdings WHERE ticker = ?", (ticker,)).fetchone()
        return _row_to_holding(row) if row else None

    def save_holding(self, h: Holding) -> None:
        """Insert or replace the full record for h.ticker."""
        self.save_holdings([h])

    def save_holdings(self, holdings) -> None:
        columns      = _HOLDING_COLUMNS + _SCORE_COLUMNS
        placeholders = ", ".join("?" for _ in columns)
        updates      = ", ".join(f"{c} = excluded.{c}" for c in columns if c != "ticker")
        with _tx(self.conn):
            self.conn.executemany(f"""
                INSERT INTO holdings ({", ".join(columns)})
                VALUES ({placeholders})
                ON CONFLICT(ticker) DO UPDATE SET {updates}
            """, [_holding_params(h) for h in holdings])

    def delete_holding(self, ticker: str) -> bool:
        with _tx(self.conn):
            cur = self.conn.execute("DELETE FROM holdings WHERE ticker = ?", (ticker,))
        return cur.rowcount > 0

    def holding_count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM holdings").fetchone()[0]

    # ── Settings ──────────────────────────────────────────────────────────────

    def get_setting(self, key: str, default: Optional[str] = None) -> Optional[str]:
        row = self.conn.execute(
            "SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else default

    def set_setting(self, key: str, value: Optional[str]) -> None:
        """An empty or None value removes the key."""
        with _tx(self.conn):
            if value:
                self.conn.execute("""
                    INSERT INTO settings (key, value) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """, (key, value))
            else:
                self.conn.execute("DELETE FROM settings WHERE key = ?", (key,))

    # ── JSON backup ───────────────────────────────────────────────────────────

    def export_json_backup(self) -> None:
        """
        Write the holdings list and the brapi token to the backup file.
        Called after every write so the backup stays in sync.
        """
        if not self.backup_file:
            return
        data = {
            "holdings": [asdict(h) for h in self.get_all_holdings().values()],
            TOKEN_KEY:  self.get_setting(TOKEN_KEY, ""),
        }
        try:
            with open(self.backup_file, "w") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            print(f"[Warning] JSON backup failed: {e}")

    def close(self) -> None:
        self.conn.close()
