"""
Player Memory System

Persists what a player carries from one case to the next: the progression
counter that sets case difficulty, their username, the history of completed
cases and free-form notes per case.

SessionContext is handed to the lifecycle controller at construction. The
controller reads the counter when a case is selected and saves it right after
an increment; nothing else in the engine touches storage.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from constants import DEFAULT_DB_PATH
from exceptions import DatabaseError
from metrics import track_db_query

if TYPE_CHECKING:
    from case_model import Case
    from evaluation import Evaluation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletedCase:
    case_id: str
    title: str
    area: str
    procedure: str
    score: int
    evaluation: dict[str, Any]
    completed_at: str  # ISO-8601, UTC

    def to_dict(self) -> dict[str, Any]:
        return {
            "case_id": self.case_id,
            "title": self.title,
            "area": self.area,
            "procedure": self.procedure,
            "score": self.score,
            "evaluation": self.evaluation,
            "completed_at": self.completed_at,
        }


class SessionContext:
    """Persistent per-player state consumed by the lifecycle controller."""

    def __init__(self, player_id: str, db_path: str = DEFAULT_DB_PATH):
        self.player_id = player_id
        self.db_path = db_path

        self.username = ""
        self.completed_cases = 0

        self._init_database()
        self.load()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init_database(self) -> None:
        """Create database tables if they don't exist."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            with closing(self._connect()) as conn:
                cursor = conn.cursor()

                cursor.execute('''
                    CREATE TABLE IF NOT EXISTS players (
                        player_id TEXT PRIMARY KEY,
                        username TEXT DEFAULT '',
                        completed_cases INTEGER DEFAULT 0,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        last_seen TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                ''')

                cursor.execute('''
                    CREATE TABLE IF NOT EXISTS case_history (
                        history_id INTEGER PRIMARY KEY AUTOINCREMENT,
                        player_id TEXT,
                        case_id TEXT,
                        title TEXT,
                        area TEXT,
                        procedure TEXT,
                        score INTEGER,
                        evaluation JSON,
                        completed_at TEXT,
                        FOREIGN KEY (player_id) REFERENCES players (player_id)
                    )
                ''')

                cursor.execute('''
                    CREATE TABLE IF NOT EXISTS case_notes (
                        player_id TEXT,
                        case_id TEXT,
                        note TEXT,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        PRIMARY KEY (player_id, case_id),
                        FOREIGN KEY (player_id) REFERENCES players (player_id)
                    )
                ''')

                conn.commit()
        except sqlite3.Error as e:
            raise DatabaseError(f"Could not initialise player database: {e}") from e

    def load(self) -> None:
        """Load (or create) the player row. Called at construction and on case selection."""
        try:
            with track_db_query("select"), closing(self._connect()) as conn:
                cursor = conn.cursor()
                cursor.execute(
                    'SELECT username, completed_cases FROM players WHERE player_id = ?',
                    (self.player_id,),
                )
                row = cursor.fetchone()

                if row is None:
                    cursor.execute('INSERT INTO players (player_id) VALUES (?)', (self.player_id,))
                    logger.info("[PlayerMemory] Created player %s", self.player_id)
                else:
                    self.username = row[0] or ""
                    self.completed_cases = row[1] or 0

                cursor.execute(
                    'UPDATE players SET last_seen = CURRENT_TIMESTAMP WHERE player_id = ?',
                    (self.player_id,),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise DatabaseError(f"Could not load player {self.player_id}: {e}") from e

    def load_progression(self) -> int:
        """
        Re-read the progression counter from storage.

        The counter only grows, so an in-memory value ahead of storage is an
        increment whose save failed: it is kept and saved again.
        """
        in_memory = self.completed_cases
        self.load()
        if in_memory > self.completed_cases:
            logger.warning(
                "[PlayerMemory] Re-saving unsaved progression for %s (%d > %d)",
                self.player_id, in_memory, self.completed_cases,
            )
            self.completed_cases = in_memory
            self.save_progression()
        return self.completed_cases

    def save_progression(self) -> None:
        self._update_player('completed_cases', self.completed_cases)

    def set_username(self, username: str) -> None:
        self.username = username.strip()
        self._update_player('username', self.username)

    def _update_player(self, column: str, value: Any) -> None:
        try:
            with track_db_query("update"), closing(self._connect()) as conn:
                conn.execute(
                    f'UPDATE players SET {column} = ?, last_seen = CURRENT_TIMESTAMP WHERE player_id = ?',
                    (value, self.player_id),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise DatabaseError(f"Could not update {column} for {self.player_id}: {e}") from e

    def record_completed_case(self, case: Case, evaluation: Evaluation) -> CompletedCase:
        entry = CompletedCase(
            case_id=case.id,
            title=case.title,
            area=case.area,
            procedure=case.procedure.value,
            score=evaluation.score,
            evaluation=evaluation.model_dump(mode="json"),
            completed_at=datetime.now(timezone.utc).isoformat(),
        )
        try:
            with track_db_query("insert"), closing(self._connect()) as conn:
                conn.execute('''
                    INSERT INTO case_history
                    (player_id, case_id, title, area, procedure, score, evaluation, completed_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ''', (
                    self.player_id,
                    entry.case_id,
                    entry.title,
                    entry.area,
                    entry.procedure,
                    entry.score,
                    json.dumps(entry.evaluation),
                    entry.completed_at,
                ))
                conn.commit()
        except sqlite3.Error as e:
            raise DatabaseError(f"Could not record case {case.id}: {e}") from e
        return entry

    def get_case_history(self) -> list[CompletedCase]:
        """Completed cases, most recent first."""
        try:
            with track_db_query("select"), closing(self._connect()) as conn:
                rows = conn.execute('''
                    SELECT case_id, title, area, procedure, score, evaluation, completed_at
                    FROM case_history WHERE player_id = ?
                    ORDER BY completed_at DESC, history_id DESC
                ''', (self.player_id,)).fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(f"Could not read case history: {e}") from e

        return [
            CompletedCase(
                case_id=row[0],
                title=row[1],
                area=row[2],
                procedure=row[3],
                score=row[4],
                evaluation=json.loads(row[5]) if row[5] else {},
                completed_at=row[6],
            )
            for row in rows
        ]

    def get_notes(self, case_id: str) -> str:
        try:
            with closing(self._connect()) as conn:
                row = conn.execute(
                    'SELECT note FROM case_notes WHERE player_id = ? AND case_id = ?',
                    (self.player_id, case_id),
                ).fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Could not read notes for {case_id}: {e}") from e
        return row[0] if row else ""

    def save_notes(self, case_id: str, note: str) -> None:
        try:
            with closing(self._connect()) as conn:
                conn.execute('''
                    INSERT OR REPLACE INTO case_notes (player_id, case_id, note, updated_at)
                    VALUES (?, ?, ?, CURRENT_TIMESTAMP)
                ''', (self.player_id, case_id, note))
                conn.commit()
        except sqlite3.Error as e:
            raise DatabaseError(f"Could not save notes for {case_id}: {e}") from e


def get_or_create_session_context(player_id: Optional[str], db_path: str = DEFAULT_DB_PATH) -> SessionContext:
    """Factory used by the web server; anonymous players get a throwaway id."""
    if not player_id:
        player_id = f"guest_{datetime.now(timezone.utc).strftime('%Y%m%d%H%M%S%f')}"
    return SessionContext(player_id, db_path=db_path)
