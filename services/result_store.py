"""
SQLite persistence for scrims, registered teams and result records.
Thin storage layer; all scoring decisions live in the models.
"""
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
import config
from models.game_result import ResultRecord, ResultSource
from models.scoring import ScoringConfig, load_scoring_config
from models.team import Team

logger = logging.getLogger('scrimbot.store')


class ScrimNotFoundError(LookupError):
    """Raised when a scrim id does not exist (or belongs to another guild)."""


@dataclass
class Scrim:
    """A scheduled scrim with its slot range and settings."""
    id: int
    guild_id: int
    name: str
    min_slot: int = config.DEFAULT_MIN_SLOT
    max_slot: int = config.DEFAULT_MAX_SLOT
    registration_open: bool = False
    scoring_json: Optional[str] = None

    @property
    def total_slots(self) -> int:
        return self.max_slot - self.min_slot + 1

    @property
    def scoring(self) -> ScoringConfig:
        return load_scoring_config(self.scoring_json)


class ResultStore:
    """Handle all database operations."""

    def __init__(self, db_path: str = config.DEFAULT_DATABASE_PATH):
        self.db_path = db_path
        self.conn: Optional[sqlite3.Connection] = None
        self.init_database()

    def init_database(self) -> None:
        """Create tables if they don't exist."""
        if self.db_path != ':memory:':
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")

        with self.conn:
            self.conn.executescript("""
                CREATE TABLE IF NOT EXISTS scrims (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    guild_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    min_slot INTEGER NOT NULL DEFAULT 2,
                    max_slot INTEGER NOT NULL DEFAULT 25,
                    registration_open INTEGER NOT NULL DEFAULT 0,
                    scoring_json TEXT,
                    created_at TEXT NOT NULL DEFAULT (datetime('now'))
                );

                CREATE TABLE IF NOT EXISTS teams (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    scrim_id INTEGER NOT NULL,
                    slot INTEGER NOT NULL,
                    team_name TEXT NOT NULL,
                    team_tag TEXT NOT NULL,
                    owner_user_id INTEGER,
                    confirmed INTEGER NOT NULL DEFAULT 0,
                    UNIQUE(scrim_id, slot),
                    UNIQUE(scrim_id, owner_user_id),
                    FOREIGN KEY(scrim_id) REFERENCES scrims(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS results (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    scrim_id INTEGER NOT NULL,
                    game INTEGER NOT NULL,
                    team_tag TEXT NOT NULL,
                    place INTEGER NOT NULL,
                    kills INTEGER NOT NULL DEFAULT 0,
                    points INTEGER NOT NULL DEFAULT 0,
                    source TEXT NOT NULL,
                    updated_at TEXT NOT NULL DEFAULT (datetime('now')),
                    UNIQUE(scrim_id, game, team_tag, source),
                    FOREIGN KEY(scrim_id) REFERENCES scrims(id) ON DELETE CASCADE
                );
            """)
        logger.debug(f'Database ready at {self.db_path}')

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    # Scrims

    def create_scrim(
        self,
        guild_id: int,
        name: str,
        min_slot: int = config.DEFAULT_MIN_SLOT,
        max_slot: int = config.DEFAULT_MAX_SLOT
    ) -> Scrim:
        with self.conn:
            cursor = self.conn.execute(
                "INSERT INTO scrims (guild_id, name, min_slot, max_slot) VALUES (?, ?, ?, ?)",
                (guild_id, name, min_slot, max_slot)
            )
        logger.info(f'Created scrim {cursor.lastrowid} "{name}" (slots {min_slot}-{max_slot})')
        return self.get_scrim(cursor.lastrowid)

    def get_scrim(self, scrim_id: int, guild_id: Optional[int] = None) -> Scrim:
        row = self.conn.execute("SELECT * FROM scrims WHERE id = ?", (scrim_id,)).fetchone()
        if row is None or (guild_id is not None and row['guild_id'] != guild_id):
            raise ScrimNotFoundError(f'Scrim {scrim_id} not found')
        return Scrim(
            id=row['id'],
            guild_id=row['guild_id'],
            name=row['name'],
            min_slot=row['min_slot'],
            max_slot=row['max_slot'],
            registration_open=bool(row['registration_open']),
            scoring_json=row['scoring_json'],
        )

    def set_registration_open(self, scrim_id: int, is_open: bool) -> None:
        with self.conn:
            self.conn.execute(
                "UPDATE scrims SET registration_open = ? WHERE id = ?",
                (int(is_open), scrim_id)
            )

    def set_scoring_config(self, scrim_id: int, scoring: ScoringConfig) -> None:
        with self.conn:
            self.conn.execute(
                "UPDATE scrims SET scoring_json = ? WHERE id = ?",
                (scoring.to_json(), scrim_id)
            )

    def scoring_config(self, scrim_id: int) -> ScoringConfig:
        return self.get_scrim(scrim_id).scoring

    # Teams

    @staticmethod
    def _team_from_row(row: sqlite3.Row) -> Team:
        return Team(
            team_tag=row['team_tag'],
            team_name=row['team_name'],
            slot=row['slot'],
            owner_user_id=row['owner_user_id'],
            confirmed=bool(row['confirmed']),
        )

    def teams(self, scrim_id: int) -> List[Team]:
        """Registered teams ordered by ascending slot."""
        rows = self.conn.execute(
            "SELECT * FROM teams WHERE scrim_id = ? ORDER BY slot ASC", (scrim_id,)
        ).fetchall()
        return [self._team_from_row(row) for row in rows]

    def team_by_owner(self, scrim_id: int, owner_user_id: int) -> Optional[Team]:
        row = self.conn.execute(
            "SELECT * FROM teams WHERE scrim_id = ? AND owner_user_id = ?",
            (scrim_id, owner_user_id)
        ).fetchone()
        return self._team_from_row(row) if row else None

    def insert_team(self, scrim_id: int, team: Team) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT INTO teams (scrim_id, slot, team_name, team_tag, owner_user_id, confirmed) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (scrim_id, team.slot, team.team_name, team.team_tag, team.owner_user_id, int(team.confirmed))
            )

    def delete_team_by_slot(self, scrim_id: int, slot: int) -> bool:
        with self.conn:
            cursor = self.conn.execute(
                "DELETE FROM teams WHERE scrim_id = ? AND slot = ?", (scrim_id, slot)
            )
        return cursor.rowcount > 0

    def delete_team_by_owner(self, scrim_id: int, owner_user_id: int) -> bool:
        with self.conn:
            cursor = self.conn.execute(
                "DELETE FROM teams WHERE scrim_id = ? AND owner_user_id = ?", (scrim_id, owner_user_id)
            )
        return cursor.rowcount > 0

    def set_confirmed(self, scrim_id: int, owner_user_id: int) -> bool:
        with self.conn:
            cursor = self.conn.execute(
                "UPDATE teams SET confirmed = 1 WHERE scrim_id = ? AND owner_user_id = ?",
                (scrim_id, owner_user_id)
            )
        return cursor.rowcount > 0

    # Results

    def upsert_result(self, record: ResultRecord) -> None:
        """Insert or overwrite the record for (scrim, game, team, source)."""
        with self.conn:
            self.conn.execute("""
                INSERT INTO results (scrim_id, game, team_tag, place, kills, points, source)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(scrim_id, game, team_tag, source) DO UPDATE SET
                    place = excluded.place,
                    kills = excluded.kills,
                    points = excluded.points,
                    updated_at = datetime('now')
            """, (
                record.scrim_id, record.game, record.team_tag, record.place,
                record.kills, record.points, record.source.value
            ))

    def results(self, scrim_id: int, source: ResultSource) -> List[ResultRecord]:
        rows = self.conn.execute(
            "SELECT * FROM results WHERE scrim_id = ? AND source = ? ORDER BY game ASC, place ASC",
            (scrim_id, source.value)
        ).fetchall()
        return [
            ResultRecord(
                scrim_id=row['scrim_id'],
                game=row['game'],
                team_tag=row['team_tag'],
                place=row['place'],
                kills=row['kills'],
                points=row['points'],
                source=ResultSource(row['source']),
            )
            for row in rows
        ]

    def delete_game(self, scrim_id: int, game: int) -> int:
        """Remove automated and manual results of one game."""
        with self.conn:
            cursor = self.conn.execute(
                "DELETE FROM results WHERE scrim_id = ? AND game = ?", (scrim_id, game)
            )
        return cursor.rowcount

    def clear_results(self, scrim_id: int) -> int:
        """Remove every result of a scrim."""
        with self.conn:
            cursor = self.conn.execute("DELETE FROM results WHERE scrim_id = ?", (scrim_id,))
        return cursor.rowcount
