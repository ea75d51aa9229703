"""
Match result processing service.
Scores OCR'd scoreboard screenshots, records staff overrides and builds the leaderboard.
"""
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Sequence
import config
from models.game_result import ResultRecord, ResultSource
from models.leaderboard import LeaderboardEntry, build_leaderboard
from models.scoreboard import normalize, parse_rows
from models.scoring import ScoringConfig, safe_kills, total_points
from models.team import Team, detect_team, normalize_tag
from services.ocr_client import OCRError
from services.result_store import ResultStore

logger = logging.getLogger('scrimbot.results')


@dataclass
class ImageOutcome:
    """What happened to one screenshot of a batch."""
    image_ref: str
    success: bool
    rows_written: int = 0
    error: Optional[str] = None


@dataclass
class BatchReport:
    """Per-image outcomes of an OCR batch."""
    scrim_id: int
    game: int
    outcomes: List[ImageOutcome] = field(default_factory=list)

    @property
    def rows_written(self) -> int:
        return sum(outcome.rows_written for outcome in self.outcomes)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)


def score_text(
    ocr_text: str,
    scrim_id: int,
    game: int,
    teams: Sequence[Team],
    scoring: ScoringConfig
) -> List[ResultRecord]:
    """
    Turn one screenshot's OCR text into automated result records.

    Rows whose team can't be detected are skipped.
    """
    records = []
    for row in parse_rows(normalize(ocr_text)):
        team = detect_team(row.players, teams)
        if team is None:
            logger.debug(f'No team matched place {row.place} (names: {row.players})')
            continue

        kills = safe_kills(row.total_kills)
        records.append(ResultRecord(
            scrim_id=scrim_id,
            game=game,
            team_tag=team.team_tag,
            place=row.place,
            kills=kills,
            points=total_points(row.place, kills, scoring),
            source=ResultSource.AUTOMATED,
        ))
    return records


class ResultProcessor:
    """Processes result screenshots and manual overrides for scrims."""

    def __init__(self, store: ResultStore, ocr_client=None):
        self.store = store
        self.ocr_client = ocr_client

    def record_text(self, scrim_id: int, game: int, ocr_text: str) -> int:
        """Score OCR text for a game and upsert the automated records. Returns rows written."""
        teams = self.store.teams(scrim_id)
        scoring = self.store.scoring_config(scrim_id)
        records = score_text(ocr_text, scrim_id, game, teams, scoring)
        for record in records:
            self.store.upsert_result(record)
        return len(records)

    async def process_batch(self, scrim_id: int, game: int, image_refs: Iterable[str]) -> BatchReport:
        """
        OCR and score every screenshot of a game, one at a time.

        A failing screenshot is recorded in the report and the rest still run.
        """
        report = BatchReport(scrim_id=scrim_id, game=game)
        for image_ref in image_refs:
            try:
                text = await self.ocr_client.detect_text(image_ref)
                rows = self.record_text(scrim_id, game, text)
            except (OCRError, sqlite3.Error) as e:
                logger.warning(f'Skipping screenshot {image_ref} for scrim {scrim_id} game {game}: {e}')
                report.outcomes.append(ImageOutcome(image_ref=image_ref, success=False, error=str(e)))
                continue
            except Exception as e:
                logger.exception(f'Unexpected error on screenshot {image_ref} for scrim {scrim_id} game {game}')
                report.outcomes.append(ImageOutcome(image_ref=image_ref, success=False, error=repr(e)))
                continue

            logger.info(f'Scrim {scrim_id} game {game}: {rows} row(s) from {image_ref}')
            report.outcomes.append(ImageOutcome(image_ref=image_ref, success=True, rows_written=rows))

        return report

    def _canonical_tag(self, team_tag: str, teams: Sequence[Team]) -> str:
        """Map a staff-typed tag onto the registered team's tag when one matches."""
        key = normalize_tag(team_tag)
        for team in teams:
            if team.tag_key and team.tag_key == key:
                return team.team_tag
        return team_tag.strip().upper()

    def submit_manual_results(self, scrim_id: int, game: int, entries: Iterable[Mapping]) -> int:
        """
        Record staff overrides for a game.

        Args:
            entries: Mappings with place, team_tag and kills, one per placement (1-20)

        Returns:
            Number of manual records written
        """
        teams = self.store.teams(scrim_id)
        scoring = self.store.scoring_config(scrim_id)
        written = 0

        for entry in entries:
            team_tag = str(entry.get('team_tag') or '').strip()
            try:
                place = int(entry.get('place'))
            except (TypeError, ValueError):
                continue
            if not team_tag or not 1 <= place <= config.MANUAL_MAX_PLACE:
                continue

            kills = safe_kills(entry.get('kills'))
            self.store.upsert_result(ResultRecord(
                scrim_id=scrim_id,
                game=game,
                team_tag=self._canonical_tag(team_tag, teams),
                place=place,
                kills=kills,
                points=total_points(place, kills, scoring),
                source=ResultSource.MANUAL,
            ))
            written += 1

        logger.info(f'Scrim {scrim_id} game {game}: {written} manual result(s) saved')
        return written

    def leaderboard(self, scrim_id: int) -> List[LeaderboardEntry]:
        """Compute the leaderboard fresh from stored automated and manual results."""
        return build_leaderboard(
            self.store.results(scrim_id, ResultSource.AUTOMATED),
            self.store.results(scrim_id, ResultSource.MANUAL),
            self.store.teams(scrim_id),
            self.store.scoring_config(scrim_id),
        )
