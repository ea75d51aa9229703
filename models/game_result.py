"""
Per-game team result records.
Automated (OCR) and manual (staff) results share one shape.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Tuple
from models.team import normalize_tag


class ResultSource(str, Enum):
    """Where a result record came from."""
    AUTOMATED = 'automated'
    MANUAL = 'manual'


@dataclass
class ResultRecord:
    """Represents one team's placement, kills and points in one game."""
    scrim_id: int
    game: int
    team_tag: str
    place: int
    kills: int
    points: int
    source: ResultSource = ResultSource.AUTOMATED

    @property
    def is_manual(self) -> bool:
        return self.source == ResultSource.MANUAL

    @property
    def key(self) -> Tuple[int, str]:
        """Merge key: (game, normalized team tag)."""
        return (self.game, normalize_tag(self.team_tag))

    def as_manual(self) -> 'ResultRecord':
        """Return a copy of this record marked as a staff override."""
        return replace(self, source=ResultSource.MANUAL)
