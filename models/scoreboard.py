"""
Scoreboard text normalization and row parsing.
Turns raw OCR text from a match-result screenshot into per-placement rows.
"""
import re
from dataclasses import dataclass, field
from typing import List, Optional
import config

_DISALLOWED_CHARS = re.compile(r'[^A-Z0-9\r\n ]')
_SPACE_RUNS = re.compile(r' {2,}')
_NUMERIC_LINE = re.compile(r'^\d+$')


def normalize(raw_text: Optional[str]) -> str:
    """
    Clean raw OCR text into upper-case lines.

    Anything outside A-Z, 0-9, space and line breaks becomes a space, and
    runs of spaces collapse to one. Line breaks are preserved.
    """
    if not isinstance(raw_text, str) or not raw_text:
        return ""
    text = _DISALLOWED_CHARS.sub(' ', raw_text.upper())
    return _SPACE_RUNS.sub(' ', text)


def place_from_line(line: str) -> Optional[int]:
    """Return the placement a marker line announces, or None if it is not a marker."""
    if not isinstance(line, str):
        return None
    match = config.PLACE_PATTERN.match(line.strip())
    if not match:
        return None
    place = int(match.group(1))
    if 1 <= place <= config.MAX_PLACE:
        return place
    return None


def is_place_line(line: str) -> bool:
    """Check if a line is a placement marker ("#3", "12")."""
    return place_from_line(line) is not None


def kills_from_line(line: str) -> Optional[int]:
    """Return the kill count of an "N ELIMINATIONS" line, or None."""
    match = config.KILL_PATTERN.search(line)
    if not match:
        return None
    return int(match.group(1) or match.group(2))


def is_noise_line(line: str) -> bool:
    """Check if a line is heading/branding noise."""
    upper = line.upper()
    return any(token in upper for token in config.NOISE_TOKENS)


@dataclass
class ScoreboardRow:
    """One placement group read off a scoreboard screenshot."""
    place: int
    players: List[str] = field(default_factory=list)
    kills: List[int] = field(default_factory=list)

    @property
    def total_kills(self) -> int:
        """Sum of every kill line seen for this placement."""
        return sum(self.kills)

    @property
    def is_empty(self) -> bool:
        return not self.players and not self.kills

    def add_line(self, line: str) -> None:
        """Classify one segment line as kills, noise or a candidate player name."""
        kills = kills_from_line(line)
        if kills is not None:
            self.kills.append(kills)
            return

        if is_noise_line(line) or _NUMERIC_LINE.match(line):
            return

        if len(self.players) < config.MAX_PLAYERS_PER_ROW:
            self.players.append(line)

    @classmethod
    def parse_rows(cls, ocr_text: str) -> List['ScoreboardRow']:
        """
        Parse all placement rows from OCR text.

        Args:
            ocr_text: Text recognized in one screenshot (ideally normalized)

        Returns:
            List of ScoreboardRow objects (may be empty if nothing was readable)
        """
        if not isinstance(ocr_text, str):
            return []

        lines = [line.strip() for line in ocr_text.splitlines()]
        lines = [line for line in lines if line]

        rows = []
        i = 0
        while i < len(lines):
            place = place_from_line(lines[i])
            if place is None:
                i += 1
                continue

            row = cls(place=place)
            i += 1
            while i < len(lines) and not is_place_line(lines[i]):
                row.add_line(lines[i])
                i += 1

            if not row.is_empty:
                rows.append(row)

        return rows


def parse_rows(ocr_text: str) -> List[ScoreboardRow]:
    """Segment OCR text into scoreboard rows."""
    return ScoreboardRow.parse_rows(ocr_text)
