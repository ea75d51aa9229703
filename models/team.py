"""
Registered team data and tag-based team detection.
Matches OCR'd player names against team tags.
"""
from dataclasses import dataclass
from typing import Optional, Sequence
import config


@dataclass
class Team:
    """A team registered into one scrim slot."""
    team_tag: str
    team_name: str
    slot: int
    owner_user_id: Optional[int] = None
    confirmed: bool = False

    @property
    def tag_key(self) -> str:
        """Normalized tag used for matching and grouping."""
        return normalize_tag(self.team_tag)


def normalize_tag(value: Optional[str]) -> str:
    """Upper-case and drop whitespace and | . _ - separators."""
    if not value:
        return ""
    return config.TAG_STRIP_PATTERN.sub('', str(value).upper())


def count_tagged(candidate_names: Sequence[str], team: Team) -> int:
    """Count how many candidate names carry the team's tag."""
    tag = team.tag_key
    if not tag:
        return 0
    return sum(1 for name in candidate_names if tag in normalize_tag(name))


def detect_team(
    candidate_names: Sequence[str],
    teams: Sequence[Team],
    min_matches: int = config.MIN_TEAM_MATCHES
) -> Optional[Team]:
    """
    Pick the team whose tag appears in the most candidate names.

    Args:
        candidate_names: Player name strings read from one scoreboard row
        teams: Registered teams, in slot order
        min_matches: Minimum tagged names required for a team to qualify

    Returns:
        The best matching Team, or None if no team reaches min_matches.
        Ties go to the team listed first.
    """
    best_team = None
    best_count = 0

    for team in teams:
        tagged = count_tagged(candidate_names, team)
        if tagged < min_matches:
            continue
        if best_team is None or tagged > best_count:
            best_team = team
            best_count = tagged

    return best_team
