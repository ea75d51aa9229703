"""
Leaderboard aggregation and formatting.
Merges automated and manual results and totals them per team.
"""
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import config
from models.game_result import ResultRecord
from models.scoring import ScoringConfig, kill_points_for, points_for_placement, safe_kills
from models.team import Team, normalize_tag


@dataclass
class LeaderboardEntry:
    """A team's totals across every game of a scrim."""
    team_tag: str
    team_name: str
    slot: Optional[int] = None
    games: int = 0
    kills: int = 0
    placement_points: int = 0
    kill_points: int = 0
    points: int = 0

    @property
    def is_registered(self) -> bool:
        return self.slot is not None

    def sort_key(self) -> Tuple[int, int, float]:
        """Points desc, kills desc, slot asc with unregistered teams last."""
        slot = self.slot if self.slot is not None else math.inf
        return (-self.points, -self.kills, slot)


def merge_results(
    automated: Iterable[ResultRecord],
    manual: Iterable[ResultRecord]
) -> Dict[Tuple[int, str], ResultRecord]:
    """
    Build the effective result set keyed by (game, normalized team tag).

    Manual records overwrite automated ones at the same key, never blend.
    """
    effective: Dict[Tuple[int, str], ResultRecord] = {}
    for record in automated:
        effective[record.key] = record
    for record in manual:
        effective[record.key] = record
    return effective


def build_leaderboard(
    automated: Iterable[ResultRecord],
    manual: Iterable[ResultRecord],
    teams: Sequence[Team],
    scoring: Optional[ScoringConfig] = None
) -> List[LeaderboardEntry]:
    """
    Aggregate effective results into sorted per-team totals.

    Placement and kill points are recomputed from (place, kills) with the
    current scoring table, so stored points never go stale after a table
    change. Every registered team gets an entry, zero-filled if it has no
    results; results for unknown tags get a "(not registered)" entry.
    """
    if scoring is None:
        scoring = ScoringConfig()

    entries: Dict[str, LeaderboardEntry] = {}
    for team in teams:
        # Empty or already-claimed tags can't match results but still get a row
        key = team.tag_key
        if not key or key in entries:
            key = f'slot:{team.slot}'
        entries[key] = LeaderboardEntry(team_tag=team.team_tag, team_name=team.team_name, slot=team.slot)

    games_by_team: Dict[str, set] = {}
    for (game, key), record in merge_results(automated, manual).items():
        entry = entries.get(key)
        if entry is None:
            entry = LeaderboardEntry(team_tag=record.team_tag, team_name=config.UNREGISTERED_TEAM_NAME)
            entries[key] = entry

        kills = safe_kills(record.kills)
        placement_points = points_for_placement(record.place, scoring)
        kill_points = kill_points_for(kills, scoring)

        entry.kills += kills
        entry.placement_points += placement_points
        entry.kill_points += kill_points
        entry.points += placement_points + kill_points
        games_by_team.setdefault(key, set()).add(game)

    for key, games in games_by_team.items():
        entries[key].games = len(games)

    return sorted(entries.values(), key=LeaderboardEntry.sort_key)


def format_leaderboard(entries: Sequence[LeaderboardEntry], title: str = '') -> str:
    """Format leaderboard entries as a Discord message (display only)."""
    header = config.LEADERBOARD_HEADER
    if title:
        header = f"{header} - {title}"
    lines = [header, ""]

    if not entries:
        lines.append("No results yet!")
        return "\n".join(lines)

    lines.append("```text")
    lines.append(f"{'#':>2} {'TAG':<6} {'TEAM':<18} {'G':>2} {'K':>3} {'PP':>4} {'KP':>4} {'PTS':>4}")
    for rank, entry in enumerate(entries, 1):
        name = entry.team_name[:18]
        lines.append(
            f"{rank:>2} {entry.team_tag[:6]:<6} {name:<18} {entry.games:>2} {entry.kills:>3} "
            f"{entry.placement_points:>4} {entry.kill_points:>4} {entry.points:>4}"
        )
    lines.append("```")

    return "\n".join(lines)
