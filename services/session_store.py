"""
Per-channel pending screenshot batches.
A staff member starts a batch for (scrim, game), posts screenshots, then finishes it.
"""
from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Optional


@dataclass
class MatchSession:
    """Screenshots collected for one game of one scrim."""
    scrim_id: int
    game: int
    images: List[str] = field(default_factory=list)
    started_by: Optional[int] = None

    def accepts_from(self, user_id: int) -> bool:
        """Only the member who started the batch may add screenshots to it."""
        return self.started_by is None or self.started_by == user_id


class MatchSessionStore:
    """Keyed store of open match sessions, one per channel."""

    def __init__(self):
        self._sessions: Dict[Hashable, MatchSession] = {}

    def begin(self, channel_key: Hashable, scrim_id: int, game: int, started_by: Optional[int] = None) -> MatchSession:
        """Start a new batch for a channel, discarding any batch already open there."""
        session = MatchSession(scrim_id=scrim_id, game=game, started_by=started_by)
        self._sessions[channel_key] = session
        return session

    def collect(self, channel_key: Hashable, image_ref: str) -> bool:
        """Add an image to the channel's batch. Returns False if no batch is open."""
        session = self._sessions.get(channel_key)
        if session is None:
            return False
        session.images.append(image_ref)
        return True

    def finish(self, channel_key: Hashable) -> Optional[MatchSession]:
        """Close the channel's batch and return it (None if none was open)."""
        return self._sessions.pop(channel_key, None)

    def get(self, channel_key: Hashable) -> Optional[MatchSession]:
        return self._sessions.get(channel_key)

    def is_active(self, channel_key: Hashable) -> bool:
        return channel_key in self._sessions
