"""
Team registration and slot allocation service.
Handles registering, confirming and removing teams in a scrim's slot range.
"""
import logging
from typing import Iterable, List, Optional
import config
from models.team import Team, normalize_tag
from services.result_store import ResultStore, Scrim

logger = logging.getLogger('scrimbot.registry')


class RegistrationError(Exception):
    """Raised when a registration request can't be honored. Message is user-facing."""


def next_free_slot(used_slots: Iterable[int], min_slot: int, max_slot: int) -> Optional[int]:
    """Return the lowest unused slot in [min_slot, max_slot], or None when full."""
    used = set(used_slots)
    for slot in range(min_slot, max_slot + 1):
        if slot not in used:
            return slot
    return None


def format_team_list(scrim: Scrim, teams: List[Team]) -> str:
    """Format the scrim's slot list as a Discord message."""
    by_slot = {team.slot: team for team in teams}
    status = "🟢 OPEN" if scrim.registration_open else "🔴 CLOSED"
    lines = [
        f"{config.TEAM_LIST_HEADER} - {scrim.name}",
        f"Teams: {len(teams)}/{scrim.total_slots} | Registration: {status}",
        "",
    ]
    for slot in range(scrim.min_slot, scrim.max_slot + 1):
        team = by_slot.get(slot)
        if team is None:
            lines.append(f"**#{slot}** _empty_")
        else:
            mark = "✅" if team.confirmed else "⏳"
            lines.append(f"**#{slot}** **{team.team_tag}** {team.team_name} {mark}")
    return "\n".join(lines)


class TeamRegistry:
    """Registers teams into scrim slots."""

    def __init__(self, store: ResultStore):
        self.store = store

    def register(self, scrim_id: int, owner_user_id: int, team_name: str, team_tag: str) -> Team:
        """
        Register a team into the next free slot.

        Raises:
            RegistrationError: If registration is closed, data is missing,
                the owner already has a team, the tag is taken, or the scrim is full
        """
        scrim = self.store.get_scrim(scrim_id)
        team_name = (team_name or '').strip()
        team_tag = (team_tag or '').strip().upper()[:config.TEAM_TAG_MAX_LENGTH]

        if not team_name or not team_tag:
            raise RegistrationError("Team name and tag are required.")
        if not normalize_tag(team_tag):
            raise RegistrationError("Team tag needs at least one letter or digit.")
        if not scrim.registration_open:
            raise RegistrationError("Registration is closed.")

        existing = self.store.team_by_owner(scrim_id, owner_user_id)
        if existing:
            raise RegistrationError(f"Already registered as {existing.team_tag} in slot #{existing.slot}.")

        teams = self.store.teams(scrim_id)
        # Results are matched on the normalized tag, so D-S and DS would collide
        clash = next((team for team in teams if team.tag_key == normalize_tag(team_tag)), None)
        if clash:
            raise RegistrationError(f"Tag {team_tag} is already taken by {clash.team_tag} in slot #{clash.slot}.")

        used = [team.slot for team in teams]
        slot = next_free_slot(used, scrim.min_slot, scrim.max_slot)
        if slot is None:
            raise RegistrationError("No slots left.")

        team = Team(team_tag=team_tag, team_name=team_name, slot=slot, owner_user_id=owner_user_id)
        self.store.insert_team(scrim_id, team)
        logger.info(f'Registered {team_tag} ({team_name}) in slot #{slot} of scrim {scrim_id}')
        return team

    def unregister(self, scrim_id: int, owner_user_id: int) -> bool:
        removed = self.store.delete_team_by_owner(scrim_id, owner_user_id)
        if removed:
            logger.info(f'Owner {owner_user_id} left scrim {scrim_id}')
        return removed

    def remove_slot(self, scrim_id: int, slot: int) -> bool:
        """Staff removal of whatever team holds a slot."""
        removed = self.store.delete_team_by_slot(scrim_id, slot)
        if removed:
            logger.info(f'Removed slot #{slot} from scrim {scrim_id}')
        return removed

    def confirm(self, scrim_id: int, owner_user_id: int) -> Team:
        """Confirm the owner's team for the scrim."""
        if not self.store.set_confirmed(scrim_id, owner_user_id):
            raise RegistrationError("You don't have a team in this scrim.")
        return self.store.team_by_owner(scrim_id, owner_user_id)

    def set_registration_open(self, scrim_id: int, is_open: bool) -> None:
        self.store.get_scrim(scrim_id)
        self.store.set_registration_open(scrim_id, is_open)
        logger.info(f'Registration for scrim {scrim_id} is now {"open" if is_open else "closed"}')
