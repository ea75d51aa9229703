"""
Per-scrim scoring table and point calculation.
Converts a placement and kill count into points.
"""
import json
import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

import config

logger = logging.getLogger('scrimbot.scoring')


class ScoringConfig(BaseModel):
    """Placement points for 1st-8th, a flat value for 9th and worse, and points per kill."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    kill_points: int = Field(default=config.DEFAULT_SCORING['killPoints'], alias='killPoints')
    p1: int = config.DEFAULT_SCORING['p1']
    p2: int = config.DEFAULT_SCORING['p2']
    p3: int = config.DEFAULT_SCORING['p3']
    p4: int = config.DEFAULT_SCORING['p4']
    p5: int = config.DEFAULT_SCORING['p5']
    p6: int = config.DEFAULT_SCORING['p6']
    p7: int = config.DEFAULT_SCORING['p7']
    p8: int = config.DEFAULT_SCORING['p8']
    p9plus: int = config.DEFAULT_SCORING['p9plus']

    @field_validator('*', mode='before')
    @classmethod
    def clamp_to_range(cls, v: Any, info: ValidationInfo) -> int:
        """Coerce to int and clamp into range; unreadable values fall back to the default."""
        default = cls.model_fields[info.field_name].default
        if info.field_name == 'kill_points':
            low, high = config.KILL_POINTS_RANGE
        else:
            low, high = config.PLACEMENT_POINTS_RANGE

        if v is None or isinstance(v, bool):
            return default
        try:
            value = int(float(v))
        except (TypeError, ValueError, OverflowError):
            return default
        return max(low, min(high, value))

    def placement_table(self) -> dict:
        """Return placement points keyed by place 1-8."""
        return {place: getattr(self, f'p{place}') for place in range(1, 9)}

    def to_json(self) -> str:
        """Serialize using the stored key names (killPoints, p1..p8, p9plus)."""
        return json.dumps(self.model_dump(by_alias=True), separators=(',', ':'))


def load_scoring_config(raw: Any) -> ScoringConfig:
    """
    Build a ScoringConfig from stored scrim settings.

    Args:
        raw: None, a dict, a JSON string/bytes, or a ScoringConfig

    Returns:
        A clamped ScoringConfig. Missing or malformed input gives the defaults.
    """
    if isinstance(raw, ScoringConfig):
        return raw

    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode('utf-8', errors='replace')

    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else None
        except json.JSONDecodeError as e:
            logger.debug(f'Ignoring malformed scoring config: {e.msg}')
            raw = None

    if not isinstance(raw, dict):
        return ScoringConfig()

    try:
        return ScoringConfig.model_validate(raw)
    except ValidationError as e:
        logger.debug(f'Scoring config failed validation, using defaults: {e}')
        return ScoringConfig()


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def safe_kills(kills: Any) -> int:
    """Treat negative or non-numeric kill counts as 0."""
    value = _as_int(kills)
    if value is None or value < 0:
        return 0
    return value


def points_for_placement(place: Any, scoring: Optional[ScoringConfig]) -> int:
    """Points awarded for a placement; 9th and anything off the table gets p9plus."""
    if scoring is None:
        return 0
    value = _as_int(place)
    if value is not None and 1 <= value <= 8:
        return getattr(scoring, f'p{value}')
    return scoring.p9plus


def kill_points_for(kills: Any, scoring: Optional[ScoringConfig]) -> int:
    """Points awarded for kills alone."""
    if scoring is None:
        return 0
    return safe_kills(kills) * scoring.kill_points


def total_points(place: Any, kills: Any, scoring: Optional[ScoringConfig]) -> int:
    """Placement points plus kill points."""
    if scoring is None:
        return 0
    return points_for_placement(place, scoring) + kill_points_for(kills, scoring)
