"""
Configuration settings for the Scrim Results Bot.
Centralized location for all constants and settings.
"""
import re

# Discord Bot Settings
COMMAND_PREFIX = "!"
LEADERBOARD_HEADER = "🏆 Scrim Leaderboard"
TEAM_LIST_HEADER = "📋 Team List"
UNREGISTERED_TEAM_NAME = "(not registered)"

# Environment defaults
DEFAULT_DATABASE_PATH = "scrims.db"
DEFAULT_LOG_LEVEL = "INFO"

# Scrim slot range (matches the registration panel defaults)
DEFAULT_MIN_SLOT = 2
DEFAULT_MAX_SLOT = 25
TEAM_TAG_MAX_LENGTH = 6

# Scoreboard parsing
MAX_PLACE = 25
MAX_PLAYERS_PER_ROW = 4
NOISE_TOKENS = ("PUBG", "MOBILE", "MATCH", "RESULT")

# Place marker: optional '#' followed by 1-2 digits, e.g. "#3" or "12"
PLACE_PATTERN = re.compile(r'^#?(\d{1,2})$')

# Kill line: "3 ELIMINATION" or "12 ELIMINATIONS"
KILL_PATTERN = re.compile(
    r'\b(\d{1,2})\s*ELIMINATION\b|\b(\d+)\s*ELIMINATIONS\b',
    re.IGNORECASE
)

# Characters dropped from names and tags before tag matching
TAG_STRIP_PATTERN = re.compile(r'[\s|._\-]+')

# Team detection
MIN_TEAM_MATCHES = 2

# Manual override entry covers placements 1-20
MANUAL_MAX_PLACE = 20

# Scoring table defaults and bounds
KILL_POINTS_RANGE = (0, 50)
PLACEMENT_POINTS_RANGE = (0, 200)
DEFAULT_SCORING = {
    'killPoints': 1,
    'p1': 10,
    'p2': 6,
    'p3': 5,
    'p4': 4,
    'p5': 3,
    'p6': 2,
    'p7': 1,
    'p8': 1,
    'p9plus': 0,
}

# Google Cloud Vision
VISION_ENDPOINT = "https://vision.googleapis.com/v1/images:annotate"
VISION_TIMEOUT_SECONDS = 30
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp")
