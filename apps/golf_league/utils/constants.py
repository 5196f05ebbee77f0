"""
Constants used across the golf league operations system.
"""

# Scoring
ROLLING_WINDOW = 6  # Number of most recent rounds in a player's average
NEW_PLAYER_LABEL = "New"  # Score-to-beat label until a player has a full window

# Event defaults
DEFAULT_HOLES = 18
VALID_HOLES = (9, 18)
MIN_SLOTS_PER_GROUP = 2
MAX_SLOTS_PER_GROUP = 4
DEFAULT_SLOTS_PER_GROUP = 4
DEFAULT_TEE_INTERVAL_MINUTES = 10
MINUTES_PER_DAY = 24 * 60

# RSVP messaging
DEFAULT_RSVP_SEND_DELAY_SECONDS = 1.0
DEFAULT_SCHEDULE_POLL_SECONDS = 60
RSVP_RESPONSES = ("yes", "no")
