"""Match sizing and turn schedule constants shared by the engine modules."""

MIN_PLAYERS = 2
MAX_PLAYERS = 8

TOTAL_TURNS = 4
MIN_TURN = 1
MAX_TURN = 4

# Community cards revealed at the start of each turn: hole cards only, flop, turn, river.
COMMUNITY_SCHEDULE = {1: 0, 2: 3, 3: 1, 4: 1}

MAX_NAME_LENGTH = 20

CARD_BACK_COLORS = ("blue", "red")

AVATAR_COLORS = (
    "#3498db",
    "#e74c3c",
    "#2ecc71",
    "#f39c12",
    "#9b59b6",
    "#1abc9c",
    "#e67e22",
    "#34495e",
)
