"""Constants used across studio-export.

Positional schema indices and scroll tuning defaults live here so that a
change in the source application's wire format or rendering touches one place.
"""

# Wire payload schema (positional, undocumented)
ROLE_USER = "user"
ROLE_MODEL = "model"
RESERVED_MARKERS = frozenset({ROLE_USER, ROLE_MODEL, "function"})
THINKING_FLAG_INDEX = 19  # == 1 on reasoning-only turns
RESPONSE_FLAG_INDEX = 16  # == 1 on regular response turns
TITLE_INDEX = 4  # payload[0][4][0] holds the conversation title
TURN_LIST_MAX_DEPTH = 4
TURN_SNIFF_WIDTH = 5  # children inspected when sniffing a turn list
TEXT_SCAN_WIDTH = 3  # leading turn elements that may hold authored text
TEXT_SCAN_MAX_DEPTH = 3
XSSI_PREFIX = ")]}'"

# Scroll driver tuning
SCROLL_DELAY_MS = 50
SCROLL_INCREMENT_PX = 150
INITIAL_NUDGE_PX = 10
INITIAL_NUDGE_DELAY_MS = 100
PRELOAD_ATTEMPTS = 5
UPWARD_SCROLL_DELAY_MS = 1000
BOTTOM_DETECTION_TOLERANCE_PX = 10
MIN_SCROLL_DISTANCE_PX = 5
MAX_SCROLL_ATTEMPTS = 10000
FINAL_COLLECTION_DELAY_MS = 300
PROGRESS_LOG_EVERY = 20

# Document collector
THOUGHT_EXPAND_DELAY_MS = 500
THOUGHT_MIN_LENGTH = 10
RAW_MODE_RENDER_DELAY_MS = 300
SCROLL_PARENT_SEARCH_DEPTH = 5

# Output
FILENAME_MAX_CHARS = 100
FALLBACK_TITLE_PREFIX = "AI_Studio_Export_"

# Wire payload capture on a live page
CAPTURE_ENDPOINTS = ("ResolveDriveResource", "CreatePrompt", "UpdatePrompt")
PAYLOAD_CAPTURE_WAIT_MS = 5000
