"""
Configuration constants and environment setup.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# =============================================================================
# PATHS
# =============================================================================

PROJECT_ROOT = Path(__file__).parent.parent.parent
EVENTS_PATH = os.getenv(
    "SWIPE_LEDGER_EVENTS_PATH",
    str(PROJECT_ROOT / "data" / "raw" / "swipe_events.csv"),
)
# Optional uid -> name directory; enrichment is skipped when unset
DIRECTORY_PATH = os.getenv("SWIPE_LEDGER_DIRECTORY_PATH") or None

# =============================================================================
# ACTION VOCABULARY
# =============================================================================

ENTRY_ACTION = os.getenv("SWIPE_LEDGER_ENTRY_ACTION", "Entry")
EXIT_ACTION = os.getenv("SWIPE_LEDGER_EXIT_ACTION", "Exit")

# =============================================================================
# CATEGORIES
# =============================================================================

CATEGORY_STUDY = "Study Session"
CATEGORY_FRONT_DESK = "Front Desk"
CATEGORIES = [CATEGORY_STUDY, CATEGORY_FRONT_DESK]

# Applied by the API when a request does not name one; empty means all
DEFAULT_CATEGORY = os.getenv("SWIPE_LEDGER_DEFAULT_CATEGORY", "")
# Request value that overrides DEFAULT_CATEGORY and selects every category
ALL_CATEGORIES = "all"

# =============================================================================
# ACADEMIC CALENDAR
# =============================================================================
# Update once per year when the academic calendar changes.

FALL_SEMESTER_FIRST_DAY = os.getenv("SWIPE_LEDGER_FALL_FIRST_DAY", "2025-09-01")
WINTER_BREAK_FIRST_DAY = os.getenv("SWIPE_LEDGER_WINTER_FIRST_DAY", "2025-12-16")
WINTER_BREAK_LAST_DAY = os.getenv("SWIPE_LEDGER_WINTER_LAST_DAY", "2026-01-28")
