"""Assessment constants shared across the SDK.

These values are referenced by the scoring function, the engine, and the
local cache.  They mirror conventions encoded in the catalog under
``catalog/v1/``.

A few deployment-level values can be overridden via environment variables
so that operators can adjust them without code changes.
"""

import os

# Lower bound (inclusive) of each status band on the normalised 0-100
# score, checked from the top.  Anything below the last bound is "severe".
STATUS_THRESHOLDS: list[tuple[int, str]] = [
    (75, "normal"),
    (50, "mild"),
    (25, "moderate"),
]
LOWEST_STATUS = "severe"

# Likert scale in use by the shipped catalog (options 0-4).
DEFAULT_OPTION_COUNT = 5
MIN_OPTION_COUNT = 2

# Display languages.  Language only selects which string a renderer picks.
LANGUAGES: tuple[str, ...] = ("en", "nl")
DEFAULT_LANGUAGE = os.getenv("TRIAS_DEFAULT_LANGUAGE", "en")

# Local cache layout: one record per store under a fixed versioned key.
# Bumping CACHE_VERSION makes every existing record unreadable (fresh start).
CACHE_NAMESPACE = os.getenv("TRIAS_CACHE_NAMESPACE", "trias")
CACHE_VERSION = 1
ASSESSMENT_STORE = "assessment"
AUTH_STORE = "auth"

# How many background sync outcomes the engine keeps for inspection.
SYNC_HISTORY_SIZE = int(os.getenv("TRIAS_SYNC_HISTORY", "200"))
