"""Application constants - all magic numbers centralized."""

# Web search
SEARCH_MAX_RESULTS = 5
SEARCH_TIMEOUT_SECONDS = 10.0
SEARCH_RECENT_RESTRICT = "y1"  # Google dateRestrict: past year
GOOGLE_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"

# Source quality scoring (0-100)
QUALITY_BASE_SCORE = 50
QUALITY_TRUSTED_BONUS = 30
QUALITY_SNIPPET_BONUS = 10
QUALITY_SNIPPET_MIN_LENGTH = 100
TRUSTED_DOMAINS = (
    "edu", "gov", "arxiv.org", "medium.com",
    "youtube.com", "coursera.org", "mit.edu",
    "stanford.edu", "harvard.edu",
)

# Model rate limiting
RATE_LIMIT_WINDOW_SECONDS = 60.0
