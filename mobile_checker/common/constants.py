"""Application constants."""

from pathlib import Path

USER_AGENT = "mobile-checker/1.0 (+uk mobile coverage lookup)"
DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"
DEFAULT_DATA_DIR = Path.home() / ".mobile-checker" / "data"
COMMANDS = ("setup", "check")
OPERATORS = ("EE", "O2", "Three", "Vodafone")
NOT_AVAILABLE = "N/A"
# Ofcom counts a postcode as covered when at least half its premises are.
COVERED_THRESHOLD = 0.5
STORE_FILENAME = "mobile.db"
STORE_TABLE = "mobile"
POSTCODE_COLUMN = "postcode"
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "edition",
    "postcode",
    "event",
    "status",
    "duration_ms",
    "rows_in",
    "rows_out",
    "rows_skipped",
    "error_code",
    "message",
)
