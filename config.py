import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
DB_DIR = Path(os.environ.get("SCANSTOCK_DB_DIR", BASE_DIR / "database"))
DB_PATH = DB_DIR / "inventory.db"
LOG_DIR = Path(os.environ.get("SCANSTOCK_LOG_DIR", BASE_DIR / "logs"))
LOG_FILE = LOG_DIR / "scanstock.log"

LOG_LEVEL = os.environ.get("SCANSTOCK_LOG_LEVEL", "INFO").upper()
LOG_MAX_MB = int(os.environ.get("SCANSTOCK_LOG_MAX_MB", "10"))
LOG_BACKUPS = int(os.environ.get("SCANSTOCK_LOG_BACKUPS", "3"))

# Keyboard-wedge scanners type far faster than people; a longer gap starts a new burst.
BURST_THRESHOLD_MS = float(os.environ.get("SCANSTOCK_BURST_THRESHOLD_MS", "50"))
CANONICAL_MIN_LENGTH = 9

CAMERA_INDEX = int(os.environ.get("SCANSTOCK_CAMERA_INDEX", "0"))
CAMERA_POLL_INTERVAL_MS = 66
OPTICAL_RESCAN_COOLDOWN_MS = 500

NORMALIZE_MANUAL_ENTRY = os.environ.get("SCANSTOCK_NORMALIZE_MANUAL_ENTRY", "0") == "1"

LOW_STOCK_THRESHOLD = 10
