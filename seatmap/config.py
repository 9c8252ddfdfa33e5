import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

PACKAGE_DIR = Path(__file__).resolve().parent

DATABASE_URL = os.getenv("SEATMAP_DATABASE_URL", "sqlite:///./seatmap.db")

PHOTO_DIR = Path(os.getenv("SEATMAP_PHOTO_DIR", PACKAGE_DIR / "photos"))

# size of a brand new seat map, also used when a saved one lacks dimensions
DEFAULT_ROWS = int(os.getenv("SEATMAP_DEFAULT_ROWS", "5"))
DEFAULT_COLS = int(os.getenv("SEATMAP_DEFAULT_COLS", "6"))

# largest grid that still fits one landscape A4 page at the minimum cell size
MAX_ROWS = int(os.getenv("SEATMAP_MAX_ROWS", "16"))
MAX_COLS = int(os.getenv("SEATMAP_MAX_COLS", "20"))

# seconds to wait for a remote photo before drawing the placeholder
PHOTO_TIMEOUT = float(os.getenv("SEATMAP_PHOTO_TIMEOUT", "5"))

LOG_LEVEL = os.getenv("SEATMAP_LOG_LEVEL", "INFO").upper()

# students with any other status are not part of a classroom's roster
ACTIVE_STATUS = os.getenv("SEATMAP_ACTIVE_STATUS", "Ativo")
