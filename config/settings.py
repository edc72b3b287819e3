"""
Central configuration for Demo Video Automator.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Base paths
BASE_DIR = Path(__file__).parent.parent
ASSETS_DIR = BASE_DIR / "modules" / "assets"
EFFECTS_SCRIPT = ASSETS_DIR / "cinematic_effects.js"

# Target application
DEFAULT_PORT = int(os.getenv("DEMO_PORT", "3003"))
DEFAULT_BASE_URL = os.getenv("DEMO_BASE_URL") or f"http://localhost:{DEFAULT_PORT}"
ALLOWED_HOSTS = [
    host.strip()
    for host in os.getenv("DEMO_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")
    if host.strip()
]

# Output
OUTPUT_DIR = Path(os.getenv("DEMO_OUTPUT_DIR", "demo-output"))
REPORT_FILENAME = "DEMO_REPORT.md"

# Browser / video settings
HEADLESS = os.getenv("DEMO_HEADLESS", "true").lower() not in ("false", "0", "no")
VIDEO_WIDTH = 1920
VIDEO_HEIGHT = 1080
RECORDING_FORMAT = "webm"
VIDEO_FORMAT = os.getenv("DEMO_VIDEO_FORMAT", RECORDING_FORMAT).lower()
VIDEO_CODEC = os.getenv("DEMO_VIDEO_CODEC", "h264").lower()

# Logging
LOG_LEVEL = os.getenv("DEMO_LOG_LEVEL", "INFO").upper()

# Declarative scripts
CONFIG_FILENAMES = ("demo.json", "demo.yaml", "demo.yml")
MAX_CONFIG_SIZE = 1024 * 1024           # 1 MB
MAX_CONFIG_DEPTH = 10                    # directory levels searched
MAX_INTERACTIONS = 100
MAX_TIMING_MS = 300000                   # 5 minutes
MAX_SELECTOR_LENGTH = 1000
MAX_TEXT_LENGTH = 10000
MAX_URL_LENGTH = 2000
MAX_FILENAME_LENGTH = 255
MIN_ZOOM = 1.0
MAX_ZOOM = 5.0
MIN_MOUSE_SPEED = 10
MAX_MOUSE_SPEED = 200

# Source analysis
SOURCE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")
IGNORED_DIRS = {"node_modules", ".git", "dist", "build", "coverage", ".next"}
MAX_SOURCE_FILE_SIZE = 1024 * 1024       # 1 MB
MEMORY_LIMIT_MB = 512
MEMORY_CHECK_INTERVAL = 50               # files between memory checks

# Execution
SELECTOR_TIMEOUTS = (2000, 4000, 8000)   # ms, one per resolution attempt
NAVIGATION_TIMEOUT = 30000
LOAD_STATE_TIMEOUT = 10000
MAX_SCRIPT_SIZE = 100 * 1024


def ensure_output_dirs(output_dir: Path = None) -> dict:
    """Create and return the output directory layout."""
    root = Path(output_dir or OUTPUT_DIR)
    paths = {
        "root": root,
        "videos": root / "videos",
        "screenshots": root / "screenshots",
    }
    for dir_path in paths.values():
        dir_path.mkdir(parents=True, exist_ok=True)
    return paths
