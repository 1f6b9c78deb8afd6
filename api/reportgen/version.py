"""Version information for the reportgen service."""
from pathlib import Path

VERSION_FILE = Path(__file__).resolve().parents[2] / "VERSION"

API_VERSION = VERSION_FILE.read_text().strip() if VERSION_FILE.is_file() else "0.0.0"
