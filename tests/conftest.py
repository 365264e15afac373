import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"

# Import the package from src without requiring an install
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))
