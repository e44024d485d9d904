import sys
from pathlib import Path

# The bot runs from app/src (main.py appends its own directory to sys.path);
# mirror that so test modules can `import linkdrop...`.
SRC_DIR = Path(__file__).resolve().parents[1] / "app" / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))
