from typing import Tuple
from linkdrop.infra.logging import logger, log_event


def load_catalog(path: str) -> Tuple[str, ...]:
    """Read the distributable links, one per line. Blank lines are ignored."""
    with open(path, "r", encoding="utf-8") as f:
        items = tuple(line.strip() for line in f if line.strip())
    if not items:
        logger.warning(f"[catalog] {path} is empty, every draw will be refused")
    log_event("catalog_loaded", path=path, items=len(items), unique=len(set(items)))
    return items
