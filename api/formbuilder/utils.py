
import json
import time
from typing import Optional

def canonical_json(obj) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"))

def load_json(text: str, default):
    if not text:
        return default
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return default

def now_ms() -> int:
    return int(time.time() * 1000)

# Largest value a signed 64-bit INTEGER primary key can hold.
MAX_ROW_ID = 2**63 - 1

def parse_row_id(text: str) -> Optional[int]:
    """Return ``text`` as a row id, or None when it cannot name a row."""
    if not (text.isascii() and text.isdigit()):
        return None
    value = int(text)
    return value if value <= MAX_ROW_ID else None
