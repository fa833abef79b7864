import json
from typing import Any, Dict


def load_json(file_path: str) -> Dict[str, Any]:
    with open(file_path, "r") as f:
        return json.load(f)


def canonical_json(data: Any) -> bytes:
    """Deterministic JSON encoding used for content hashes."""
    return json.dumps(data, sort_keys=True, separators=(",", ":")).encode()
