from zvote_toolkit.utils.file_utils import canonical_json, load_json

__all__ = [
    "canonical_json",
    "load_json",
]
