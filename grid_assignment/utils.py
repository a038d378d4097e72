import os
import math
from typing import Any, Mapping
from dataclasses import is_dataclass, asdict
from enum import Enum


def _project_root() -> str:
    """Directory holding the grid_assignment package."""
    return os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))


def _default_output_dir() -> str:
    return os.path.join(_project_root(), "data", "outputs")


def _ensure_output_dir(path: str) -> str:
    os.makedirs(path, exist_ok=True)
    return path


def _resolve_path(path: str) -> str:
    """Paths that don't exist as given are looked up under the project root."""
    if not path or os.path.isabs(path) or os.path.exists(path):
        return path
    return os.path.join(_project_root(), path)


def _to_json_compatible(obj: Any) -> Any:
    """Convert dataclasses, enums, read-only mappings and sequences into JSON primitives."""
    if is_dataclass(obj) and not isinstance(obj, type):
        return _to_json_compatible(asdict(obj))
    if isinstance(obj, Enum):
        return obj.name
    if isinstance(obj, Mapping):
        return {str(k): _to_json_compatible(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_to_json_compatible(v) for v in obj]
    if isinstance(obj, float) and not math.isfinite(obj):
        # json.dump would write Infinity/NaN, which strict parsers reject
        return None
    return obj
