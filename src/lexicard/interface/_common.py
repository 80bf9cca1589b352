"""Shared helpers for CLI command modules."""

import json
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from lexicard.application.config import AppConfig, resolve_config


def _resolve_with_overrides(**kwargs: Any) -> AppConfig:
    """Resolve config, letting CLI flags that were actually given win."""
    return resolve_config({k: v for k, v in kwargs.items() if v is not None})


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(obj: Any) -> str:
    """Dump dataclasses (or lists of them) as indented JSON."""
    if isinstance(obj, list):
        data = [asdict(o) if is_dataclass(o) else o for o in obj]
    elif is_dataclass(obj):
        data = asdict(obj)
    else:
        data = obj
    return json.dumps(data, indent=2, ensure_ascii=False, default=_json_default)
