"""
Configuration loader module.

Provides centralized access to the legal areas offered on the case selection
screen and the procedure kind each of them is litigated under.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from case_model import ProcedureKind
from exceptions import UnknownLegalAreaError

# Load configuration once at module import
_CONFIG_DIR = Path(__file__).parent
_LEGAL_AREAS_PATH = _CONFIG_DIR / "legal_areas.json"

# Cache for loaded config
_legal_areas: dict[str, Any] | None = None


def get_legal_areas_config() -> dict[str, Any]:
    """
    Load and return the legal areas configuration.

    Returns cached version after first load.
    """
    global _legal_areas

    if _legal_areas is None:
        if not _LEGAL_AREAS_PATH.exists():
            raise FileNotFoundError(f"Legal areas not found: {_LEGAL_AREAS_PATH}")

        with open(_LEGAL_AREAS_PATH, encoding="utf-8") as f:
            _legal_areas = json.load(f)

    return _legal_areas


def resolve_area_id(area: str) -> str:
    """
    Map an area id or display name onto its canonical id.

    Example: 'Labour Law' -> 'labour', 'criminal' -> 'criminal'
    """
    config = get_legal_areas_config()
    if area in config["areas"]:
        return area
    canonical = config.get("areaAliases", {}).get(area)
    if canonical is None:
        raise UnknownLegalAreaError(area)
    return canonical


def get_legal_areas() -> list[dict[str, Any]]:
    """Areas in display order, each with its id attached."""
    config = get_legal_areas_config()
    return [{"id": area_id, **entry} for area_id, entry in config["areas"].items()]


def get_area_name(area: str) -> str:
    return get_legal_areas_config()["areas"][resolve_area_id(area)]["name"]


def get_procedure_for_area(area: str) -> ProcedureKind:
    """
    Written procedure for civil and family matters, oral for criminal and labour.

    Raises UnknownLegalAreaError for areas not in the configuration.
    """
    entry = get_legal_areas_config()["areas"][resolve_area_id(area)]
    return ProcedureKind(entry["procedure"])


# Export commonly used items
__all__ = [
    "get_area_name",
    "get_legal_areas",
    "get_legal_areas_config",
    "get_procedure_for_area",
    "resolve_area_id",
]
