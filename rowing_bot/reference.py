from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .calculator import REFERENCE_DISTANCE
from .constants import BOAT_CLASSES, DISTANCES
from .models import ModelType
from .timecodec import parse_time

logger = logging.getLogger(__name__)

TABLE_FILES = {
    ModelType.WORLD: "reference_world.json",
    ModelType.NATIONAL: "reference_national.json",
}


class ReferenceTableError(RuntimeError):
    pass


@dataclass(slots=True, frozen=True)
class ReferenceTable:
    model_type: ModelType
    name: str
    age_categories: tuple[str, ...]
    times: dict[str, dict[str, float]]

    def baseline(self, age_category: str, boat_class: str) -> float | None:
        return self.times.get(age_category, {}).get(boat_class)


class ReferenceTables:
    def __init__(self, world: ReferenceTable, national: ReferenceTable) -> None:
        self._tables = {ModelType.WORLD: world, ModelType.NATIONAL: national}

    def table(self, model_type: ModelType) -> ReferenceTable:
        try:
            return self._tables[model_type]
        except KeyError as exc:
            raise ReferenceTableError(f"Unknown model type: {model_type!r}") from exc

    def age_categories(self, model_type: ModelType) -> tuple[str, ...]:
        return self.table(model_type).age_categories

    def all_age_categories(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for table in self._tables.values():
            for category in table.age_categories:
                seen.setdefault(category, None)
        return tuple(seen)

    def baseline(self, model_type: ModelType, age_category: str, boat_class: str) -> float | None:
        value = self.table(model_type).baseline(age_category, boat_class)
        if value is None:
            logger.info(
                "No %s baseline for age=%r boat=%r",
                model_type.value,
                age_category,
                boat_class,
            )
        return value


def _load_json(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        payload = json.load(f)
    if not isinstance(payload, dict):
        raise ReferenceTableError(f"Reference table JSON must be an object: {path}")
    return payload


def load_table(path: Path, model_type: ModelType) -> ReferenceTable:
    if not path.exists():
        raise ReferenceTableError(f"Reference table not found: {path}")

    try:
        payload = _load_json(path)
    except json.JSONDecodeError as exc:
        raise ReferenceTableError(f"Invalid JSON in {path}: {exc}") from exc

    if payload.get("reference_distance") != REFERENCE_DISTANCE:
        raise ReferenceTableError(f"{path.name}: reference_distance must be {REFERENCE_DISTANCE}")

    age_categories = [str(c) for c in payload.get("age_categories", [])]
    if not age_categories or len(set(age_categories)) != len(age_categories):
        raise ReferenceTableError(f"{path.name}: age_categories must be a non-empty list of unique names")

    raw_times = payload.get("times", {})
    missing = [c for c in age_categories if c not in raw_times]
    if missing:
        raise ReferenceTableError(f"{path.name}: no times for {', '.join(missing)}")

    times: dict[str, dict[str, float]] = {}
    for category in age_categories:
        boats: dict[str, float] = {}
        for boat_class, raw_time in raw_times[category].items():
            if boat_class not in BOAT_CLASSES:
                raise ReferenceTableError(f"{path.name}: unknown boat class {boat_class!r} in {category!r}")
            seconds = parse_time(str(raw_time))
            if seconds <= 0:
                raise ReferenceTableError(f"{path.name}: invalid time {raw_time!r} for {category!r}/{boat_class!r}")
            boats[boat_class] = seconds
        times[category] = boats

    return ReferenceTable(
        model_type=model_type,
        name=str(payload.get("name", path.stem)),
        age_categories=tuple(age_categories),
        times=times,
    )


def load_reference_tables(directory: Path) -> ReferenceTables:
    world = load_table(directory / TABLE_FILES[ModelType.WORLD], ModelType.WORLD)
    national = load_table(directory / TABLE_FILES[ModelType.NATIONAL], ModelType.NATIONAL)

    extra = set(world.age_categories) - set(national.age_categories)
    if extra:
        logger.warning("World age categories missing from national table: %s", ", ".join(sorted(extra)))

    logger.info(
        "Loaded reference tables: %s (%s categories), %s (%s categories)",
        world.name,
        len(world.age_categories),
        national.name,
        len(national.age_categories),
    )
    return ReferenceTables(world=world, national=national)


def get_distance(label: str) -> int:
    try:
        return DISTANCES[label]
    except KeyError as exc:
        raise ReferenceTableError(f"Unknown distance: {label!r}") from exc
