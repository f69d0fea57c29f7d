from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Union

from .calculator import calculate_model_percentage
from .timecodec import format_time


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ModelType(str, Enum):
    WORLD = "world"
    NATIONAL = "national"


class Mode(str, Enum):
    SINGLE = "single"
    ACCUMULATE = "accumulate"


class StateName(str, Enum):
    WAITING_MODEL_TYPE = "WAITING_MODEL_TYPE"
    WAITING_MODE = "WAITING_MODE"
    WAITING_NAME = "WAITING_NAME"
    WAITING_AGE = "WAITING_AGE"
    WAITING_DISTANCE = "WAITING_DISTANCE"
    WAITING_BOAT = "WAITING_BOAT"
    WAITING_TIME = "WAITING_TIME"
    WAITING_NEXT_ACTION = "WAITING_NEXT_ACTION"
    EDITING_LAST_TIME = "EDITING_LAST_TIME"


@dataclass(slots=True, frozen=True)
class Action:
    timestamp: str
    kind: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "kind": self.kind, "details": dict(self.details)}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Action:
        return cls(
            timestamp=str(payload["timestamp"]),
            kind=str(payload["kind"]),
            details=dict(payload.get("details") or {}),
        )


@dataclass(slots=True, frozen=True)
class Result:
    """One recorded attempt.

    Only raw inputs are stored; ``percentage`` and ``display_time`` are derived
    on every read so an edited time can never leave a stale percentage behind.
    """

    name: str
    distance: int
    boat_class: str
    age_category: str
    elapsed_seconds: float
    model_type: ModelType
    baseline_seconds: float | None
    created_at: str

    @property
    def display_time(self) -> str:
        return format_time(self.elapsed_seconds)

    @property
    def percentage(self) -> float:
        return calculate_model_percentage(self.baseline_seconds, self.distance, self.elapsed_seconds)

    def with_elapsed(self, elapsed_seconds: float) -> Result:
        return replace(self, elapsed_seconds=elapsed_seconds)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "distance": self.distance,
            "boat_class": self.boat_class,
            "age_category": self.age_category,
            "elapsed_seconds": self.elapsed_seconds,
            "model_type": self.model_type.value,
            "baseline_seconds": self.baseline_seconds,
            "created_at": self.created_at,
            # Derived values, kept for readability of snapshot files only.
            "time": self.display_time,
            "percentage": round(self.percentage, 2),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Result:
        baseline = payload.get("baseline_seconds")
        return cls(
            name=str(payload["name"]),
            distance=int(payload["distance"]),
            boat_class=str(payload["boat_class"]),
            age_category=str(payload["age_category"]),
            elapsed_seconds=float(payload["elapsed_seconds"]),
            model_type=ModelType(payload["model_type"]),
            baseline_seconds=float(baseline) if baseline is not None else None,
            created_at=str(payload["created_at"]),
        )


@dataclass(slots=True)
class Session:
    user_id: int
    username: str
    started_at: str
    actions: list[Action] = field(default_factory=list)
    results: list[Result] = field(default_factory=list)

    @property
    def last_result(self) -> Result | None:
        return self.results[-1] if self.results else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "started_at": self.started_at,
            "actions": [a.to_dict() for a in self.actions],
            "results": [r.to_dict() for r in self.results],
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Session:
        return cls(
            user_id=int(payload["user_id"]),
            username=str(payload["username"]),
            started_at=str(payload["started_at"]),
            actions=[Action.from_dict(a) for a in payload.get("actions", [])],
            results=[Result.from_dict(r) for r in payload.get("results", [])],
        )


# Conversation states. Each state carries exactly the fields collected before
# it is reached, so nothing has to be checked for "not filled in yet".


@dataclass(slots=True, frozen=True)
class WaitingModelType:
    kind: ClassVar[StateName] = StateName.WAITING_MODEL_TYPE


@dataclass(slots=True, frozen=True)
class WaitingMode:
    kind: ClassVar[StateName] = StateName.WAITING_MODE
    model_type: ModelType


@dataclass(slots=True, frozen=True)
class WaitingName:
    kind: ClassVar[StateName] = StateName.WAITING_NAME
    model_type: ModelType
    mode: Mode


@dataclass(slots=True, frozen=True)
class WaitingAge:
    kind: ClassVar[StateName] = StateName.WAITING_AGE
    model_type: ModelType
    mode: Mode
    athlete: str | None


@dataclass(slots=True, frozen=True)
class WaitingDistance:
    kind: ClassVar[StateName] = StateName.WAITING_DISTANCE
    model_type: ModelType
    mode: Mode
    athlete: str | None
    age_category: str


@dataclass(slots=True, frozen=True)
class WaitingBoat:
    kind: ClassVar[StateName] = StateName.WAITING_BOAT
    model_type: ModelType
    mode: Mode
    athlete: str | None
    age_category: str
    distance: int


@dataclass(slots=True, frozen=True)
class WaitingTime:
    kind: ClassVar[StateName] = StateName.WAITING_TIME
    model_type: ModelType
    mode: Mode
    athlete: str | None
    age_category: str
    distance: int
    boat_class: str


@dataclass(slots=True, frozen=True)
class WaitingNextAction:
    kind: ClassVar[StateName] = StateName.WAITING_NEXT_ACTION
    model_type: ModelType
    mode: Mode
    athlete: str | None
    age_category: str
    distance: int
    boat_class: str


@dataclass(slots=True, frozen=True)
class EditingLastTime:
    kind: ClassVar[StateName] = StateName.EDITING_LAST_TIME
    model_type: ModelType
    mode: Mode
    athlete: str | None
    age_category: str
    distance: int
    boat_class: str


ConversationState = Union[
    WaitingModelType,
    WaitingMode,
    WaitingName,
    WaitingAge,
    WaitingDistance,
    WaitingBoat,
    WaitingTime,
    WaitingNextAction,
    EditingLastTime,
]

STATE_TYPES: dict[StateName, type] = {
    cls.kind: cls
    for cls in (
        WaitingModelType,
        WaitingMode,
        WaitingName,
        WaitingAge,
        WaitingDistance,
        WaitingBoat,
        WaitingTime,
        WaitingNextAction,
        EditingLastTime,
    )
}


def state_to_dict(state: ConversationState) -> dict[str, Any]:
    payload: dict[str, Any] = {"state": state.kind.value}
    for f in fields(state):
        value = getattr(state, f.name)
        payload[f.name] = value.value if isinstance(value, Enum) else value
    return payload


def state_from_dict(payload: dict[str, Any]) -> ConversationState:
    state_cls = STATE_TYPES[StateName(payload["state"])]
    kwargs: dict[str, Any] = {}
    for f in fields(state_cls):
        value = payload.get(f.name)
        if f.name == "model_type":
            value = ModelType(value)
        elif f.name == "mode":
            value = Mode(value)
        elif f.name == "distance":
            value = int(value)
        kwargs[f.name] = value
    return state_cls(**kwargs)


@dataclass(slots=True)
class ReportArtifact:
    filename: str
    content: bytes
    athlete_count: int
    attempt_count: int
    team_average: float
