from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Iterable, Union

from .calculator import calculate_model_percentage
from .constants import (
    ACTION_EDIT_LAST,
    ACTION_EXPORT,
    ACTION_HISTORY,
    ACTION_MORE_TIME,
    ACTION_NEW_NAME,
    BOAT_CLASSES,
    CANCEL,
    DISTANCES,
    MESSAGES,
    MODE_LABELS,
    MODEL_TYPE_LABELS,
    NEXT_ACTIONS,
)
from .models import (
    ConversationState,
    EditingLastTime,
    Mode,
    ModelType,
    Result,
    Session,
    WaitingAge,
    WaitingBoat,
    WaitingDistance,
    WaitingMode,
    WaitingModelType,
    WaitingName,
    WaitingNextAction,
    WaitingTime,
    utc_now_iso,
)
from .reference import ReferenceTableError, ReferenceTables, get_distance
from .timecodec import format_time, parse_time

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Reply:
    text: str
    choices: tuple[str, ...] = ()


@dataclass(slots=True, frozen=True)
class LogAction:
    kind: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class SaveResult:
    result: Result


@dataclass(slots=True, frozen=True)
class ReplaceLastResult:
    result: Result


Effect = Union[LogAction, SaveResult, ReplaceLastResult]


@dataclass(slots=True, frozen=True)
class Transition:
    """Outcome of one inbound message.

    ``on_failure`` replaces this transition when applying ``effects`` raises.
    ``export`` asks the controller to build and deliver the report before the
    session is torn down and ``state`` takes effect.
    """

    state: ConversationState
    replies: tuple[Reply, ...] = ()
    effects: tuple[Effect, ...] = ()
    on_failure: Transition | None = None
    export: bool = False


def normalize(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip().casefold()


def match_choice(text: str, vocabulary: Iterable[str]) -> str | None:
    """First entry equal to, or contained in, the input wins."""
    needle = normalize(text)
    if not needle:
        return None
    for entry in vocabulary:
        candidate = normalize(entry)
        if candidate == needle or candidate in needle:
            return entry
    return None


def is_cancel(text: str) -> bool:
    return normalize(text) == normalize(CANCEL)


def _subject_fields(state: Any) -> dict[str, Any]:
    return {
        "model_type": state.model_type,
        "mode": state.mode,
        "athlete": state.athlete,
        "age_category": state.age_category,
        "distance": state.distance,
        "boat_class": state.boat_class,
    }


class DialogueMachine:
    def __init__(self, tables: ReferenceTables, clock: Callable[[], str] = utc_now_iso) -> None:
        self.tables = tables
        self.clock = clock
        self._handlers: dict[type, Callable[[Any, str, Session | None], Transition]] = {
            WaitingModelType: self._on_model_type,
            WaitingMode: self._on_mode,
            WaitingName: self._on_name,
            WaitingAge: self._on_age,
            WaitingDistance: self._on_distance,
            WaitingBoat: self._on_boat,
            WaitingTime: self._on_time,
            WaitingNextAction: self._on_next_action,
            EditingLastTime: self._on_edit_last_time,
        }

    # Prompts

    @staticmethod
    def model_prompt(text: str | None = None) -> Reply:
        return Reply(text or MESSAGES["select_model"], tuple(MODEL_TYPE_LABELS.values()))

    @staticmethod
    def mode_prompt(text: str | None = None) -> Reply:
        return Reply(text or MESSAGES["select_mode"], (*MODE_LABELS.values(), CANCEL))

    @staticmethod
    def name_prompt(text: str | None = None) -> Reply:
        return Reply(text or MESSAGES["enter_name"], (CANCEL,))

    def age_prompt(self, model_type: ModelType, text: str | None = None) -> Reply:
        return Reply(text or MESSAGES["select_age"], (*self.tables.age_categories(model_type), CANCEL))

    @staticmethod
    def distance_prompt(text: str | None = None) -> Reply:
        return Reply(text or MESSAGES["select_distance"], (*DISTANCES, CANCEL))

    @staticmethod
    def boat_prompt(text: str | None = None) -> Reply:
        return Reply(text or MESSAGES["select_boat"], (*BOAT_CLASSES, CANCEL))

    @staticmethod
    def time_prompt(text: str | None = None) -> Reply:
        return Reply(text or MESSAGES["enter_time"], (CANCEL,))

    @staticmethod
    def action_prompt(text: str | None = None) -> Reply:
        return Reply(text or MESSAGES["select_action"], (*NEXT_ACTIONS, CANCEL))

    # Entry points

    def start(self) -> Transition:
        return Transition(
            state=WaitingModelType(),
            replies=(self.model_prompt(),),
            effects=(LogAction("start_bot"),),
        )

    def reset(self, *replies: Reply) -> Transition:
        return Transition(state=WaitingModelType(), replies=(*replies, self.model_prompt()))

    def cancel(self, state: ConversationState) -> Transition:
        effects = (LogAction("cancel", {"state": state.kind.value}),)
        if isinstance(state, WaitingNextAction):
            return Transition(
                state=WaitingTime(**_subject_fields(state)),
                replies=(self.time_prompt(),),
                effects=effects,
            )
        return Transition(state=WaitingModelType(), replies=(self.model_prompt(),), effects=effects)

    def handle(self, state: ConversationState, text: str, session: Session | None = None) -> Transition:
        handler = self._handlers[type(state)]
        return handler(state, text.strip(), session)

    # State handlers

    def _on_model_type(self, state: WaitingModelType, text: str, session: Session | None) -> Transition:
        label = match_choice(text, MODEL_TYPE_LABELS.values())
        if label is None:
            logger.info("Invalid model type: %r", text)
            return Transition(state=state, replies=(self.model_prompt(MESSAGES["invalid_model"]),))

        model_type = next(m for m, lbl in MODEL_TYPE_LABELS.items() if lbl == label)
        return Transition(
            state=WaitingMode(model_type=model_type),
            replies=(self.mode_prompt(),),
            effects=(LogAction("select_model_type", {"model_type": model_type.value}),),
        )

    def _on_mode(self, state: WaitingMode, text: str, session: Session | None) -> Transition:
        label = match_choice(text, MODE_LABELS.values())
        if label is not None:
            mode = next(m for m, lbl in MODE_LABELS.items() if lbl == label)
            effects = (LogAction("select_mode", {"mode": mode.value}),)
            if mode is Mode.ACCUMULATE:
                return Transition(
                    state=WaitingName(model_type=state.model_type, mode=mode),
                    replies=(self.name_prompt(),),
                    effects=effects,
                )
            return Transition(
                state=WaitingAge(model_type=state.model_type, mode=mode, athlete=None),
                replies=(self.age_prompt(state.model_type),),
                effects=effects,
            )

        # A stale keyboard may still offer age categories here.
        if match_choice(text, self.tables.all_age_categories()) is not None:
            logger.info("Age category %r sent while choosing mode, redirecting to age selection", text)
            return Transition(
                state=WaitingAge(model_type=state.model_type, mode=Mode.SINGLE, athlete=None),
                replies=(self.age_prompt(state.model_type),),
                effects=(LogAction("redirect_to_age", {"text": text}),),
            )

        logger.info("Invalid mode selection: %r", text)
        return Transition(state=state, replies=(self.mode_prompt(MESSAGES["invalid_mode"]),))

    def _on_name(self, state: WaitingName, text: str, session: Session | None) -> Transition:
        if not text:
            return Transition(state=state, replies=(self.name_prompt(MESSAGES["invalid_name"]),))

        return Transition(
            state=WaitingAge(model_type=state.model_type, mode=state.mode, athlete=text),
            replies=(self.age_prompt(state.model_type),),
            effects=(LogAction("enter_name", {"name": text}),),
        )

    def _on_age(self, state: WaitingAge, text: str, session: Session | None) -> Transition:
        category = match_choice(text, self.tables.age_categories(state.model_type))
        if category is None:
            logger.info("Invalid age category: %r", text)
            return Transition(
                state=state,
                replies=(self.age_prompt(state.model_type, MESSAGES["invalid_age"]),),
            )

        return Transition(
            state=WaitingDistance(
                model_type=state.model_type,
                mode=state.mode,
                athlete=state.athlete,
                age_category=category,
            ),
            replies=(self.distance_prompt(),),
            effects=(LogAction("select_age_category", {"category": category}),),
        )

    def _on_distance(self, state: WaitingDistance, text: str, session: Session | None) -> Transition:
        label = match_choice(text, DISTANCES)
        if label is None:
            logger.info("Invalid distance: %r", text)
            return Transition(state=state, replies=(self.distance_prompt(MESSAGES["invalid_distance"]),))

        distance = get_distance(label)
        return Transition(
            state=WaitingBoat(
                model_type=state.model_type,
                mode=state.mode,
                athlete=state.athlete,
                age_category=state.age_category,
                distance=distance,
            ),
            replies=(self.boat_prompt(),),
            effects=(LogAction("select_distance", {"distance": label, "parsed_distance": distance}),),
        )

    def _on_boat(self, state: WaitingBoat, text: str, session: Session | None) -> Transition:
        boat_class = match_choice(text, BOAT_CLASSES)
        if boat_class is None:
            logger.info("Invalid boat class: %r", text)
            return Transition(state=state, replies=(self.boat_prompt(MESSAGES["invalid_boat"]),))

        return Transition(
            state=WaitingTime(
                model_type=state.model_type,
                mode=state.mode,
                athlete=state.athlete,
                age_category=state.age_category,
                distance=state.distance,
                boat_class=boat_class,
            ),
            replies=(self.time_prompt(),),
            effects=(LogAction("select_boat", {"boat": boat_class}),),
        )

    def _on_time(self, state: WaitingTime, text: str, session: Session | None) -> Transition:
        seconds = parse_time(text)
        if seconds <= 0:
            logger.info("Invalid time format: %r", text)
            return Transition(state=state, replies=(self.time_prompt(MESSAGES["invalid_time"]),))

        try:
            baseline = self.tables.baseline(state.model_type, state.age_category, state.boat_class)
            percentage = calculate_model_percentage(baseline, state.distance, seconds)
        except (ReferenceTableError, ArithmeticError) as exc:
            logger.exception("Model calculation failed for %s: %s", asdict(state), exc)
            return Transition(
                state=WaitingModelType(),
                replies=(Reply(MESSAGES["model_error"]), self.model_prompt()),
            )

        display_time = format_time(seconds)
        response = MESSAGES["time_result"].format(time=display_time, percentage=f"{percentage:.2f}")
        if baseline is None:
            response = f"{response}\n{MESSAGES['no_baseline']}"

        effects: list[Effect] = [
            LogAction("enter_time", {"time": text, "seconds": seconds}),
            LogAction("calculate_model", {"baseline": baseline, "seconds": seconds, "percentage": round(percentage, 2)}),
        ]

        if state.mode is not Mode.ACCUMULATE:
            return Transition(
                state=WaitingModelType(),
                replies=(Reply(response), self.model_prompt()),
                effects=tuple(effects),
            )

        result = Result(
            name=state.athlete or "",
            distance=state.distance,
            boat_class=state.boat_class,
            age_category=state.age_category,
            elapsed_seconds=seconds,
            model_type=state.model_type,
            baseline_seconds=baseline,
            created_at=self.clock(),
        )
        effects.append(SaveResult(result))

        return Transition(
            state=WaitingNextAction(**_subject_fields(state)),
            replies=(Reply(response), self.action_prompt()),
            effects=tuple(effects),
            on_failure=self.reset(Reply(response), Reply(MESSAGES["not_saved"])),
        )

    def _on_next_action(self, state: WaitingNextAction, text: str, session: Session | None) -> Transition:
        action = match_choice(text, NEXT_ACTIONS)

        if action == ACTION_MORE_TIME:
            return Transition(
                state=WaitingTime(**_subject_fields(state)),
                replies=(self.time_prompt(),),
                effects=(LogAction("enter_more_time"),),
            )

        if action == ACTION_NEW_NAME:
            return Transition(
                state=WaitingName(model_type=state.model_type, mode=state.mode),
                replies=(self.name_prompt(),),
                effects=(LogAction("new_name"),),
            )

        if action == ACTION_EXPORT:
            return Transition(
                state=WaitingModelType(),
                replies=(Reply(MESSAGES["export_done"]), self.model_prompt()),
                export=True,
            )

        if action == ACTION_EDIT_LAST:
            last = session.last_result if session else None
            if last is None:
                return Transition(state=state, replies=(self.action_prompt(MESSAGES["no_results"]),))
            return Transition(
                state=EditingLastTime(**_subject_fields(state)),
                replies=(Reply(MESSAGES["current_time"].format(time=last.display_time), (CANCEL,)),),
            )

        if action == ACTION_HISTORY:
            return Transition(state=state, replies=(self._history(session), self.action_prompt()))

        logger.info("Invalid next action: %r", text)
        return Transition(state=state, replies=(self.action_prompt(MESSAGES["invalid_action"]),))

    def _on_edit_last_time(self, state: EditingLastTime, text: str, session: Session | None) -> Transition:
        last = session.last_result if session else None
        if last is None:
            return Transition(
                state=WaitingNextAction(**_subject_fields(state)),
                replies=(self.action_prompt(MESSAGES["no_results"]),),
            )

        seconds = parse_time(text)
        if seconds <= 0:
            logger.info("Invalid time format while editing: %r", text)
            return Transition(state=state, replies=(Reply(MESSAGES["invalid_time"], (CANCEL,)),))

        updated = last.with_elapsed(seconds)
        confirmation = MESSAGES["time_updated"].format(
            time=updated.display_time,
            percentage=f"{updated.percentage:.2f}",
        )
        return Transition(
            state=WaitingNextAction(**_subject_fields(state)),
            replies=(Reply(confirmation), self.action_prompt()),
            effects=(
                ReplaceLastResult(updated),
                LogAction(
                    "edit_last_time",
                    {"previous": last.display_time, "time": updated.display_time, "seconds": seconds},
                ),
            ),
        )

    @staticmethod
    def _history(session: Session | None) -> Reply:
        if session is None or not session.results:
            return Reply(MESSAGES["history_empty"])

        lines = [MESSAGES["history_header"]]
        for index, result in enumerate(session.results, start=1):
            lines.append(
                MESSAGES["history_line"].format(
                    index=index,
                    name=result.name,
                    time=result.display_time,
                    percentage=f"{result.percentage:.2f}",
                )
            )
        return Reply("\n".join(lines))
