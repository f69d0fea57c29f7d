from __future__ import annotations

import asyncio
from io import BytesIO
from pathlib import Path

import pytest
from openpyxl import load_workbook

from conftest import RecordingSink
from rowing_bot.constants import (
    ACTION_EDIT_LAST,
    ACTION_EXPORT,
    ACTION_MORE_TIME,
    CANCEL,
    MESSAGES,
    MODE_LABELS,
    MODEL_TYPE_LABELS,
)
from rowing_bot.conversation import ConversationService
from rowing_bot.dialogue import DialogueMachine
from rowing_bot.models import Mode, ModelType, WaitingAge, WaitingModelType, WaitingNextAction, WaitingTime
from rowing_bot.reference import ReferenceTables
from rowing_bot.reporting import ReportBuilder
from rowing_bot.snapshots import NullSnapshotManager, SnapshotManager
from rowing_bot.storage import SessionStore

USER = 42


@pytest.fixture
def store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def service(tables: ReferenceTables, store: SessionStore) -> ConversationService:
    return ConversationService(
        machine=DialogueMachine(tables),
        store=store,
        reporter=ReportBuilder(),
        snapshots=NullSnapshotManager(),
    )


def _say(service: ConversationService, sink: RecordingSink, *texts: str) -> None:
    async def run() -> None:
        for text in texts:
            await service.handle_text(USER, text, sink)

    asyncio.run(run())


def _walk_to_first_time(service: ConversationService, sink: RecordingSink) -> None:
    asyncio.run(service.start(USER, "coach", sink))
    _say(
        service,
        sink,
        MODEL_TYPE_LABELS[ModelType.WORLD],
        MODE_LABELS[Mode.ACCUMULATE],
        "Иванов",
        "Мужчины",
        "2000 м",
        "1х о/в",
    )


def test_start_initialises_session_and_prompt(service: ConversationService, store: SessionStore, sink) -> None:
    asyncio.run(service.start(USER, "coach", sink))

    session = store.get_session(USER)
    assert session is not None
    assert session.username == "coach"
    assert [a.kind for a in session.actions] == ["start_bot"]
    assert store.get_state(USER) == WaitingModelType()
    assert store.get_settings(USER) == {"language": "ru"}
    assert sink.messages[-1] == (MESSAGES["select_model"], tuple(MODEL_TYPE_LABELS.values()))


def test_full_walk_exports_two_attempts(service: ConversationService, store: SessionStore, sink) -> None:
    _walk_to_first_time(service, sink)
    _say(service, sink, "6:30.00", ACTION_MORE_TIME, "6:40.00", ACTION_EXPORT)

    assert len(sink.documents) == 1
    filename, content, caption = sink.documents[0]
    assert filename == "results_coach_42.xlsx"
    assert "результатов: 2" in caption

    sheet = load_workbook(BytesIO(content))["Результаты"]
    rows = list(sheet.iter_rows(values_only=True))
    assert rows[0][:8] == ("Имя", "Дистанция", "Класс", "Возраст", "Время 1", "Модель 1", "Время 2", "Модель 2")
    assert rows[1][0] == "Иванов"
    assert rows[1][4:8] == ("6:30.00", "100.00%", "6:40.00", "97.50%")
    assert len(rows) == 2

    assert store.get_session(USER) is None
    assert store.get_state(USER) == WaitingModelType()
    assert MESSAGES["export_done"] in sink.texts


def test_message_without_start_creates_fallback_session(service: ConversationService, store: SessionStore, sink) -> None:
    _say(service, sink, MODEL_TYPE_LABELS[ModelType.NATIONAL])

    session = store.get_session(USER)
    assert session is not None
    assert session.username == f"User_{USER}"
    assert store.get_state(USER).model_type is ModelType.NATIONAL


def test_invalid_input_does_not_advance(service: ConversationService, store: SessionStore, sink) -> None:
    asyncio.run(service.start(USER, "coach", sink))
    _say(service, sink, "hello")

    assert store.get_state(USER) == WaitingModelType()
    assert sink.texts[-1] == MESSAGES["invalid_model"]
    assert store.get_session(USER).results == []


def test_mode_state_accepts_age_token(service: ConversationService, store: SessionStore, sink) -> None:
    asyncio.run(service.start(USER, "coach", sink))
    _say(service, sink, MODEL_TYPE_LABELS[ModelType.WORLD], "Женщины")

    assert isinstance(store.get_state(USER), WaitingAge)
    assert sink.texts[-1] == MESSAGES["select_age"]
    assert MESSAGES["invalid_mode"] not in sink.texts


def test_edit_last_updates_only_last_result(service: ConversationService, store: SessionStore, sink) -> None:
    _walk_to_first_time(service, sink)
    _say(service, sink, "6:30.00", ACTION_MORE_TIME, "7:00.00", ACTION_EDIT_LAST, "6:40.00")

    results = store.get_session(USER).results
    assert [r.display_time for r in results] == ["6:30.00", "6:40.00"]
    assert results[0].percentage == pytest.approx(100.0)
    assert results[1].percentage == pytest.approx(97.5)
    assert isinstance(store.get_state(USER), WaitingNextAction)
    assert store.get_session(USER).actions[-1].kind == "edit_last_time"


def test_cancel_is_context_sensitive(service: ConversationService, store: SessionStore, sink) -> None:
    _walk_to_first_time(service, sink)
    _say(service, sink, "6:30.00", CANCEL)

    assert isinstance(store.get_state(USER), WaitingTime)

    _say(service, sink, CANCEL)
    assert store.get_state(USER) == WaitingModelType()
    # Cancelling never drops recorded results.
    assert len(store.get_session(USER).results) == 1


def test_save_failure_shows_result_and_resets(
    service: ConversationService, store: SessionStore, sink, monkeypatch: pytest.MonkeyPatch
) -> None:
    _walk_to_first_time(service, sink)

    def broken(user_id, result):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(store, "add_result", broken)
    _say(service, sink, "6:30.00")

    assert store.get_state(USER) == WaitingModelType()
    assert any("100.00%" in text for text in sink.texts[-3:])
    assert MESSAGES["not_saved"] in sink.texts
    assert store.get_session(USER).results == []


def test_export_failure_keeps_session(tables: ReferenceTables, store: SessionStore) -> None:
    sink = RecordingSink(fail_documents=True)
    service = ConversationService(
        machine=DialogueMachine(tables),
        store=store,
        reporter=ReportBuilder(),
        snapshots=NullSnapshotManager(),
    )
    _walk_to_first_time(service, sink)
    _say(service, sink, "6:30.00", ACTION_EXPORT)

    assert sink.texts[-1] == MESSAGES["excel_error"]
    assert len(store.get_session(USER).results) == 1
    assert isinstance(store.get_state(USER), WaitingNextAction)


def test_export_without_results_reports_no_data(service: ConversationService, store: SessionStore, sink) -> None:
    state = WaitingNextAction(
        model_type=ModelType.WORLD,
        mode=Mode.ACCUMULATE,
        athlete="Иванов",
        age_category="Мужчины",
        distance=2000,
        boat_class="1х о/в",
    )
    asyncio.run(service.start(USER, "coach", sink))
    store.set_state(USER, state)
    _say(service, sink, ACTION_EXPORT)

    assert sink.texts[-1] == MESSAGES["no_data_for_excel"]
    assert sink.documents == []
    assert store.get_state(USER) == state
    assert store.get_session(USER) is not None


def test_saved_results_are_archived(tables: ReferenceTables, store: SessionStore, sink, tmp_path: Path) -> None:
    (tmp_path / "backups").mkdir()
    (tmp_path / "sessions").mkdir()
    service = ConversationService(
        machine=DialogueMachine(tables),
        store=store,
        reporter=ReportBuilder(),
        snapshots=SnapshotManager(tmp_path / "backups", tmp_path / "sessions"),
    )
    _walk_to_first_time(service, sink)
    _say(service, sink, "6:30.00")

    archived = list((tmp_path / "sessions").glob("coach_42_*.json"))
    assert len(archived) == 1


def test_reset_drops_session(service: ConversationService, store: SessionStore, sink) -> None:
    asyncio.run(service.start(USER, "coach", sink))
    assert asyncio.run(service.reset(USER, sink)) is True
    assert store.get_session(USER) is None
    assert sink.texts[-1] == MESSAGES["session_reset"]

    assert asyncio.run(service.reset(USER, sink)) is False
    assert sink.texts[-1] == MESSAGES["no_session"]
