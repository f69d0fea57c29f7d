from __future__ import annotations

from typing import Sequence

import pytest

from rowing_bot.config import DEFAULT_REFERENCE_DIR
from rowing_bot.models import ModelType, Result
from rowing_bot.reference import ReferenceTables, load_reference_tables


class RecordingSink:
    def __init__(self, fail_documents: bool = False) -> None:
        self.messages: list[tuple[str, tuple[str, ...]]] = []
        self.documents: list[tuple[str, bytes, str | None]] = []
        self.fail_documents = fail_documents

    async def send_text(self, text: str, choices: Sequence[str] = ()) -> None:
        self.messages.append((text, tuple(choices)))

    async def send_document(self, filename: str, content: bytes, caption: str | None = None) -> None:
        if self.fail_documents:
            raise ConnectionError("upload failed")
        self.documents.append((filename, content, caption))

    @property
    def texts(self) -> list[str]:
        return [text for text, _ in self.messages]


@pytest.fixture(scope="session")
def tables() -> ReferenceTables:
    return load_reference_tables(DEFAULT_REFERENCE_DIR)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


def make_result(
    name: str = "Иванов",
    elapsed_seconds: float = 400.0,
    baseline_seconds: float | None = 390.0,
    distance: int = 2000,
) -> Result:
    return Result(
        name=name,
        distance=distance,
        boat_class="1х о/в",
        age_category="Мужчины",
        elapsed_seconds=elapsed_seconds,
        model_type=ModelType.WORLD,
        baseline_seconds=baseline_seconds,
        created_at="2026-10-17T09:00:00+00:00",
    )
