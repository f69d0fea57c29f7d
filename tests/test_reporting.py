from __future__ import annotations

from io import BytesIO

import pytest
from openpyxl import load_workbook

from conftest import make_result
from rowing_bot.models import Session
from rowing_bot.reporting import ReportBuilder


@pytest.fixture
def builder() -> ReportBuilder:
    return ReportBuilder()


def _results():
    return [
        make_result(name="A", elapsed_seconds=390.0),
        make_result(name="B", elapsed_seconds=400.0),
        make_result(name="A", elapsed_seconds=420.0),
    ]


def test_build_returns_none_without_results(builder: ReportBuilder) -> None:
    assert builder.build([]) is None
    session = Session(user_id=1, username="coach", started_at="2026-10-17T08:00:00+00:00")
    assert builder.export(session) is None


def test_rows_are_grouped_by_name_and_ragged(builder: ReportBuilder) -> None:
    report = builder.build(_results())
    assert report is not None
    assert [row.name for row in report.rows] == ["A", "B"]
    assert report.max_attempts == 2

    rows = builder.table_rows(report)
    assert rows[0][4:8] == ["6:30.00", "100.00%", "7:00.00", "92.86%"]
    assert rows[1][4:8] == ["6:40.00", "97.50%", "", ""]
    assert rows[0][8] == "6:45.00"
    assert rows[1][8:] == ["6:40.00", "97.50%"]


def test_team_average_is_flat_over_attempts(builder: ReportBuilder) -> None:
    report = builder.build(_results())
    percentages = [100.0, 390 / 420 * 100, 97.5]
    flat = sum(percentages) / 3
    mean_of_means = ((percentages[0] + percentages[1]) / 2 + percentages[2]) / 2

    assert report.team_average == pytest.approx(flat)
    assert report.team_average != pytest.approx(mean_of_means)
    assert report.athlete_count == 2
    assert report.attempt_count == 3


def test_percentages_follow_edited_time(builder: ReportBuilder) -> None:
    results = _results()
    results[-1] = results[-1].with_elapsed(390.0)

    report = builder.build(results)
    assert report.rows[0].attempts[1].percentage == pytest.approx(100.0)
    assert report.rows[0].average_percentage == pytest.approx(100.0)


def test_missing_baseline_counts_as_zero(builder: ReportBuilder) -> None:
    report = builder.build([make_result(name="C", baseline_seconds=None)])
    assert builder.table_rows(report)[0][5] == "0.00%"
    assert report.team_average == 0


def test_headers(builder: ReportBuilder) -> None:
    report = builder.build(_results())
    assert builder.headers(report) == [
        "Имя",
        "Дистанция",
        "Класс",
        "Возраст",
        "Время 1",
        "Модель 1",
        "Время 2",
        "Модель 2",
        "Среднее время",
        "Средняя модель",
    ]


def test_export_renders_both_sheets(builder: ReportBuilder) -> None:
    session = Session(user_id=7, username="coach bob", started_at="2026-10-17T08:00:00+00:00", results=_results())
    artifact = builder.export(session)

    assert artifact is not None
    assert artifact.filename == "results_coach_bob_7.xlsx"
    assert artifact.attempt_count == 3
    assert artifact.athlete_count == 2

    workbook = load_workbook(BytesIO(artifact.content))
    assert workbook.sheetnames == ["Результаты", "Статистика"]

    results_sheet = workbook["Результаты"]
    assert results_sheet["A1"].font.bold
    assert results_sheet.max_row == 3

    stats = list(workbook["Статистика"].iter_rows(values_only=True))
    assert stats[1] == ("Количество спортсменов", 2)
    assert stats[2] == ("Общее количество результатов", 3)
    assert stats[3][1] == f"{artifact.team_average:.2f}%"
