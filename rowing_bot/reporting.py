from __future__ import annotations

import re
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from .calculator import average, calculate_model_percentage
from .models import ReportArtifact, Result, Session
from .timecodec import format_time

RESULTS_SHEET = "Результаты"
STATS_SHEET = "Статистика"
BASE_HEADERS = ["Имя", "Дистанция", "Класс", "Возраст"]


@dataclass(slots=True)
class Attempt:
    display_time: str
    elapsed_seconds: float
    percentage: float


@dataclass(slots=True)
class AthleteRow:
    name: str
    distance: int
    boat_class: str
    age_category: str
    attempts: list[Attempt] = field(default_factory=list)

    @property
    def average_time(self) -> str:
        return format_time(average(a.elapsed_seconds for a in self.attempts))

    @property
    def average_percentage(self) -> float:
        return average(a.percentage for a in self.attempts)


@dataclass(slots=True)
class Report:
    rows: list[AthleteRow]

    @property
    def max_attempts(self) -> int:
        return max((len(row.attempts) for row in self.rows), default=0)

    @property
    def athlete_count(self) -> int:
        return len(self.rows)

    @property
    def attempt_count(self) -> int:
        return sum(len(row.attempts) for row in self.rows)

    @property
    def team_average(self) -> float:
        # Flat mean over every attempt, not a mean of per-athlete means.
        return average(a.percentage for row in self.rows for a in row.attempts)


class ReportBuilder:
    @staticmethod
    def _percent(value: float) -> str:
        return f"{value:.2f}%"

    @staticmethod
    def build(results: Sequence[Result]) -> Report | None:
        if not results:
            return None

        grouped: dict[str, AthleteRow] = {}
        for result in results:
            row = grouped.get(result.name)
            if row is None:
                row = AthleteRow(
                    name=result.name,
                    distance=result.distance,
                    boat_class=result.boat_class,
                    age_category=result.age_category,
                )
                grouped[result.name] = row

            # Recomputed from raw inputs, never read back from a cached value.
            percentage = calculate_model_percentage(
                result.baseline_seconds,
                result.distance,
                result.elapsed_seconds,
            )
            row.attempts.append(
                Attempt(
                    display_time=format_time(result.elapsed_seconds),
                    elapsed_seconds=result.elapsed_seconds,
                    percentage=percentage,
                )
            )

        return Report(rows=list(grouped.values()))

    def headers(self, report: Report) -> list[str]:
        headers = list(BASE_HEADERS)
        for idx in range(1, report.max_attempts + 1):
            headers.extend([f"Время {idx}", f"Модель {idx}"])
        headers.extend(["Среднее время", "Средняя модель"])
        return headers

    def table_rows(self, report: Report) -> list[list[Any]]:
        rows: list[list[Any]] = []
        for athlete in report.rows:
            row: list[Any] = [athlete.name, athlete.distance, athlete.boat_class, athlete.age_category]
            for idx in range(report.max_attempts):
                if idx < len(athlete.attempts):
                    attempt = athlete.attempts[idx]
                    row.extend([attempt.display_time, self._percent(attempt.percentage)])
                else:
                    row.extend(["", ""])
            row.extend([athlete.average_time, self._percent(athlete.average_percentage)])
            rows.append(row)
        return rows

    def summary_rows(self, report: Report) -> list[list[Any]]:
        return [
            ["Общая статистика"],
            ["Количество спортсменов", report.athlete_count],
            ["Общее количество результатов", report.attempt_count],
            ["Средний процент от модели по команде", self._percent(report.team_average)],
        ]

    def render_workbook(self, report: Report) -> bytes:
        workbook = Workbook()
        results_sheet = workbook.active
        results_sheet.title = RESULTS_SHEET
        stats_sheet = workbook.create_sheet(STATS_SHEET)

        results_sheet.append(self.headers(report))
        for cell in results_sheet[1]:
            cell.font = Font(bold=True)
        for row in self.table_rows(report):
            results_sheet.append(row)

        for row in self.summary_rows(report):
            stats_sheet.append(row)
        stats_sheet["A1"].font = Font(bold=True)

        for idx in range(1, results_sheet.max_column + 1):
            results_sheet.column_dimensions[get_column_letter(idx)].width = 15
        for idx in range(1, stats_sheet.max_column + 1):
            stats_sheet.column_dimensions[get_column_letter(idx)].width = 30

        buffer = BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    def export(self, session: Session) -> ReportArtifact | None:
        report = self.build(session.results)
        if report is None:
            return None

        username = re.sub(r"[^\w-]+", "_", session.username).strip("_") or "user"
        return ReportArtifact(
            filename=f"results_{username}_{session.user_id}.xlsx",
            content=self.render_workbook(report),
            athlete_count=report.athlete_count,
            attempt_count=report.attempt_count,
            team_average=report.team_average,
        )
