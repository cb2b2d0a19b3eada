"""Load historic daily logs from CSV files."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Optional

import pandas as pd

from tdeecoach.logger import get_logger
from tdeecoach.tracking.dates import parse_date_key
from tdeecoach.tracking.edge_cases import validate_weight_entry
from tdeecoach.tracking.models import DailyLog, Intake, LogStatus

logger = get_logger(__name__)

REQUIRED_COLUMNS = ["date"]
OPTIONAL_COLUMNS = ["weight_kg", "calories", "protein_g", "carbs_g", "fat_g", "steps", "status"]


@dataclass
class ImportResult:
    """Parsed logs plus a message for each skipped row."""

    logs: list[DailyLog] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def _cell(row: pd.Series, column: str) -> Optional[object]:
    value = row.get(column)
    if value is None or pd.isna(value):
        return None
    return value


def _intake(row: pd.Series, column: str) -> Intake:
    value = _cell(row, column)
    return Intake.untracked() if value is None else Intake.of(float(value))  # type: ignore[arg-type]


def read_daily_logs(csv_path: Path, today: Optional[date] = None) -> ImportResult:
    """Parse a CSV of daily logs.

    CSV format:
        date,weight_kg,calories,protein_g,carbs_g,fat_g,steps,status
        2025-01-06,82.4,2150,160,210,70,8500,
        2025-01-07,,0,,,,,complete

    Empty cells are untracked, 0 calories is a deliberate fast. A row with a
    status is treated as an explicit override; otherwise the day is complete
    when calories are present. Later rows win for duplicate dates.

    Args:
        csv_path: Path to the CSV file
        today: Rows after this date are skipped (default: today)

    Returns:
        ImportResult sorted by date

    Raises:
        ValueError: If the date column is missing
    """
    today = today or date.today()
    df = pd.read_csv(csv_path, dtype={"date": str})

    missing = set(REQUIRED_COLUMNS) - set(df.columns)
    if missing:
        raise ValueError(
            f"Missing required columns: {missing}. "
            f"Optional columns are: {OPTIONAL_COLUMNS}"
        )

    result = ImportResult()
    by_date: dict[date, DailyLog] = {}
    previous_weight: Optional[float] = None

    for index, row in df.iterrows():
        line = f"row {int(index) + 2}"  # type: ignore[call-overload]
        try:
            day = parse_date_key(str(row["date"]).strip())
        except ValueError as e:
            result.skipped.append(f"{line}: {e}")
            continue
        if day > today:
            result.skipped.append(f"{line}: {day} is in the future")
            continue

        try:
            weight_cell = _cell(row, "weight_kg")
            weight = float(weight_cell) if weight_cell is not None else None  # type: ignore[arg-type]
            calories = _intake(row, "calories")
            protein = _intake(row, "protein_g")
            carbs = _intake(row, "carbs_g")
            fat = _intake(row, "fat_g")
            steps_cell = _cell(row, "steps")
            steps = int(steps_cell) if steps_cell is not None else None  # type: ignore[call-overload]
            status_cell = _cell(row, "status")
            status = LogStatus(str(status_cell).strip().lower()) if status_cell is not None else None
        except ValueError as e:
            result.skipped.append(f"{line}: {e}")
            continue

        if weight is not None:
            validation = validate_weight_entry(weight, previous_weight)
            if not validation.is_valid:
                result.skipped.append(f"{line}: {validation.warning}")
                continue
            previous_weight = weight

        by_date[day] = DailyLog(
            date=day,
            scale_weight_kg=weight,
            calories=calories,
            protein_g=protein,
            carbs_g=carbs,
            fat_g=fat,
            step_count=steps,
            log_status=status or (LogStatus.COMPLETE if calories.is_tracked else LogStatus.SKIPPED),
            status_override=status is not None,
        )

    result.logs = [by_date[day] for day in sorted(by_date)]
    logger.info(
        "Parsed %d daily logs from %s (%d rows skipped)",
        len(result.logs),
        csv_path,
        len(result.skipped),
    )
    return result
