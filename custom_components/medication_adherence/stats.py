"""Dose reconciliation and adherence metrics.

Every function here is a pure computation over the medicines and intakes the
caller passes in. Functions that depend on the current instant accept an
optional ``now``; when omitted it is read once at the top-level call and the
same value is used for every classification made by that call.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Sequence

from homeassistant.util import dt as dt_util

from .const import (
    LOW_STOCK_RANKING_SIZE, OUTCOME_MISSED, OUTCOME_SKIPPED, OUTCOME_TAKEN,
    OUTCOME_UPCOMING, STATUS_DELAYED, STATUS_TAKEN,
)
from .models import ExpectedDose, Medicine, MedicineIntake
from .schedule import as_date, dates_backwards, generate_times, is_active_on_date


@dataclass
class DailyMetrics:
    date: date
    taken: int = 0
    skipped: int = 0
    missed: int = 0
    upcoming: int = 0
    adherence_rate: int = 0

    @property
    def scheduled(self) -> int:
        return self.taken + self.skipped + self.missed + self.upcoming

    @property
    def is_perfect(self) -> bool:
        return self.scheduled > 0 and self.taken == self.scheduled

    def as_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "taken": self.taken,
            "skipped": self.skipped,
            "missed": self.missed,
            "upcoming": self.upcoming,
            "adherence_rate": self.adherence_rate,
        }


@dataclass
class MedicineAdherence:
    medicine: Medicine
    taken: int
    total: int
    rate: int


@dataclass
class StockProjection:
    medicine: Medicine
    daily_doses: int
    days_left: int | None
    run_out_date: date | None
    low_stock: bool = field(default=False)


def adherence_rate(taken: int, total: int) -> int:
    """Whole percent of taken doses, 0 when nothing is due."""
    if total <= 0:
        return 0
    # Halves round up.
    return int(100 * taken / total + 0.5)


def _now(now: datetime | None) -> datetime:
    return now if now is not None else dt_util.now()


def _index_intakes(intakes: Iterable[MedicineIntake]) -> dict:
    index = {}
    for intake in intakes:
        index.setdefault(intake.key, intake)
    return index


def build_expected(
    medicines: Sequence[Medicine],
    intakes: Iterable[MedicineIntake],
    day,
) -> list[ExpectedDose]:
    """Join each active medicine's doses for a day with recorded intakes."""
    day = as_date(day)
    index = _index_intakes(intakes)
    expected = []
    for medicine in medicines:
        if not is_active_on_date(medicine, day):
            continue
        for scheduled_time in generate_times(medicine):
            intake = index.get((medicine.id, day, scheduled_time))
            expected.append(ExpectedDose(medicine, scheduled_time, day, intake))
    return sorted(expected, key=lambda dose: dose.scheduled_time)


def classify_dose(dose: ExpectedDose, now: datetime) -> str:
    """Classify a dose as taken, skipped, missed or upcoming."""
    if dose.intake is not None:
        if dose.intake.status in (STATUS_TAKEN, STATUS_DELAYED):
            return OUTCOME_TAKEN
        # Skipped, pending and unknown statuses all count against adherence.
        return OUTCOME_SKIPPED

    today = now.date()
    if dose.date > today:
        return OUTCOME_UPCOMING
    if dose.date < today:
        return OUTCOME_MISSED

    hour, minute = (int(part) for part in dose.scheduled_time.split(":")[:2])
    cutoff = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    return OUTCOME_MISSED if now > cutoff else OUTCOME_UPCOMING


def daily_metrics(
    medicines: Sequence[Medicine],
    intakes: Iterable[MedicineIntake],
    day,
    now: datetime | None = None,
) -> DailyMetrics:
    """Tally one day's expected doses by outcome."""
    now = _now(now)
    metrics = DailyMetrics(date=as_date(day))
    for dose in build_expected(medicines, intakes, metrics.date):
        outcome = classify_dose(dose, now)
        setattr(metrics, outcome, getattr(metrics, outcome) + 1)
    metrics.adherence_rate = adherence_rate(
        metrics.taken, metrics.taken + metrics.skipped + metrics.missed
    )
    return metrics


def series(
    medicines: Sequence[Medicine],
    intakes: Iterable[MedicineIntake],
    days: int,
    now: datetime | None = None,
) -> list[DailyMetrics]:
    """Daily metrics for the trailing window, oldest first."""
    now = _now(now)
    intakes = list(intakes)
    return [
        daily_metrics(medicines, intakes, day, now=now)
        for day in dates_backwards(days, now.date())
    ]


def per_medicine_adherence(
    medicines: Sequence[Medicine],
    intakes: Iterable[MedicineIntake],
    days: int,
    now: datetime | None = None,
) -> list[MedicineAdherence]:
    """Adherence per medicine over the window ending today, best first.

    Every dose scheduled today counts toward the total, whether or not its
    time has come.
    """
    now = _now(now)
    index = _index_intakes(intakes)
    window = dates_backwards(days, now.date())

    result = []
    for medicine in medicines:
        times = generate_times(medicine)
        taken = total = 0
        for day in window:
            if not is_active_on_date(medicine, day):
                continue
            for scheduled_time in times:
                total += 1
                intake = index.get((medicine.id, day, scheduled_time))
                if intake and intake.status in (STATUS_TAKEN, STATUS_DELAYED):
                    taken += 1
        result.append(MedicineAdherence(medicine, taken, total, adherence_rate(taken, total)))
    return sorted(result, key=lambda item: item.rate, reverse=True)


def overall_adherence(daily: Iterable[DailyMetrics]) -> dict:
    """Pool a series into one taken/skipped/missed total and rate."""
    taken = skipped = missed = 0
    for metrics in daily:
        taken += metrics.taken
        skipped += metrics.skipped
        missed += metrics.missed
    return {
        "taken": taken,
        "skipped": skipped,
        "missed": missed,
        "rate": adherence_rate(taken, taken + skipped + missed),
    }


def streak(daily: Sequence[DailyMetrics]) -> int:
    """Count trailing perfect days; a day with nothing scheduled ends the run."""
    count = 0
    for metrics in reversed(daily):
        if not metrics.is_perfect:
            break
        count += 1
    return count


def perfect_days(daily: Iterable[DailyMetrics]) -> int:
    return sum(1 for metrics in daily if metrics.is_perfect)


def stock_projection(medicine: Medicine, today: date) -> StockProjection:
    """Project how long the current stock lasts at the scheduled rate."""
    daily_doses = len(generate_times(medicine))
    days_left = run_out = None
    if daily_doses:
        days_left = medicine.current_stock // daily_doses
        run_out = today + timedelta(days=days_left)
    return StockProjection(
        medicine=medicine,
        daily_doses=daily_doses,
        days_left=days_left,
        run_out_date=run_out,
        low_stock=medicine.current_stock <= medicine.low_stock_alert,
    )


def low_stock_ranking(
    medicines: Sequence[Medicine],
    today: date | None = None,
    limit: int = LOW_STOCK_RANKING_SIZE,
) -> list[StockProjection]:
    """The medicines closest to running out, whatever their alert threshold."""
    if today is None:
        today = dt_util.now().date()
    projections = [stock_projection(medicine, today) for medicine in medicines]
    finite = [p for p in projections if p.days_left is not None]
    return sorted(finite, key=lambda p: p.days_left)[:limit]
