"""Records exchanged between the host and the adherence engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from homeassistant.util import dt as dt_util

from .const import (
    CONF_CREATED_AT, CONF_CURRENT_STOCK, CONF_CUSTOM_TIMES, CONF_DOSAGE,
    CONF_END_DATE, CONF_FREQUENCY, CONF_ICON, CONF_INTERVAL_HOURS,
    CONF_LOW_STOCK_ALERT, CONF_NAME, CONF_NOTES, CONF_START_DATE,
    CONF_TAKE_WITH_FOOD, STATUS_PENDING, UNRECORDED,
)
from .schedule import as_date


def _as_datetime(value) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return dt_util.parse_datetime(value)


@dataclass(frozen=True)
class Medicine:
    """A registered medicine and its dosing rule."""

    id: str
    name: str
    frequency: str
    start_date: date
    dosage: str = ""
    custom_times: tuple[str, ...] = ()
    interval_hours: int | None = None
    end_date: date | None = None
    current_stock: int = 0
    low_stock_alert: int = 1
    take_with_food: bool = False
    notes: str | None = None
    created_at: datetime | None = None
    icon: str = "mdi:pill"

    @classmethod
    def from_config(cls, med_id: str, data: dict[str, Any]) -> Medicine:
        """Build a medicine from its options-flow dictionary."""
        interval = data.get(CONF_INTERVAL_HOURS)
        return cls(
            id=med_id,
            name=data[CONF_NAME],
            frequency=data.get(CONF_FREQUENCY, ""),
            start_date=as_date(data[CONF_START_DATE]),
            dosage=data.get(CONF_DOSAGE) or "",
            custom_times=tuple(data.get(CONF_CUSTOM_TIMES) or ()),
            interval_hours=int(interval) if interval else None,
            end_date=as_date(data.get(CONF_END_DATE)),
            current_stock=int(data.get(CONF_CURRENT_STOCK, 0)),
            low_stock_alert=int(data.get(CONF_LOW_STOCK_ALERT, 1)),
            take_with_food=bool(data.get(CONF_TAKE_WITH_FOOD, False)),
            notes=data.get(CONF_NOTES) or None,
            created_at=_as_datetime(data.get(CONF_CREATED_AT)),
            icon=data.get(CONF_ICON) or "mdi:pill",
        )


@dataclass
class MedicineIntake:
    """A recorded outcome for one scheduled dose."""

    id: str
    medicine_id: str
    scheduled_time: str
    date: date
    status: str
    actual_time: datetime | None = None
    notes: str | None = None

    @property
    def key(self) -> tuple[str, date, str]:
        return (self.medicine_id, self.date, self.scheduled_time)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MedicineIntake:
        return cls(
            id=data["id"],
            medicine_id=data["medicine_id"],
            scheduled_time=data["scheduled_time"],
            date=as_date(data["date"]),
            status=data["status"],
            actual_time=_as_datetime(data.get("actual_time")),
            notes=data.get("notes"),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "medicine_id": self.medicine_id,
            "scheduled_time": self.scheduled_time,
            "date": self.date.isoformat(),
            "status": self.status,
            "actual_time": self.actual_time.isoformat() if self.actual_time else None,
            "notes": self.notes,
        }


@dataclass
class ExpectedDose:
    """A medicine's scheduled dose on a date, joined with its intake if any."""

    medicine: Medicine
    scheduled_time: str
    date: date
    intake: MedicineIntake | None = field(default=None)

    @property
    def medicine_id(self) -> str:
        return self.medicine.id

    @property
    def status(self) -> str:
        """Recorded status, or 'unrecorded' when nothing was logged."""
        return self.intake.status if self.intake else UNRECORDED

    @property
    def is_open(self) -> bool:
        """True while the dose still awaits an outcome."""
        return self.intake is None or self.intake.status == STATUS_PENDING
