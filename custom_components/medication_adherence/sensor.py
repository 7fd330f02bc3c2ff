"""Platform for Medication Adherence sensor."""
from __future__ import annotations

from datetime import datetime, timedelta
import logging

from homeassistant.components.sensor import SensorEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import PERCENTAGE, UnitOfTime
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import ServiceValidationError
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.util import dt as dt_util

from .const import DOMAIN
from .schedule import generate_times
from .stats import (
    build_expected, classify_dose, daily_metrics, low_stock_ranking,
    overall_adherence, per_medicine_adherence, perfect_days, series,
    stock_projection, streak,
)
from .tracker import MedicationTracker

_LOGGER = logging.getLogger(__name__)

SCAN_INTERVAL = timedelta(minutes=1)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up the sensor platform from UI Config Entry."""
    tracker: MedicationTracker = hass.data[DOMAIN][entry.entry_id]

    sensors = [MedicineSensor(tracker, medicine.id) for medicine in tracker.medicines]
    sensors += [
        TodayAdherenceSensor(tracker),
        RangeAdherenceSensor(tracker),
        StreakSensor(tracker),
        StockSensor(tracker),
    ]
    async_add_entities(sensors, True)


def _format_time(moment: datetime) -> str:
    """Format a time as 12-hour, dropping ':00'."""
    hour = moment.strftime("%I").lstrip("0")
    minute = moment.strftime("%M")
    ampm = moment.strftime("%p")
    if minute == "00":
        return f"{hour} {ampm}"
    return f"{hour}:{minute} {ampm}"


def _at(now: datetime, scheduled_time: str) -> datetime:
    hour, minute = (int(part) for part in scheduled_time.split(":")[:2])
    return now.replace(hour=hour, minute=minute, second=0, microsecond=0)


class AdherenceEntity(SensorEntity):
    """Sensor recomputed from the tracker every minute and on every change."""

    _attr_should_poll = True

    def __init__(self, tracker: MedicationTracker, key: str) -> None:
        self.tracker = tracker
        self._attr_unique_id = f"{tracker.entry.entry_id}_{key}"

    async def async_added_to_hass(self):
        await super().async_added_to_hass()
        self.async_on_remove(
            async_dispatcher_connect(self.hass, self.tracker.signal, self._handle_tracker_update)
        )

    @callback
    def _handle_tracker_update(self) -> None:
        self._update_state(dt_util.now())
        self.async_write_ha_state()

    async def async_update(self) -> None:
        self._update_state(dt_util.now())

    def _update_state(self, now: datetime) -> None:
        raise NotImplementedError


class MedicineSensor(AdherenceEntity):
    """Today's dosing state of one medicine."""

    def __init__(self, tracker: MedicationTracker, medicine_id: str) -> None:
        """Initialize the sensor."""
        super().__init__(tracker, medicine_id)
        self.medicine_id = medicine_id
        medicine = tracker.get_medicine(medicine_id)
        self._name = medicine.name
        self._icon = medicine.icon
        self._state = "Unknown"
        self._attributes = {}

    @property
    def name(self):
        return self._name

    @property
    def native_value(self):
        return self._state

    @property
    def icon(self):
        return self._icon

    @property
    def extra_state_attributes(self):
        return self._attributes

    def _update_state(self, now: datetime) -> None:
        """Classify today's doses and refresh stock and adherence figures."""
        medicine = self.tracker.get_medicine(self.medicine_id)
        if medicine is None:
            self._state = "Unknown"
            self._icon = "mdi:help-circle"
            return

        doses = build_expected([medicine], self.tracker.intakes, now.date())
        today = []
        overdue = []
        upcoming = []
        for dose in doses:
            outcome = classify_dose(dose, now)
            today.append({"time": dose.scheduled_time, "status": dose.status, "outcome": outcome})
            if not dose.is_open:
                continue
            # Pending doses follow the clock like unrecorded ones.
            if now > _at(now, dose.scheduled_time):
                overdue.append(dose)
            else:
                upcoming.append(dose)

        next_due = None
        if not doses:
            self._state = "Not scheduled today"
            self._icon = "mdi:calendar-remove"
        elif overdue:
            next_due = _at(now, overdue[0].scheduled_time)
            self._state = "Overdue"
            self._icon = "mdi:alert-circle"
        elif upcoming:
            next_due = _at(now, upcoming[0].scheduled_time)
            self._state = f"Due at {_format_time(next_due)}"
            self._icon = "mdi:clock-outline"
        else:
            self._state = "Done for today"
            self._icon = medicine.icon

        adherence = per_medicine_adherence(
            [medicine], self.tracker.intakes, self.tracker.range_days, now=now
        )[0]
        stock = stock_projection(medicine, now.date())
        taken_times = [
            intake.actual_time
            for intake in self.tracker.intakes
            if intake.medicine_id == medicine.id and intake.actual_time
        ]

        self._attributes = {
            "dosage": medicine.dosage,
            "frequency": medicine.frequency,
            "schedule_times": generate_times(medicine),
            "take_with_food": medicine.take_with_food,
            "notes": medicine.notes,
            "start_date": medicine.start_date.isoformat(),
            "end_date": medicine.end_date.isoformat() if medicine.end_date else None,
            "today": today,
            "next_due": next_due.isoformat() if next_due else None,
            "last_taken": max(taken_times).isoformat() if taken_times else None,
            "current_stock": medicine.current_stock,
            "low_stock_alert": medicine.low_stock_alert,
            "low_stock": stock.low_stock,
            "days_left": stock.days_left,
            "run_out_date": stock.run_out_date.isoformat() if stock.run_out_date else None,
            "adherence_rate": adherence.rate,
            "doses_taken": adherence.taken,
            "doses_total": adherence.total,
        }
        _LOGGER.debug("%s is %s", self._name, self._state)

    async def async_record_intake(self, status, scheduled_time=None, day=None, notes=None):
        """Action: record the outcome of a dose, the next open one by default."""
        if scheduled_time is None:
            scheduled_time = self.tracker.next_dose_time(self.medicine_id, day=day)
        if scheduled_time is None:
            raise ServiceValidationError(f"No unrecorded dose left for {self._name}")
        await self.tracker.async_record_intake(
            self.medicine_id, scheduled_time, status, day=day, notes=notes
        )


class TodayAdherenceSensor(AdherenceEntity):
    """Adherence rate of the current day."""

    _attr_name = "Adherence Today"
    _attr_icon = "mdi:calendar-check"
    _attr_native_unit_of_measurement = PERCENTAGE

    def __init__(self, tracker: MedicationTracker) -> None:
        super().__init__(tracker, "today")

    def _update_state(self, now: datetime) -> None:
        medicines, intakes = self.tracker.medicines, self.tracker.intakes
        metrics = daily_metrics(medicines, intakes, now.date(), now=now)
        self._attr_native_value = metrics.adherence_rate
        self._attr_extra_state_attributes = {
            "taken": metrics.taken,
            "skipped": metrics.skipped,
            "missed": metrics.missed,
            "upcoming": metrics.upcoming,
            "scheduled": metrics.scheduled,
            "doses": [
                {
                    "medicine": dose.medicine.name,
                    "time": dose.scheduled_time,
                    "status": dose.status,
                    "outcome": classify_dose(dose, now),
                }
                for dose in build_expected(medicines, intakes, now.date())
            ],
        }


class RangeAdherenceSensor(AdherenceEntity):
    """Pooled adherence over the configured report range."""

    _attr_name = "Medication Adherence"
    _attr_icon = "mdi:chart-bar"
    _attr_native_unit_of_measurement = PERCENTAGE

    def __init__(self, tracker: MedicationTracker) -> None:
        super().__init__(tracker, "range")

    def _update_state(self, now: datetime) -> None:
        days = self.tracker.range_days
        medicines, intakes = self.tracker.medicines, self.tracker.intakes
        daily = series(medicines, intakes, days, now=now)
        overall = overall_adherence(daily)
        self._attr_native_value = overall["rate"]
        self._attr_extra_state_attributes = {
            "range_days": days,
            "taken": overall["taken"],
            "skipped": overall["skipped"],
            "missed": overall["missed"],
            "per_medicine": [
                {"name": item.medicine.name, "taken": item.taken, "total": item.total, "rate": item.rate}
                for item in per_medicine_adherence(medicines, intakes, days, now=now)
            ],
            "series": [metrics.as_dict() for metrics in daily],
        }


class StreakSensor(AdherenceEntity):
    """Run of trailing days on which every scheduled dose was taken."""

    _attr_name = "Adherence Streak"
    _attr_icon = "mdi:fire"
    _attr_native_unit_of_measurement = UnitOfTime.DAYS

    def __init__(self, tracker: MedicationTracker) -> None:
        super().__init__(tracker, "streak")

    def _update_state(self, now: datetime) -> None:
        days = self.tracker.range_days
        daily = series(self.tracker.medicines, self.tracker.intakes, days, now=now)
        self._attr_native_value = streak(daily)
        self._attr_extra_state_attributes = {
            "perfect_days": perfect_days(daily),
            "range_days": days,
        }


class StockSensor(AdherenceEntity):
    """Number of medicines at or below their low-stock alert."""

    _attr_name = "Medication Stock"
    _attr_icon = "mdi:pill-multiple"

    def __init__(self, tracker: MedicationTracker) -> None:
        super().__init__(tracker, "stock")

    def _update_state(self, now: datetime) -> None:
        today = now.date()
        medicines = self.tracker.medicines
        self._attr_native_value = sum(
            1 for medicine in medicines if stock_projection(medicine, today).low_stock
        )
        self._attr_extra_state_attributes = {
            "lowest": [
                {
                    "name": projection.medicine.name,
                    "current_stock": projection.medicine.current_stock,
                    "days_left": projection.days_left,
                    "run_out_date": projection.run_out_date.isoformat(),
                    "low_stock": projection.low_stock,
                }
                for projection in low_stock_ranking(medicines, today)
            ],
        }
