"""Persistent host state for one Medication Adherence entry."""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime
import logging
import uuid

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import ServiceValidationError
from homeassistant.helpers.dispatcher import async_dispatcher_send
from homeassistant.helpers.storage import Store
from homeassistant.util import dt as dt_util

from .const import (
    CONF_MEDICINES, CONF_ORDER, CONF_RANGE_DAYS, DEFAULT_RANGE_DAYS, SIGNAL_TRACKER_UPDATED,
    STATUS_TAKEN, STORAGE_KEY, STORAGE_VERSION,
)
from .export import export_intakes_csv
from .models import Medicine, MedicineIntake
from .schedule import as_date, generate_times, is_active_on_date
from .stats import build_expected

_LOGGER = logging.getLogger(__name__)


def configured_medicines(entry: ConfigEntry) -> dict:
    """Medicine configs in display order, options taking precedence."""
    medicines = entry.options.get(CONF_MEDICINES)
    if medicines is None:
        medicines = entry.data.get(CONF_MEDICINES, {})
    ordered = {
        mid: medicines[mid] for mid in entry.options.get(CONF_ORDER, []) if mid in medicines
    }
    for mid, med_data in medicines.items():
        ordered.setdefault(mid, med_data)
    return ordered


def _write_csv(path, intakes, medicines):
    with open(path, "w", newline="", encoding="utf-8") as fh:
        export_intakes_csv(intakes, medicines, fh)


class MedicationTracker:
    """Medicines from the config entry plus the stored intake log."""

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
        self.hass = hass
        self.entry = entry
        self._store = Store(hass, STORAGE_VERSION, f"{STORAGE_KEY}.{entry.entry_id}")
        self._stock: dict[str, dict[str, int]] = {}
        self.medicines: list[Medicine] = []
        self.intakes: list[MedicineIntake] = []

    @property
    def signal(self) -> str:
        return f"{SIGNAL_TRACKER_UPDATED}_{self.entry.entry_id}"

    @property
    def range_days(self) -> int:
        return int(self.entry.options.get(
            CONF_RANGE_DAYS, self.entry.data.get(CONF_RANGE_DAYS, DEFAULT_RANGE_DAYS)
        ))

    def get_medicine(self, medicine_id: str) -> Medicine | None:
        return next((m for m in self.medicines if m.id == medicine_id), None)

    async def async_load(self) -> None:
        """Load the intake log and reconcile it with the configured medicines."""
        data = await self._store.async_load() or {}
        saved_stock = data.get("stock", {})

        self.medicines = []
        self._stock = {}
        for med_id, med_data in configured_medicines(self.entry).items():
            medicine = Medicine.from_config(med_id, med_data)
            stock = saved_stock.get(med_id)
            # A changed configured stock is a refill and replaces the count.
            if stock is None or stock.get("configured") != medicine.current_stock:
                stock = {"configured": medicine.current_stock, "current": medicine.current_stock}
            self._stock[med_id] = stock
            self.medicines.append(replace(medicine, current_stock=stock["current"]))

        known = {medicine.id for medicine in self.medicines}
        intakes = [MedicineIntake.from_dict(raw) for raw in data.get("intakes", [])]
        self.intakes = [intake for intake in intakes if intake.medicine_id in known]
        if len(self.intakes) != len(intakes):
            _LOGGER.info(
                "Dropped %s intake records of removed medicines",
                len(intakes) - len(self.intakes),
            )
        await self.async_save()

    async def async_save(self) -> None:
        _LOGGER.debug("Saving %s intake records", len(self.intakes))
        await self._store.async_save({
            "intakes": [intake.as_dict() for intake in self.intakes],
            "stock": self._stock,
        })

    async def async_record_intake(
        self,
        medicine_id: str,
        scheduled_time: str,
        status: str,
        day=None,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> MedicineIntake:
        """Record or replace the outcome of one scheduled dose."""
        now = now or dt_util.now()
        medicine = self.get_medicine(medicine_id)
        if medicine is None:
            raise ServiceValidationError(f"Unknown medicine: {medicine_id}")
        if scheduled_time not in generate_times(medicine):
            raise ServiceValidationError(
                f"{scheduled_time} is not a scheduled time for {medicine.name}"
            )

        day = as_date(day) or now.date()
        if day > now.date():
            raise ServiceValidationError(f"Cannot record a dose for a future date: {day}")
        if not is_active_on_date(medicine, day):
            raise ServiceValidationError(f"{medicine.name} is not scheduled on {day}")
        key = (medicine_id, day, scheduled_time)
        intake = next((i for i in self.intakes if i.key == key), None)
        was_taken = intake is not None and intake.status == STATUS_TAKEN
        if intake is None:
            intake = MedicineIntake(
                id=str(uuid.uuid4()),
                medicine_id=medicine_id,
                scheduled_time=scheduled_time,
                date=day,
                status=status,
            )
            self.intakes.append(intake)

        intake.status = status
        intake.actual_time = now if status == STATUS_TAKEN else None
        if notes is not None:
            intake.notes = notes

        if status == STATUS_TAKEN and not was_taken:
            self._consume_stock(medicine)

        await self.async_save()
        async_dispatcher_send(self.hass, self.signal)
        return intake

    def _consume_stock(self, medicine: Medicine) -> None:
        stock = self._stock[medicine.id]
        stock["current"] = max(0, stock["current"] - 1)
        self.medicines = [
            replace(m, current_stock=stock["current"]) if m.id == medicine.id else m
            for m in self.medicines
        ]

    def next_dose_time(
        self, medicine_id: str, day=None, now: datetime | None = None
    ) -> str | None:
        """Earliest dose of the day (today by default) still awaiting an outcome."""
        day = as_date(day) or (now or dt_util.now()).date()
        medicine = self.get_medicine(medicine_id)
        if medicine is None:
            return None
        for dose in build_expected([medicine], self.intakes, day):
            if dose.is_open:
                return dose.scheduled_time
        return None

    @callback
    def reorder(self, ordered_ids: list[str]) -> None:
        """Put the listed medicines first, keeping the rest in their order."""
        configured = configured_medicines(self.entry)
        order = [mid for mid in ordered_ids if mid in configured]
        order += [mid for mid in configured if mid not in order]
        self.hass.config_entries.async_update_entry(
            self.entry,
            options={
                **self.entry.options,
                CONF_MEDICINES: configured,
                CONF_ORDER: order,
            },
        )

    async def async_export_csv(self, path: str) -> None:
        await self.hass.async_add_executor_job(
            _write_csv, path, list(self.intakes), list(self.medicines)
        )
        _LOGGER.info("Exported %s intake records to %s", len(self.intakes), path)
