"""Config flow for Medication Adherence integration."""
from __future__ import annotations

from datetime import datetime
import logging
import uuid
from typing import Any

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.core import callback
from homeassistant.data_entry_flow import FlowResult
from homeassistant.helpers.selector import (
    BooleanSelector,
    DateSelector,
    IconSelector,
    NumberSelector,
    NumberSelectorConfig,
    NumberSelectorMode,
    SelectOptionDict,
    SelectSelector,
    SelectSelectorConfig,
    SelectSelectorMode,
    TextSelector,
    TextSelectorConfig,
)
from homeassistant.util import dt as dt_util

from .const import (
    CONF_CREATED_AT, CONF_CURRENT_STOCK, CONF_CUSTOM_TIMES, CONF_DOSAGE,
    CONF_END_DATE, CONF_FREQUENCY, CONF_ICON, CONF_INTERVAL_HOURS,
    CONF_LOW_STOCK_ALERT, CONF_MEDICINE_ID, CONF_MEDICINES, CONF_NAME,
    CONF_NOTES, CONF_ORDER, CONF_RANGE_DAYS, CONF_START_DATE,
    CONF_TAKE_WITH_FOOD, DEFAULT_INTERVAL_HOURS, DEFAULT_RANGE_DAYS, DOMAIN,
    FREQ_CUSTOM_TIMES, FREQ_FOUR_TIMES_DAILY, FREQ_INTERVAL_HOURS,
    FREQ_ONCE_DAILY, FREQ_THREE_TIMES_DAILY, FREQ_TWICE_DAILY, RANGE_OPTIONS,
)
from .schedule import as_date

_LOGGER = logging.getLogger(__name__)

FREQUENCY_OPTIONS = [
    SelectOptionDict(value=FREQ_ONCE_DAILY, label="Once daily (09:00)"),
    SelectOptionDict(value=FREQ_TWICE_DAILY, label="Twice daily (09:00, 21:00)"),
    SelectOptionDict(value=FREQ_THREE_TIMES_DAILY, label="Three times daily (08:00, 14:00, 20:00)"),
    SelectOptionDict(value=FREQ_FOUR_TIMES_DAILY, label="Four times daily (08:00, 12:00, 16:00, 20:00)"),
    SelectOptionDict(value=FREQ_CUSTOM_TIMES, label="Custom times"),
    SelectOptionDict(value=FREQ_INTERVAL_HOURS, label="Every N hours from 08:00"),
]

RANGE_SELECTOR = SelectSelector(
    SelectSelectorConfig(
        options=[SelectOptionDict(value=str(days), label=f"Last {days} days") for days in RANGE_OPTIONS],
        mode=SelectSelectorMode.DROPDOWN,
    )
)


def _count(minimum: int, maximum: int | None = None) -> NumberSelector:
    config = NumberSelectorConfig(min=minimum, step=1, mode=NumberSelectorMode.BOX)
    if maximum is not None:
        config["max"] = maximum
    return NumberSelector(config)


def _normalize_time(value: str) -> str:
    """Return 'HH:MM' for an 'H:MM' or 'HH:MM:SS' entry, ValueError otherwise."""
    value = value.strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(value, fmt).strftime("%H:%M")
        except ValueError:
            continue
    raise ValueError(value)


def get_medicine_schema(defaults=None):
    """Build the schema for a single medicine."""
    if defaults is None:
        defaults = {}

    schema = {
        vol.Required(CONF_NAME, default=defaults.get(CONF_NAME)): str,
        vol.Optional(CONF_DOSAGE, default=defaults.get(CONF_DOSAGE, "")): str,
        vol.Optional(CONF_ICON, default=defaults.get(CONF_ICON, "mdi:pill")): IconSelector(),

        vol.Required(CONF_FREQUENCY, default=defaults.get(CONF_FREQUENCY, FREQ_ONCE_DAILY)): SelectSelector(
            SelectSelectorConfig(options=FREQUENCY_OPTIONS, mode=SelectSelectorMode.DROPDOWN)
        ),
        # Only used by the custom-times and interval-hours frequencies
        vol.Optional(CONF_CUSTOM_TIMES, default=defaults.get(CONF_CUSTOM_TIMES, [])): SelectSelector(
            SelectSelectorConfig(options=[], multiple=True, custom_value=True)
        ),
        vol.Optional(
            CONF_INTERVAL_HOURS, default=defaults.get(CONF_INTERVAL_HOURS) or DEFAULT_INTERVAL_HOURS
        ): _count(1, 24),

        vol.Required(
            CONF_START_DATE, default=defaults.get(CONF_START_DATE, dt_util.now().date().isoformat())
        ): DateSelector(),
        vol.Optional(
            CONF_END_DATE, description={"suggested_value": defaults.get(CONF_END_DATE)}
        ): DateSelector(),

        vol.Required(CONF_CURRENT_STOCK, default=defaults.get(CONF_CURRENT_STOCK, 0)): _count(0),
        vol.Required(CONF_LOW_STOCK_ALERT, default=defaults.get(CONF_LOW_STOCK_ALERT, 5)): _count(1),
        vol.Required(CONF_TAKE_WITH_FOOD, default=defaults.get(CONF_TAKE_WITH_FOOD, False)): BooleanSelector(),
        vol.Optional(
            CONF_NOTES, description={"suggested_value": defaults.get(CONF_NOTES)}
        ): TextSelector(TextSelectorConfig(multiline=True)),
    }
    return vol.Schema(schema)


def validate_medicine(user_input: dict[str, Any]) -> tuple[dict[str, Any], dict[str, str]]:
    """Normalize a submitted medicine form, returning it with any field errors."""
    errors = {}
    data = dict(user_input)

    times = []
    for raw in user_input.get(CONF_CUSTOM_TIMES) or []:
        try:
            times.append(_normalize_time(raw))
        except ValueError:
            errors[CONF_CUSTOM_TIMES] = "invalid_time"
    data[CONF_CUSTOM_TIMES] = times
    if data.get(CONF_FREQUENCY) == FREQ_CUSTOM_TIMES and not times and not errors:
        errors[CONF_CUSTOM_TIMES] = "custom_times_required"

    start = as_date(data.get(CONF_START_DATE))
    end = as_date(data.get(CONF_END_DATE))
    if start is None:
        errors[CONF_START_DATE] = "invalid_date"
    elif end and end < start:
        errors[CONF_END_DATE] = "end_before_start"

    for key in (CONF_INTERVAL_HOURS, CONF_CURRENT_STOCK, CONF_LOW_STOCK_ALERT):
        if data.get(key) is not None:
            data[key] = int(data[key])
    return data, errors


class MedicationAdherenceConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Medication Adherence."""

    VERSION = 1

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        return MedicationAdherenceOptionsFlowHandler(config_entry)

    async def async_step_user(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """Single step: pick the report range."""
        await self.async_set_unique_id(DOMAIN)
        self._abort_if_unique_id_configured()

        if user_input is not None:
            return self.async_create_entry(
                title="Medication Adherence",
                data={
                    CONF_RANGE_DAYS: int(user_input[CONF_RANGE_DAYS]),
                    CONF_MEDICINES: {},
                }
            )

        schema = vol.Schema({
            vol.Required(CONF_RANGE_DAYS, default=str(DEFAULT_RANGE_DAYS)): RANGE_SELECTOR,
        })
        return self.async_show_form(step_id="user", data_schema=schema)


class MedicationAdherenceOptionsFlowHandler(config_entries.OptionsFlow):
    """Handle options flow."""

    def __init__(self, config_entry: config_entries.ConfigEntry) -> None:
        # self.config_entry is a read-only property in HA, only our copies are kept here.
        self.medicines = {**config_entry.options.get(CONF_MEDICINES, config_entry.data.get(CONF_MEDICINES, {}))}
        self.order = list(config_entry.options.get(CONF_ORDER, []))
        self.range_days = config_entry.options.get(
            CONF_RANGE_DAYS, config_entry.data.get(CONF_RANGE_DAYS, DEFAULT_RANGE_DAYS)
        )
        self._editing_id = None

    async def async_step_init(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """Menu: Add/Edit/Remove/Settings."""
        return self.async_show_menu(
            step_id="init",
            menu_options=["add_medicine", "edit_medicine", "remove_medicine", "settings"]
        )

    # --- SETTINGS ---
    async def async_step_settings(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """Change the report range."""
        if user_input is not None:
            self.range_days = int(user_input[CONF_RANGE_DAYS])
            return await self._update_entry()

        schema = vol.Schema({
            vol.Required(CONF_RANGE_DAYS, default=str(self.range_days)): RANGE_SELECTOR,
        })
        return self.async_show_form(step_id="settings", data_schema=schema)

    # --- ADD ---
    async def async_step_add_medicine(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """Form to add a new medicine."""
        errors = {}
        if user_input is not None:
            data, errors = validate_medicine(user_input)
            if not errors:
                new_id = str(uuid.uuid4())
                data[CONF_CREATED_AT] = dt_util.utcnow().isoformat()
                self.medicines[new_id] = data
                return await self._update_entry()

        return self.async_show_form(
            step_id="add_medicine",
            data_schema=get_medicine_schema(user_input),
            errors=errors,
        )

    # --- EDIT ---
    async def async_step_edit_medicine(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        if not self.medicines:
            return self.async_abort(reason="no_medicines")

        if user_input is not None:
            self._editing_id = user_input[CONF_MEDICINE_ID]
            return await self.async_step_edit_medicine_details()

        return self.async_show_form(step_id="edit_medicine", data_schema=self._medicine_picker())

    async def async_step_edit_medicine_details(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        existing_data = self.medicines[self._editing_id]
        errors = {}
        if user_input is not None:
            data, errors = validate_medicine(user_input)
            if not errors:
                data[CONF_CREATED_AT] = existing_data.get(CONF_CREATED_AT)
                self.medicines[self._editing_id] = data
                return await self._update_entry()

        return self.async_show_form(
            step_id="edit_medicine_details",
            data_schema=get_medicine_schema(defaults=user_input or existing_data),
            errors=errors,
        )

    # --- REMOVE ---
    async def async_step_remove_medicine(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        if not self.medicines:
            return self.async_abort(reason="no_medicines")

        if user_input is not None:
            mid = user_input[CONF_MEDICINE_ID]
            if mid in self.medicines:
                # Its intake history is dropped when the entry reloads.
                del self.medicines[mid]
                _LOGGER.info("Removed medicine %s", mid)
            return await self._update_entry()

        return self.async_show_form(step_id="remove_medicine", data_schema=self._medicine_picker())

    def _medicine_picker(self) -> vol.Schema:
        options = [
            SelectOptionDict(value=mid, label=data[CONF_NAME])
            for mid, data in self.medicines.items()
        ]
        return vol.Schema({
            vol.Required(CONF_MEDICINE_ID): SelectSelector(
                SelectSelectorConfig(options=options)
            )
        })

    async def _update_entry(self):
        """Write changes back."""
        return self.async_create_entry(
            title="",
            data={
                CONF_MEDICINES: self.medicines,
                CONF_RANGE_DAYS: self.range_days,
                CONF_ORDER: [mid for mid in self.order if mid in self.medicines],
            }
        )
