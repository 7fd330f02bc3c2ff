"""The Medication Adherence integration."""
from __future__ import annotations

import logging

import voluptuous as vol

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import ATTR_ENTITY_ID
from homeassistant.core import HomeAssistant, ServiceCall
from homeassistant.helpers import config_validation as cv
from homeassistant.helpers.entity_platform import async_get_platforms

from .const import (
    ATTR_DATE, ATTR_FILENAME, ATTR_NOTES, ATTR_SCHEDULED_TIME, ATTR_STATUS,
    DEFAULT_EXPORT_FILENAME, DOMAIN, INTAKE_STATUSES, SERVICE_EXPORT,
    SERVICE_RECORD, SERVICE_REORDER, SERVICE_TAKE, STATUS_TAKEN,
)
from .tracker import MedicationTracker

_LOGGER = logging.getLogger(__name__)

PLATFORMS = ["sensor"]

CONFIG_SCHEMA = cv.config_entry_only_config_schema(DOMAIN)

HH_MM = vol.All(cv.time, lambda value: value.strftime("%H:%M"))

TAKE_SCHEMA = vol.Schema({
    vol.Required(ATTR_ENTITY_ID): cv.entity_ids,
    vol.Optional(ATTR_SCHEDULED_TIME): HH_MM,
})

RECORD_SCHEMA = vol.Schema({
    vol.Required(ATTR_ENTITY_ID): cv.entity_ids,
    vol.Optional(ATTR_STATUS, default=STATUS_TAKEN): vol.In(INTAKE_STATUSES),
    vol.Optional(ATTR_SCHEDULED_TIME): HH_MM,
    vol.Optional(ATTR_DATE): cv.date,
    vol.Optional(ATTR_NOTES): cv.string,
})

REORDER_SCHEMA = vol.Schema({
    vol.Required(ATTR_ENTITY_ID): cv.entity_ids,
})

EXPORT_SCHEMA = vol.Schema({
    vol.Optional(ATTR_FILENAME, default=DEFAULT_EXPORT_FILENAME): cv.string,
})


def _medicine_entities(hass: HomeAssistant, entity_ids: list[str]):
    """Yield medicine entities in the order the ids were given."""
    found = {}
    for platform in async_get_platforms(hass, DOMAIN):
        for entity in platform.entities.values():
            if entity.entity_id in entity_ids and hasattr(entity, "medicine_id"):
                found[entity.entity_id] = entity
    for entity_id in entity_ids:
        if entity_id in found:
            yield found[entity_id]


async def async_setup(hass: HomeAssistant, config: dict) -> bool:
    """Set up the Medication Adherence services."""

    # 1. Take Medicine Service
    async def handle_take_medicine(call: ServiceCall):
        for entity in _medicine_entities(hass, call.data[ATTR_ENTITY_ID]):
            await entity.async_record_intake(
                STATUS_TAKEN, scheduled_time=call.data.get(ATTR_SCHEDULED_TIME)
            )

    # 2. Record Intake Service
    async def handle_record_intake(call: ServiceCall):
        for entity in _medicine_entities(hass, call.data[ATTR_ENTITY_ID]):
            await entity.async_record_intake(
                call.data[ATTR_STATUS],
                scheduled_time=call.data.get(ATTR_SCHEDULED_TIME),
                day=call.data.get(ATTR_DATE),
                notes=call.data.get(ATTR_NOTES),
            )

    # 3. Reorder Service
    async def handle_reorder(call: ServiceCall):
        orders: dict[str, tuple[MedicationTracker, list[str]]] = {}
        for entity in _medicine_entities(hass, call.data[ATTR_ENTITY_ID]):
            tracker = entity.tracker
            orders.setdefault(tracker.entry.entry_id, (tracker, []))[1].append(entity.medicine_id)
        for tracker, medicine_ids in orders.values():
            _LOGGER.debug("Reordering medicines of %s: %s", tracker.entry.title, medicine_ids)
            tracker.reorder(medicine_ids)

    # 4. Export Service
    async def handle_export(call: ServiceCall):
        path = hass.config.path(call.data[ATTR_FILENAME])
        for tracker in hass.data.get(DOMAIN, {}).values():
            await tracker.async_export_csv(path)

    hass.services.async_register(DOMAIN, SERVICE_TAKE, handle_take_medicine, schema=TAKE_SCHEMA)
    hass.services.async_register(DOMAIN, SERVICE_RECORD, handle_record_intake, schema=RECORD_SCHEMA)
    hass.services.async_register(DOMAIN, SERVICE_REORDER, handle_reorder, schema=REORDER_SCHEMA)
    hass.services.async_register(DOMAIN, SERVICE_EXPORT, handle_export, schema=EXPORT_SCHEMA)

    return True


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Medication Adherence from a config entry."""
    tracker = MedicationTracker(hass, entry)
    await tracker.async_load()
    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = tracker

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    entry.async_on_unload(entry.add_update_listener(update_listener))
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    unloaded = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unloaded:
        hass.data[DOMAIN].pop(entry.entry_id)
        if not hass.data[DOMAIN]:
            hass.data.pop(DOMAIN)
    return unloaded


async def update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload the integration when options are updated."""
    await hass.config_entries.async_reload(entry.entry_id)
