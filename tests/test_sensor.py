"""Tests for the Medication Adherence sensors."""
from unittest.mock import patch

from homeassistant.helpers.entity_component import async_update_entity
from homeassistant.util import dt as dt_util

from custom_components.medication_adherence.const import (
    DOMAIN, CONF_MEDICINES, CONF_RANGE_DAYS, CONF_NAME, CONF_ICON,
    CONF_DOSAGE, CONF_FREQUENCY, CONF_CUSTOM_TIMES, CONF_START_DATE,
    CONF_CURRENT_STOCK, CONF_LOW_STOCK_ALERT, CONF_TAKE_WITH_FOOD,
)

from pytest_homeassistant_custom_component.common import MockConfigEntry


def _medicine(name, frequency="once-daily", **extra):
    return {
        CONF_NAME: name,
        CONF_ICON: "mdi:pill",
        CONF_FREQUENCY: frequency,
        CONF_START_DATE: "2024-01-01",
        CONF_CURRENT_STOCK: 30,
        CONF_LOW_STOCK_ALERT: 5,
        **extra,
    }


async def _setup(hass, medicines):
    entry = MockConfigEntry(
        domain=DOMAIN, data={CONF_RANGE_DAYS: 7, CONF_MEDICINES: medicines}
    )
    entry.add_to_hass(hass)
    await hass.config_entries.async_setup(entry.entry_id)
    await hass.async_block_till_done()
    return entry


async def test_sensor_setup(hass):
    """Test setting up the sensor from config entry."""
    await _setup(hass, {
        "med1": _medicine(
            "Vitamin C", "three-times-daily", **{CONF_DOSAGE: "500mg", CONF_TAKE_WITH_FOOD: True}
        ),
    })

    state = hass.states.get("sensor.vitamin_c")
    assert state is not None
    assert state.attributes["dosage"] == "500mg"
    assert state.attributes["schedule_times"] == ["08:00", "14:00", "20:00"]
    assert state.attributes["take_with_food"] is True
    assert state.attributes["days_left"] == 10


async def test_sensor_state_calculations(hass):
    """Test state calculations (Due, Overdue, etc.)."""
    # Set time to 7:00 AM
    now = dt_util.now().replace(hour=7, minute=0, second=0, microsecond=0)

    with patch("homeassistant.util.dt.now", return_value=now):
        await _setup(hass, {"med1": _medicine("Morning Pill")})

        state = hass.states.get("sensor.morning_pill")
        assert state.state == "Due at 9 AM"
        assert state.attributes["next_due"] == now.replace(hour=9).isoformat()

    # Advance time to 9:30 AM
    now = now.replace(hour=9, minute=30)
    with patch("homeassistant.util.dt.now", return_value=now):
        await async_update_entity(hass, "sensor.morning_pill")

        state = hass.states.get("sensor.morning_pill")
        assert state.state == "Overdue"


async def test_custom_time_state(hass):
    """Test minutes are shown for off-the-hour doses."""
    now = dt_util.now().replace(hour=7, minute=0, second=0, microsecond=0)
    with patch("homeassistant.util.dt.now", return_value=now):
        await _setup(hass, {
            "med1": _medicine("Evening Pill", "custom-times", **{CONF_CUSTOM_TIMES: ["20:30"]}),
        })

        assert hass.states.get("sensor.evening_pill").state == "Due at 8:30 PM"


async def test_next_dose_after_taking_morning_dose(hass):
    """Test the evening dose is due once the morning one is taken."""
    now = dt_util.now().replace(hour=10, minute=0, second=0, microsecond=0)
    with patch("homeassistant.util.dt.now", return_value=now):
        await _setup(hass, {"med1": _medicine("Twice Pill", "twice-daily")})

        await hass.services.async_call(
            DOMAIN, "take_medicine", {"entity_id": "sensor.twice_pill"}, blocking=True
        )

        state = hass.states.get("sensor.twice_pill")
        assert state.state == "Due at 9 PM"
        assert state.attributes["doses_taken"] == 1
        assert state.attributes["last_taken"] == now.isoformat()


async def test_not_scheduled_today(hass):
    """Test a medicine that has not started yet."""
    await _setup(hass, {
        "med1": _medicine("Future Pill", **{CONF_START_DATE: "2099-01-01"}),
    })

    state = hass.states.get("sensor.future_pill")
    assert state.state == "Not scheduled today"
    assert state.attributes["doses_total"] == 0


async def test_aggregate_sensors(hass):
    """Test today, range, streak and stock sensors."""
    now = dt_util.now().replace(hour=12, minute=0, second=0, microsecond=0)
    with patch("homeassistant.util.dt.now", return_value=now):
        await _setup(hass, {
            "med1": _medicine("Low Pill", **{CONF_CURRENT_STOCK: 3}),
            "med2": _medicine("Full Pill", "twice-daily"),
        })

        today = hass.states.get("sensor.adherence_today")
        assert today.state == "0"
        assert today.attributes["missed"] == 2
        assert today.attributes["upcoming"] == 1
        assert [dose["time"] for dose in today.attributes["doses"]] == ["09:00", "09:00", "21:00"]

        overall = hass.states.get("sensor.medication_adherence")
        assert overall.state == "0"
        assert overall.attributes["range_days"] == 7
        assert len(overall.attributes["series"]) == 7
        assert {item["name"] for item in overall.attributes["per_medicine"]} == {"Low Pill", "Full Pill"}

        streak = hass.states.get("sensor.adherence_streak")
        assert streak.state == "0"
        assert streak.attributes["perfect_days"] == 0

        stock = hass.states.get("sensor.medication_stock")
        assert stock.state == "1"
        lowest = stock.attributes["lowest"]
        assert [item["name"] for item in lowest] == ["Low Pill", "Full Pill"]
        assert lowest[0]["days_left"] == 3
        assert lowest[0]["low_stock"] is True
