"""Constants for the Medication Adherence integration."""

DOMAIN = "medication_adherence"

STORAGE_KEY = DOMAIN
STORAGE_VERSION = 1
SIGNAL_TRACKER_UPDATED = f"{DOMAIN}_updated"

# Configuration Keys (Entry Level)
CONF_MEDICINES = "medicines"
CONF_ORDER = "order"
CONF_RANGE_DAYS = "range_days"

# Medicine Properties (Item Level)
CONF_MEDICINE_ID = "med_id"
CONF_NAME = "name"
CONF_ICON = "icon"
CONF_DOSAGE = "dosage"
CONF_FREQUENCY = "frequency"
CONF_CUSTOM_TIMES = "custom_times"
CONF_INTERVAL_HOURS = "interval_hours"
CONF_START_DATE = "start_date"
CONF_END_DATE = "end_date"
CONF_CURRENT_STOCK = "current_stock"
CONF_LOW_STOCK_ALERT = "low_stock_alert"
CONF_TAKE_WITH_FOOD = "take_with_food"
CONF_NOTES = "notes"
CONF_CREATED_AT = "created_at"

# Frequencies
FREQ_ONCE_DAILY = "once-daily"
FREQ_TWICE_DAILY = "twice-daily"
FREQ_THREE_TIMES_DAILY = "three-times-daily"
FREQ_FOUR_TIMES_DAILY = "four-times-daily"
FREQ_CUSTOM_TIMES = "custom-times"
FREQ_INTERVAL_HOURS = "interval-hours"

FIXED_TIMES = {
    FREQ_ONCE_DAILY: ["09:00"],
    FREQ_TWICE_DAILY: ["09:00", "21:00"],
    FREQ_THREE_TIMES_DAILY: ["08:00", "14:00", "20:00"],
    FREQ_FOUR_TIMES_DAILY: ["08:00", "12:00", "16:00", "20:00"],
}

DEFAULT_INTERVAL_HOURS = 8
FIRST_DOSE_HOUR = 8

# Intake statuses (as recorded)
STATUS_PENDING = "pending"
STATUS_TAKEN = "taken"
STATUS_SKIPPED = "skipped"
STATUS_DELAYED = "delayed"
INTAKE_STATUSES = [STATUS_PENDING, STATUS_TAKEN, STATUS_SKIPPED, STATUS_DELAYED]

# Dose outcomes (as classified)
OUTCOME_TAKEN = "taken"
OUTCOME_SKIPPED = "skipped"
OUTCOME_MISSED = "missed"
OUTCOME_UPCOMING = "upcoming"
UNRECORDED = "unrecorded"

# Reporting
RANGE_OPTIONS = [7, 30, 90]
DEFAULT_RANGE_DAYS = 30
LOW_STOCK_RANKING_SIZE = 3

# Services
SERVICE_TAKE = "take_medicine"
SERVICE_RECORD = "record_intake"
SERVICE_REORDER = "reorder_medicines"
SERVICE_EXPORT = "export_history"

ATTR_SCHEDULED_TIME = "scheduled_time"
ATTR_STATUS = "status"
ATTR_DATE = "date"
ATTR_NOTES = "notes"
ATTR_MEDICINE_IDS = "medicine_ids"
ATTR_FILENAME = "filename"

DEFAULT_EXPORT_FILENAME = "medication_adherence_history.csv"

CSV_COLUMNS = [
    "id",
    "medicineId",
    "medicineName",
    "date",
    "scheduledTime",
    "actualTime",
    "status",
    "notes",
]
