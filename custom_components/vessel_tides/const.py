"""Constants for Vessel Tides (strict)."""

from datetime import timedelta

# Integration identity
DOMAIN = "vessel_tides"
DEFAULT_NAME = "Vessel Tides"

# Storage keys (one Store per key, owned by a single component)
STORE_VERSION = 1
STORE_KEY_POSITION = f"{DOMAIN}_position"
STORE_KEY_HARMONICS = f"{DOMAIN}_harmonics"
STORE_KEY_HARMONICS_BACKUP = f"{DOMAIN}_harmonics_backup"
STORE_KEY_HARMONICS_METADATA = f"{DOMAIN}_harmonics_metadata"
STORE_KEY_NOAA_STATIONS = f"{DOMAIN}_noaa_stations"

# Remote endpoints
NOAA_MDAPI_BASE = "https://api.tidesandcurrents.noaa.gov/mdapi/prod/webapi"
NOAA_DATAGETTER = "https://api.tidesandcurrents.noaa.gov/api/prod/datagetter"
WORLDTIDES_BASE = "https://www.worldtides.info/api/v3"
STORMGLASS_BASE = "https://api.stormglass.io/v2/tide/extremes/point"
NOAA_APPLICATION = "home-assistant.vessel_tides"

# ----- Config keys used by the flow and entry data -----
CONF_NAME = "name"
CONF_POSITION_ENTITY = "position_entity"
CONF_SOURCE = "source"
CONF_WORLDTIDES_API_KEY = "worldtides_api_key"
CONF_STORMGLASS_API_KEY = "stormglass_api_key"
CONF_PERIOD = "period"
CONF_STATION_SWITCH_THRESHOLD = "station_switch_threshold"
CONF_ENABLE_OFFLINE_FALLBACK = "enable_offline_fallback"
CONF_OFFLINE_MODE = "offline_mode"
CONF_SHOW_OFFLINE_WARNING = "show_offline_warning"
CONF_HARMONICS_RADIUS = "harmonics_radius"
CONF_HARMONICS_UPDATE_FREQUENCY = "harmonics_update_frequency"
CONF_HARMONICS_MIN_STATIONS = "harmonics_min_stations"
CONF_HARMONICS_EXPAND_RADIUS = "harmonics_expand_radius"
CONF_HARMONICS_MAX_RADIUS = "harmonics_max_radius"

# Data sources
SOURCE_NOAA = "noaa"
SOURCE_WORLDTIDES = "worldtides"
SOURCE_STORMGLASS = "stormglass"
SOURCE_OFFLINE = "offline"
SOURCES = [SOURCE_NOAA, SOURCE_WORLDTIDES, SOURCE_STORMGLASS, SOURCE_OFFLINE]

# Offline modes
OFFLINE_MODE_AUTO = "auto"
OFFLINE_MODE_ALWAYS = "always"

# Harmonics update frequencies -> maximum cache age in days (None = manual)
UPDATE_FREQUENCY_DAYS = {
    "manual": None,
    "quarterly": 90,
    "semiannual": 180,
    "annual": 365,
}

# Defaults
DEFAULT_PERIOD_MINUTES = 60
DEFAULT_STATION_SWITCH_THRESHOLD_KM = 10.0
DEFAULT_ENABLE_OFFLINE_FALLBACK = True
DEFAULT_OFFLINE_MODE = OFFLINE_MODE_AUTO
DEFAULT_SHOW_OFFLINE_WARNING = True
DEFAULT_HARMONICS_RADIUS_NM = 500
DEFAULT_HARMONICS_UPDATE_FREQUENCY = "quarterly"
DEFAULT_HARMONICS_MIN_STATIONS = 2
DEFAULT_HARMONICS_EXPAND_RADIUS = True
DEFAULT_HARMONICS_MAX_RADIUS_NM = 1000
DEFAULT_HARMONICS_REQUEST_DELAY = 0.1  # seconds between per-station catalog requests

# Harmonics cache policy
HARMONICS_MAX_CENTER_DISTANCE_NM = 300
HARMONICS_RADIUS_STEP_NM = 200

# Primary constituents a station must carry to be usable offline
PRIMARY_CONSTITUENTS = ["M2", "S2", "N2", "K2", "K1", "O1", "P1", "Q1"]

# Heuristic margin (m) added when inferring an MLLW offset from observed lows.
# Not physically derived; keep configurable.
DEFAULT_DATUM_SAFETY_MARGIN = 0.2

# Forecast window requested from providers
FORECAST_LOOKBACK = timedelta(days=1)
FORECAST_DAYS = 7

# Timeouts (seconds)
PROVIDER_TIMEOUT = 30
CATALOG_TIMEOUT = 30
# per source attempt (online, then offline)
UPDATE_ATTEMPT_TIMEOUT = 60

# Scheduling
TIDE_STATE_INTERVAL = timedelta(minutes=1)
STARTUP_DELAY = 4  # seconds, lets the position feed populate
POSITION_RETRY_DELAY = 5 * 60  # seconds
POSITION_MAX_RETRIES = 3

# Status / presentation
OFFLINE_WARNING_TEXT = "NOT FOR NAVIGATION"
OFFLINE_STATION_SUFFIX = " (Offline)"
SIGNAL_HEIGHT_NOW = f"{DOMAIN}_height_now_{{}}"

# Services
SERVICE_GET_FORECAST = "get_forecast"
ATTR_ENTRY_ID = "entry_id"
ATTR_DATE = "date"
