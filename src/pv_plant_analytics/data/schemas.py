from enum import Enum

class Column(str, Enum):
    """
    Public column identifiers for operational, weather and aligned
    frames.

    Note:
        Raw source headers are mapped onto these identifiers through
        the alias tables below; nothing downstream of ingestion sees
        a raw header.
    """
    TIMESTAMP = 'timestamp'
    WEATHER_TIMESTAMP = 'weather_timestamp'
    DATE = 'date'
    # Operational
    BATTERY_SOC = 'battery_soc'
    BATT_TEMP = 'batt_temp_c'
    BATTERY_POWER = 'battery_power_kw'
    PV_POWER = 'pv_power_kw'
    GRID_POWER = 'grid_power_kw'
    LOAD_POWER = 'load_power_kw'
    # Weather
    TEMPERATURE = 'temperature_2m'
    CLOUD_COVER = 'cloud_cover'
    IRRADIANCE = 'irradiance_wm2'
    WIND_SPEED = 'wind_speed_10m'
    # Derived
    SOLAR_ELEV = 'solar_elev'
    SOLAR_ELEV_NORM = 'solar_elev_norm'
    SOC_CLEAN = 'soc_clean'


OPERATIONAL_FIELDS = (
    Column.BATTERY_SOC,
    Column.BATT_TEMP,
    Column.BATTERY_POWER,
    Column.PV_POWER,
    Column.GRID_POWER,
    Column.LOAD_POWER,
)

WEATHER_FIELDS = (
    Column.TEMPERATURE,
    Column.CLOUD_COVER,
    Column.IRRADIANCE,
    Column.WIND_SPEED,
)

# Raw header aliases, matched after lower-casing, first hit wins
STATION_TIME_ALIASES = ("collecttime", "timestamp", "time")
WEATHER_TIME_ALIASES = ("time", "timestamp")

OPERATIONAL_ALIASES: dict[Column, tuple[str, ...]] = {
    Column.BATTERY_SOC: ("soc_bap2", "soc"),
    Column.BATT_TEMP: ("t_bap1", "batt_temp"),
    Column.BATTERY_POWER: ("p_bap2",),
}

# Per-phase columns summed into one value
PHASE_ALIASES: dict[Column, tuple[str, ...]] = {
    Column.GRID_POWER: ("pcc_ap1", "pcc_ap2", "pcc_ap3"),
    Column.LOAD_POWER: ("ap1", "ap2", "ap3"),
}

# Composite text field holding PV power in watts
PV_COMPOSITE_ALIASES = ("pvtp",)

WEATHER_ALIASES: dict[Column, tuple[str, ...]] = {
    Column.TEMPERATURE: ("temperature_2m", "temperature"),
    Column.CLOUD_COVER: ("cloud_cover", "cloudcover"),
    Column.IRRADIANCE: (
        "shortwave_radiation",
        "irradiance_wm2",
        "irradiance",
    ),
    Column.WIND_SPEED: ("wind_speed_10m", "windspeed_10m"),
}

# Accepted textual timestamp layouts, tried in order
TIMESTAMP_FORMATS = (
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
)
# Digit-only timestamps below this are seconds, otherwise milliseconds
UNIX_MS_THRESHOLD = 2_000_000_000
# Last second of 9999-12-31; later epochs cannot be represented
MAX_EPOCH_SECONDS = 253_402_300_799

# Minimum populated fields for a row to be considered
MIN_STATION_FIELDS = 3
MIN_WEATHER_FIELDS = 4
