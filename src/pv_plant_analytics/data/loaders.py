# stdlib
import io
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence
# thirdpartylib
import polars as pl
# projectlib
from pv_plant_analytics.data.schemas import (
    Column,
    OPERATIONAL_FIELDS,
    WEATHER_FIELDS,
    STATION_TIME_ALIASES,
    WEATHER_TIME_ALIASES,
    OPERATIONAL_ALIASES,
    PHASE_ALIASES,
    PV_COMPOSITE_ALIASES,
    WEATHER_ALIASES,
    TIMESTAMP_FORMATS,
    UNIX_MS_THRESHOLD,
    MAX_EPOCH_SECONDS,
    MIN_STATION_FIELDS,
    MIN_WEATHER_FIELDS,
)
from pv_plant_analytics.utils.errors import MissingInputError
from pv_plant_analytics.utils.logging import Logger
from pv_plant_analytics.utils.typing import Address

# First signed decimal token, optional exponent
NUMBER_PATTERN = r"([-+]?\d*\.?\d+(?:[eE][-+]?\d+)?)"
# Raw battery power above this magnitude is reported in watts
BATTERY_WATTS_THRESHOLD = 100.0

OPERATIONAL_SCHEMA = {
    Column.TIMESTAMP.value: pl.Datetime("us"),
    **{field.value: pl.Float64 for field in OPERATIONAL_FIELDS},
}
WEATHER_SCHEMA = {
    Column.TIMESTAMP.value: pl.Datetime("us"),
    **{field.value: pl.Float64 for field in WEATHER_FIELDS},
}

# Internal bookkeeping columns
_BAD = "__bad"
_POPULATED = "__populated"


@dataclass(frozen=True)
class IngestionResult(object):
    """
    Parsed samples together with row accounting.

    Attributes
    ----------
    frame : pl.DataFrame
        One row per accepted sample, in source order.
    skipped : int
        Rows rejected for an unparseable timestamp, a malformed numeric
        value or too few populated fields.
    total : int
        Data rows seen in the source, excluding the header.
    """
    frame: pl.DataFrame
    skipped: int
    total: int

    @property
    def parsed(self) -> int:
        return self.frame.height


def _read_raw(text: str) -> pl.DataFrame:
    """
    Read delimited text as all-string columns with normalized headers.

    Headers are stripped and lower-cased; when two headers normalize to
    the same name the first column wins and the later ones are dropped.
    """
    if not text.strip():
        return pl.DataFrame()
    raw = pl.read_csv(
        io.BytesIO(text.encode("utf-8")),
        infer_schema=False,
        truncate_ragged_lines=True,
    )
    headers: dict[str, str] = {}
    for name in raw.columns:
        headers.setdefault(name.strip().lower(), name)
    return raw.select(
        pl.col(source).alias(header) for header, source in headers.items()
    )

def _find(columns: Sequence[str], aliases: Sequence[str]) -> Optional[str]:
    for alias in aliases:
        if alias in columns:
            return alias
    return None

def _text(name: str) -> pl.Expr:
    return pl.col(name).str.strip_chars()

def _is_populated(name: str) -> pl.Expr:
    return (_text(name).str.len_chars() > 0).fill_null(False)

def _to_number(name: str) -> pl.Expr:
    """Decimal-comma tolerant numeric cast; unparseable text becomes null."""
    return (
        _text(name)
        .str.replace_all(",", ".", literal=True)
        .cast(pl.Float64, strict=False)
    )

def _numeric(
        name: Optional[str],
        default: float = 0.0,
    ) -> tuple[pl.Expr, pl.Expr]:
    """
    Value expression and malformed flag for a plain numeric field.

    Empty or absent cells take `default`; a non-empty cell that does
    not parse flags the row as malformed.
    """
    if name is None:
        return pl.lit(default, dtype=pl.Float64), pl.lit(False)
    value = _to_number(name)
    bad = _is_populated(name) & value.is_null()
    return value.fill_null(default), bad

def _composite_watts(name: Optional[str]) -> pl.Expr:
    """Extract the first number from free text in watts, return kW."""
    if name is None:
        return pl.lit(0.0, dtype=pl.Float64)
    token = (
        pl.col(name)
        .str.replace_all(",", ".", literal=True)
        .str.extract(NUMBER_PATTERN, 1)
        .cast(pl.Float64, strict=False)
    )
    return token.fill_null(0.0) / 1000.0

def _battery_power(value: pl.Expr) -> pl.Expr:
    """Values above the threshold are taken as watts and scaled to kW."""
    return (
        pl.when(value.abs() > BATTERY_WATTS_THRESHOLD)
        .then(value / 1000.0)
        .otherwise(value)
    )

def timestamp_expr(name: str) -> pl.Expr:
    """
    Parse a raw timestamp column into naive UTC ``Datetime("us")``.

    Digit-only values are Unix time: seconds below
    ``UNIX_MS_THRESHOLD`` and milliseconds (truncated to whole seconds)
    otherwise. Epochs past year 9999 are unparseable. Everything else
    is tried against ``TIMESTAMP_FORMATS`` in order. Unparseable values
    become null.
    """
    raw = _text(name)
    epoch = raw.cast(pl.Int64, strict=False)
    seconds = (
        pl.when(epoch < UNIX_MS_THRESHOLD)
        .then(epoch)
        .otherwise(epoch // 1000)
    )
    seconds = pl.when(seconds.is_between(0, MAX_EPOCH_SECONDS)).then(seconds)
    from_unix = pl.from_epoch(seconds, time_unit="s").cast(pl.Datetime("us"))
    from_text = pl.coalesce(
        [
            raw.str.strptime(pl.Datetime("us"), fmt, strict=False)
            for fmt in TIMESTAMP_FORMATS
        ]
    )
    return (
        pl.when(raw.str.contains(r"^\d+$"))
        .then(from_unix)
        .otherwise(from_text)
    )

def _finish(
        raw: pl.DataFrame,
        time_col: Optional[str],
        values: dict[str, pl.Expr],
        flags: list[pl.Expr],
        min_fields: int,
        schema: dict[str, pl.DataType],
        logger: Optional[Logger],
        kind: str,
    ) -> IngestionResult:
    """Evaluate field expressions, drop rejected rows and count them."""
    total = raw.height
    if time_col is None or total == 0:
        if logger is not None and total:
            logger(
                f"{kind}: no timestamp column, all {total} rows skipped.",
                verbosity=1,
            )
        return IngestionResult(pl.DataFrame(schema=schema), total, total)
    populated = pl.sum_horizontal(
        [_is_populated(c).cast(pl.Int32) for c in raw.columns]
    )
    bad = pl.any_horizontal(flags) if flags else pl.lit(False)
    parsed = raw.select(
        timestamp_expr(time_col).alias(Column.TIMESTAMP.value),
        *[expr.alias(name) for name, expr in values.items()],
        bad.alias(_BAD),
        populated.alias(_POPULATED),
    )
    accepted = parsed.filter(
        pl.col(Column.TIMESTAMP.value).is_not_null()
        & ~pl.col(_BAD)
        & (pl.col(_POPULATED) >= min_fields)
    ).drop(_BAD, _POPULATED)
    skipped = total - accepted.height
    if logger is not None:
        logger(
            f"{kind}: parsed {accepted.height} of {total} rows "
            f"({skipped} skipped).",
            verbosity=1,
        )
    return IngestionResult(accepted, skipped, total)

def parse_operational(
        text: str,
        *,
        logger: Optional[Logger] = None,
    ) -> IngestionResult:
    """
    Parse station CSV text into operational samples.

    Parameters
    ----------
    text : str
        Delimited text with a header row. Header matching is
        case-insensitive; absent columns default to 0.
    logger : Logger, optional
        Receives a parsed/skipped summary at verbosity 1.

    Returns
    -------
    IngestionResult
        Frame with ``Column.TIMESTAMP`` and the operational fields.

    Notes
    -----
    - ``pvtp`` is free text in watts; the first number is extracted
      and converted to kW.
    - Battery power magnitudes above 100 are treated as watts.
    - Grid and load power are the sum of up to three phase columns.
    """
    raw = _read_raw(text)
    columns = raw.columns
    values: dict[str, pl.Expr] = {}
    flags: list[pl.Expr] = []
    for field, aliases in OPERATIONAL_ALIASES.items():
        value, bad = _numeric(_find(columns, aliases))
        if field == Column.BATTERY_POWER:
            value = _battery_power(value)
        values[field.value] = value
        flags.append(bad)
    values[Column.PV_POWER.value] = _composite_watts(
        _find(columns, PV_COMPOSITE_ALIASES)
    )
    for field, phases in PHASE_ALIASES.items():
        total = pl.lit(0.0, dtype=pl.Float64)
        for phase in phases:
            value, bad = _numeric(phase if phase in columns else None)
            total = total + value
            flags.append(bad)
        values[field.value] = total
    # Keep the public column order
    ordered = {field.value: values[field.value] for field in OPERATIONAL_FIELDS}
    return _finish(
        raw,
        _find(columns, STATION_TIME_ALIASES),
        ordered,
        flags,
        MIN_STATION_FIELDS,
        OPERATIONAL_SCHEMA,
        logger,
        "Operational data",
    )

def parse_weather(
        text: str,
        *,
        logger: Optional[Logger] = None,
    ) -> IngestionResult:
    """
    Parse weather CSV text into weather samples.

    Irradiance is read from ``shortwave_radiation`` or
    ``irradiance_wm2``; wind speed is optional and defaults to 0.
    """
    raw = _read_raw(text)
    columns = raw.columns
    values: dict[str, pl.Expr] = {}
    flags: list[pl.Expr] = []
    for field, aliases in WEATHER_ALIASES.items():
        value, bad = _numeric(_find(columns, aliases))
        values[field.value] = value
        flags.append(bad)
    return _finish(
        raw,
        _find(columns, WEATHER_TIME_ALIASES),
        values,
        flags,
        MIN_WEATHER_FIELDS,
        WEATHER_SCHEMA,
        logger,
        "Weather data",
    )

def _read_text(path: Address, what: str) -> str:
    path = Path(path)
    if not path.is_file():
        raise MissingInputError(f"{what} not found: {path}")
    try:
        return path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise MissingInputError(f"{what} could not be read: {path}") from e

def load_operational(
        path: Address,
        *,
        logger: Optional[Logger] = None,
    ) -> IngestionResult:
    """Read and parse a station CSV file."""
    return parse_operational(
        _read_text(path, "Operational data"), logger=logger
    )

def load_weather(
        path: Address,
        *,
        logger: Optional[Logger] = None,
    ) -> IngestionResult:
    """Read and parse a weather CSV file."""
    return parse_weather(_read_text(path, "Weather data"), logger=logger)

def filter_usable_weather(frame: pl.DataFrame) -> pl.DataFrame:
    """
    Keep weather rows that carry a real observation.

    Rows with no irradiance, an exactly zero temperature (the source's
    placeholder for a missing reading) or a negative cloud cover are
    dropped.
    """
    return frame.filter(
        (pl.col(Column.IRRADIANCE.value) > 0)
        & (pl.col(Column.TEMPERATURE.value) != 0)
        & (pl.col(Column.CLOUD_COVER.value) >= 0)
    )
