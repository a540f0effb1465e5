from typing import Optional

# Suffix marking a feature taken from an earlier row
LAG = 'lag'

def lag_name(base: str, k: int = 1) -> str:
    """
    Construct a lagged feature name.

    Examples
    --------
    >>> lag_name('battery_soc')
    'battery_soc_lag1'
    """
    if k < 1:
        raise ValueError(f"Lag must be positive, got {k}.")
    return f"{base}_{LAG}{k}"

def parse_lag(name: str) -> Optional[tuple[str, int]]:
    """
    Split a lagged feature name into its base name and lag.

    Returns None when `name` does not carry a ``_lagK`` suffix.

    Examples
    --------
    >>> parse_lag('power_kw_lag1')
    ('power_kw', 1)
    >>> parse_lag('hour_sin') is None
    True
    """
    base, sep, suffix = name.rpartition(f"_{LAG}")
    if not sep or not base or not suffix.isdigit() or int(suffix) < 1:
        return None
    return base, int(suffix)
