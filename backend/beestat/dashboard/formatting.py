from __future__ import annotations

import math

FAHRENHEIT = "°F"
CELSIUS = "°C"


def convert_temperature(
    value: float | None,
    *,
    output_unit: str = FAHRENHEIT,
    input_unit: str = FAHRENHEIT,
    precision: int = 1,
) -> float | None:
    """Convert and round a temperature. ecobee always reports Fahrenheit."""
    if value is None:
        return None
    if input_unit == output_unit:
        converted = float(value)
    elif output_unit == CELSIUS:
        converted = (float(value) - 32) * 5 / 9
    else:
        converted = float(value) * 9 / 5 + 32
    return round(converted, precision)


def format_temperature(
    value: float | None,
    *,
    output_unit: str = FAHRENHEIT,
    units: bool = False,
    precision: int = 1,
) -> str:
    converted = convert_temperature(value, output_unit=output_unit, precision=precision)
    if converted is None:
        return "?"
    text = f"{converted:.{precision}f}"
    return f"{text}{output_unit}" if units else text


def split_temperature(value: float | None) -> tuple[str, str]:
    """Whole and tenths parts, e.g. 71.46 -> ("71", "5")."""
    if value is None:
        return "?", "?"
    tenths = int(round(value * 10))
    whole = math.floor(tenths / 10)
    return str(whole), str(tenths - whole * 10)
