"""
Human-readable durations in the configuration files and CLI options.

The format follows the "humantime" notation, which is common in operators'
configs: a sequence of number-unit pairs, optionally separated by spaces,
e.g. ``500ms``, ``10s``, ``1m 30s``, ``2h15m``, ``1d``. Plain numbers
(ints, floats, or numeric strings) are interpreted as seconds.

The result is always in seconds as a float, as used by asyncio timeouts.
"""
import re

UNITS: dict[str, float] = {
    'ns': 1e-9, 'nsec': 1e-9,
    'us': 1e-6, 'usec': 1e-6,
    'ms': 1e-3, 'msec': 1e-3, 'millis': 1e-3,
    's': 1, 'sec': 1, 'secs': 1, 'second': 1, 'seconds': 1,
    'm': 60, 'min': 60, 'mins': 60, 'minute': 60, 'minutes': 60,
    'h': 3600, 'hr': 3600, 'hrs': 3600, 'hour': 3600, 'hours': 3600,
    'd': 86400, 'day': 86400, 'days': 86400,
    'w': 604800, 'week': 604800, 'weeks': 604800,
}

_PAIR = re.compile(r'\s*(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>[a-z]+)\s*', re.IGNORECASE)


def parse_duration(value: str | int | float) -> float:
    """
    Convert a duration to seconds, or fail with ``ValueError`` if malformed.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"Durations cannot be negative: {value!r}")
        return float(value)

    text = value.strip()
    if not text:
        raise ValueError("Durations cannot be empty.")
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        return parse_duration(seconds)

    total = 0.0
    position = 0
    while position < len(text):
        match = _PAIR.match(text, position)
        if match is None:
            raise ValueError(f"Unparseable duration: {value!r}")
        unit = match.group('unit').lower()
        if unit not in UNITS:
            raise ValueError(f"Unknown duration unit {unit!r} in {value!r}")
        total += float(match.group('value')) * UNITS[unit]
        position = match.end()
    return total
