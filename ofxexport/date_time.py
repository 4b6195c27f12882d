"""OFX timestamp helpers.

OFX importers expect ``YYYYMMDDHHMMSS`` followed by a bracketed suffix with
the zone offset and name, e.g. ``20240105093000[-8:PST]``.  The suffix is
written the way existing exports have always written it: the *standard*
offset in whole hours, a ``+`` only for positive offsets and nothing at all
for zero.  Importers have been reading that shape for years, so it is not
normalised to ISO-8601.
"""

import math
from datetime import datetime, timedelta, tzinfo
from typing import Optional, Union

import pandas as pd
from dateutil import tz

Instant = Union[pd.Timestamp, datetime, str, int, float]

_MILLIS_PER_HOUR = 60 * 60 * 1000


def local_zone() -> tzinfo:
    return tz.tzlocal()


# ---------- datetime helpers ----------
def _coerce_to_timestamp(instant: Instant, zone: tzinfo) -> pd.Timestamp:
    """Return *instant* as a ``Timestamp`` expressed in *zone*.

    Integers and floats are epoch milliseconds.  Naive datetimes and
    strings are read as wall-clock time in *zone*.
    """

    if instant is None or isinstance(instant, bool):
        raise ValueError(f"Cannot interpret {instant!r} as a point in time")

    if isinstance(instant, pd.Timestamp):
        ts = instant
    elif isinstance(instant, (int, float)):
        ts = pd.Timestamp(int(instant), unit="ms", tz="UTC")
    else:
        try:
            ts = pd.Timestamp(instant)
        except (TypeError, ValueError, pd.errors.OutOfBoundsDatetime) as exc:
            raise ValueError(f"Cannot interpret {instant!r} as a point in time") from exc

    if pd.isna(ts):
        raise ValueError(f"Cannot interpret {instant!r} as a point in time")

    if ts.tzinfo is None:
        ts = ts.tz_localize(zone, ambiguous=True, nonexistent="shift_forward")
    else:
        ts = ts.tz_convert(zone)
    return ts


def _raw_offset(local: datetime) -> timedelta:
    """Standard UTC offset at *local*, leaving out any daylight saving."""

    offset = local.utcoffset() or timedelta(0)
    return offset - (local.dst() or timedelta(0))


def _standard_zone_name(local: datetime, raw_offset: timedelta) -> str:
    if not local.dst():
        name = local.tzname()
    else:
        name = None
        # whichever half of the year is off DST carries the standard name
        for month in (1, 7):
            probe = datetime(local.year, month, 1, 12, tzinfo=local.tzinfo)
            if not probe.dst():
                name = probe.tzname()
                break
    if name:
        return name

    minutes = int(raw_offset.total_seconds()) // 60
    sign = "-" if minutes < 0 else "+"
    hh, mm = divmod(abs(minutes), 60)
    return f"GMT{sign}{hh:02d}:{mm:02d}"


def ofx_timestamp(instant: Instant, zone: Optional[tzinfo] = None) -> str:
    """Format *instant* as the 14 digit local ``YYYYMMDDHHMMSS`` string."""

    ts = _coerce_to_timestamp(instant, zone or local_zone())
    # strftime('%Y') does not pad years below 1000 on every platform
    return (
        f"{ts.year:04d}{ts.month:02d}{ts.day:02d}"
        f"{ts.hour:02d}{ts.minute:02d}{ts.second:02d}"
    )


def ofx_timestamp_with_offset(instant: Instant, zone: Optional[tzinfo] = None) -> str:
    """Format *instant* with the ``[<sign><hours>:<zone>]`` suffix.

    >>> from dateutil import tz
    >>> ofx_timestamp_with_offset(0, tz.tzutc())
    '19700101000000[0:UTC]'
    """

    zone = zone or local_zone()
    local = _coerce_to_timestamp(instant, zone).to_pydatetime()

    raw = _raw_offset(local)
    offset_ms = int(raw.total_seconds() * 1000)
    hours = int(math.fmod(int(offset_ms / _MILLIS_PER_HOUR), 24))
    sign = "+" if offset_ms > 0 else ""
    name = _standard_zone_name(local, raw)

    return f"{ofx_timestamp(local, zone)}[{sign}{hours}:{name}]"


def ofx_now(zone: Optional[tzinfo] = None) -> str:
    """Current time in the OFX timestamp-with-offset format."""
    return ofx_timestamp_with_offset(pd.Timestamp.now(tz="UTC"), zone)
