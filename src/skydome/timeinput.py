"""Wall-clock input → UTC Instant, using the observer's own time zone."""

from datetime import datetime

from pytz import UnknownTimeZoneError, timezone, utc
from pytz.exceptions import AmbiguousTimeError, NonExistentTimeError
from timezonefinder import TimezoneFinder

from skydome.errors import TimeInputError
from skydome.models import Instant, Observer

_tf = TimezoneFinder()

WHEN_FORMAT = "%Y-%m-%d %H:%M"


def timezone_name(observer: Observer) -> str:
    """IANA time zone at the observer's position.

    Raises:
        TimeInputError: No zone covers the position.
    """
    tz_str = _tf.timezone_at(lat=observer.latitude_deg, lng=observer.longitude_deg)
    if tz_str is None:
        raise TimeInputError(
            f"Timezone not found: lat={observer.latitude_deg}, lng={observer.longitude_deg}"
        )
    return tz_str


def resolve_local_time(when: str, observer: Observer, tz_name: str | None = None) -> Instant:
    """Interpret a "YYYY-MM-DD HH:MM" local time at the observer's location.

    Args:
        when: Local wall-clock time string.
        observer: Position whose time zone applies.
        tz_name: Explicit IANA zone, skipping the position lookup.

    Returns:
        Instant in UTC.

    Raises:
        TimeInputError: Unparseable string, unknown zone, or a wall-clock time
            that is skipped or repeated by a DST transition.
        TransformInputError: Observer position is malformed.
    """
    observer.validate()
    try:
        dt = datetime.strptime(when, WHEN_FORMAT)
    except ValueError as exc:
        raise TimeInputError(f"time must look like YYYY-MM-DD HH:MM, got {when!r}") from exc

    try:
        local_tz = timezone(tz_name or timezone_name(observer))
    except UnknownTimeZoneError as exc:
        raise TimeInputError(f"unknown time zone {tz_name!r}") from exc

    try:
        local_dt = local_tz.localize(dt, is_dst=None)
    except (AmbiguousTimeError, NonExistentTimeError) as exc:
        raise TimeInputError(f"{when} is ambiguous or skipped in {local_tz.zone}") from exc

    return Instant.from_datetime(local_dt.astimezone(utc))


def parse_utc(when: str) -> Instant:
    """Interpret a "YYYY-MM-DD HH:MM" string as UTC."""
    try:
        dt = datetime.strptime(when, WHEN_FORMAT)
    except ValueError as exc:
        raise TimeInputError(f"time must look like YYYY-MM-DD HH:MM, got {when!r}") from exc
    return Instant.from_datetime(utc.localize(dt))
