"""Schedule calculation utilities.

Computes the next exact event for a time span (croniter for cron
expressions) and the jittered fire time for a listener.
"""
import time
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from .jitter import random_in_range
from .types import (
    ConfigurationError,
    CronSpan,
    EverySpan,
    SyncConfig,
    TimeSpan,
)


def now_ms() -> int:
    """Get current timestamp in milliseconds."""
    return int(time.time() * 1000)


def compute_next_event_ms(current_ms: int, span: TimeSpan) -> int:
    """Compute the next un-jittered event strictly after ``current_ms``.

    Args:
        current_ms: Reference timestamp in ms
        span: The recurrence

    Returns:
        Next event timestamp in milliseconds
    """
    if isinstance(span, EverySpan):
        return _compute_every_next(span, current_ms)
    elif isinstance(span, CronSpan):
        return _compute_cron_next(span, current_ms)
    raise ConfigurationError(f"Unsupported time span: {span!r}")


def _compute_every_next(span: EverySpan, current_ms: int) -> int:
    """Compute next event for an interval span."""
    if span.interval_ms <= 0:
        raise ConfigurationError(f"Interval must be positive: {span.interval_ms}")

    if span.anchor_ms is None:
        return current_ms + span.interval_ms

    # First grid point strictly after current_ms
    elapsed = current_ms - span.anchor_ms
    steps = elapsed // span.interval_ms + 1
    return span.anchor_ms + steps * span.interval_ms


def _compute_cron_next(span: CronSpan, current_ms: int) -> int:
    """Compute next event for a cron span.

    Supports both 5-part (minute precision) and 6-part (second precision) formats.
    """
    tz = ZoneInfo(span.timezone)
    current_dt = datetime.fromtimestamp(current_ms / 1000, tz=tz)

    if len(span.expression.split()) == 6:
        cron = croniter(span.expression, current_dt, second_at_beginning=True)
    else:
        cron = croniter(span.expression, current_dt)

    next_dt = cron.get_next(datetime)
    return int(next_dt.timestamp() * 1000)


def calculate_fire_time(name: str, config: SyncConfig, current_ms: int, seed: int) -> int:
    """Jittered absolute fire time for a listener.

    The jitter draw is keyed on the listener name and the exact slot, so two
    listeners (or two slots of one listener) never share an offset by
    construction, while a restart reproduces the same offset.
    """
    exact = compute_next_event_ms(current_ms, config.time_span)
    half = config.range_ms // 2
    jitter = random_in_range(seed, -half, half, context=f"{name}:{exact}")
    return exact + jitter


def validate_cron_expression(expression: str) -> bool:
    """Validate a cron expression.

    Args:
        expression: Cron expression to validate (5-part or 6-part)

    Returns:
        True if valid, False otherwise
    """
    parts = expression.split()
    if len(parts) not in (5, 6):
        return False
    try:
        if len(parts) == 6:
            croniter(expression, second_at_beginning=True)
        else:
            croniter(expression)
    except Exception:
        return False
    return True


def validate_sync_config(name: str, config: SyncConfig) -> None:
    """Raise ``ConfigurationError`` when a listener's config cannot be scheduled."""
    if not isinstance(config, SyncConfig):
        raise ConfigurationError(f"Listener {name} returned {type(config).__name__}, expected SyncConfig")
    if config.range_ms < 0:
        raise ConfigurationError(f"Listener {name} has a negative jitter range: {config.range_ms}")

    span = config.time_span
    expected_kind = {EverySpan: "every", CronSpan: "cron"}.get(type(span))
    if expected_kind is not None and span.kind != expected_kind:
        raise ConfigurationError(f"Listener {name} has a mismatched time span kind: {span.kind!r}")

    if isinstance(span, EverySpan):
        if span.interval_ms <= 0:
            raise ConfigurationError(f"Listener {name} has a non-positive interval: {span.interval_ms}")
    elif isinstance(span, CronSpan):
        if not validate_cron_expression(span.expression):
            raise ConfigurationError(f"Listener {name} has an invalid cron expression: {span.expression!r}")
        try:
            ZoneInfo(span.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(f"Listener {name} has an unknown timezone: {span.timezone}") from e
    else:
        raise ConfigurationError(f"Listener {name} has an unsupported time span: {span!r}")


def interval_to_human(interval_ms: int) -> str:
    """Convert interval in milliseconds to human-readable description."""
    seconds = interval_ms // 1000

    if seconds < 60:
        return f"every {seconds}s"
    elif seconds < 3600:
        return f"every {seconds // 60}min"
    elif seconds < 86400:
        return f"every {seconds // 3600}h"
    else:
        return f"every {seconds // 86400}d"


def span_to_human(span: TimeSpan) -> str:
    """Convert a time span to human-readable description."""
    if isinstance(span, EverySpan):
        return interval_to_human(span.interval_ms)
    elif isinstance(span, CronSpan):
        return f"cron '{span.expression}' ({span.timezone})"
    return "unknown span"
