"""Requeue interval arithmetic."""

import math

# Upper bound for one-shot operation retries
OPERATION_RETRY_MAXIMUM = 6 * 60 * 60
OPERATION_RETRY_MINIMUM = 1


def grow_interval(base, maximum, percentage, elapsed):
    """Stretch `base` the longer the resource has been in its current state.

    With increase = 1 + percentage / 100 the result is base * increase**k,
    where k counts the divisions of `elapsed` by `increase` needed to reach
    `base`. A zero percentage disables growth.

    Args:
        base: Interval used right after a transition, in seconds
        maximum: Upper bound, in seconds
        percentage: Configured increase percentage
        elapsed: Seconds since the latest condition transition, or None
    """
    if not percentage or elapsed is None:
        return base

    elapsed = math.floor(elapsed)
    if elapsed >= maximum:
        return maximum
    if elapsed < base:
        return base

    increase = 1 + percentage / 100
    exponent = 0
    remaining = elapsed
    while remaining > base:
        remaining = math.floor(remaining / increase)
        exponent += 1

    return min(int(base * increase**exponent), maximum)


def operation_retry_interval(previous, message, now):
    """Retry delay for a RuntimeOperation whose target is not usable.

    The first failure, or a failure with a different message, retries after
    one second. A repeated identical failure doubles the time elapsed since
    the previous one, capped at six hours.
    """
    if (
        previous is None
        or previous.lastUpdateTime is None
        or previous.message != message
    ):
        return OPERATION_RETRY_MINIMUM

    elapsed = (now - previous.lastUpdateTime).total_seconds()
    interval = max(OPERATION_RETRY_MINIMUM, round(elapsed)) * 2
    return min(interval, OPERATION_RETRY_MAXIMUM)
