"""Persisted key scheme.

    prediction:{matchId}:{model}:{date}
    daily:{date}:aggregate | progress | pause-until
    accuracy:{date}:fixture:{matchId}
    accuracy:{date}:aggregate
    cron:lastExecution, cron:history:index
"""

CRON_LAST_EXECUTION = "cron:lastExecution"
CRON_HISTORY_INDEX = "cron:history:index"


def prediction_key(match_id: int, model: str, date: str) -> str:
    return f"prediction:{match_id}:{model}:{date}"


def prediction_prefix(match_id: int) -> str:
    return f"prediction:{match_id}:"


def daily_aggregate_key(date: str) -> str:
    return f"daily:{date}:aggregate"


def daily_progress_key(date: str) -> str:
    return f"daily:{date}:progress"


def pause_until_key(date: str) -> str:
    return f"daily:{date}:pause-until"


def daily_prefix(date: str) -> str:
    return f"daily:{date}:"


def accuracy_fixture_key(date: str, match_id: int) -> str:
    return f"accuracy:{date}:fixture:{match_id}"


def accuracy_aggregate_key(date: str) -> str:
    return f"accuracy:{date}:aggregate"


def accuracy_prefix(date: str) -> str:
    return f"accuracy:{date}:"


def is_prediction_key_for_date(key: str, date: str) -> bool:
    """True for `prediction:*:*:{date}` keys."""
    return key.startswith("prediction:") and key.endswith(f":{date}")


def accuracy_fixture_prefix(date: str) -> str:
    return f"accuracy:{date}:fixture:"
