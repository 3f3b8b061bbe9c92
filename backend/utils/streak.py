from collections.abc import Mapping
from typing import Any, Iterable, Optional


def _on_diet(record: Any) -> bool:
    if isinstance(record, bool):
        return record
    if isinstance(record, Mapping):
        return bool(record.get("is_on_diet"))
    return bool(getattr(record, "is_on_diet", False))


def calculate_best_streak(meals: Optional[Iterable[Any]]) -> int:
    """Length of the longest run of consecutive on-diet meals.

    ``meals`` must already be ordered by meal time, oldest first; nothing is
    sorted here. Each item is a bool, a mapping with an ``is_on_diet`` key or
    an object with an ``is_on_diet`` attribute. Time gaps between meals do not
    break a streak, only an off-diet meal does. ``None`` or an empty sequence
    gives 0.

    The best run is only replaced by a strictly longer one, so among runs of
    equal length the earliest is the one that counts.
    """
    if not meals:
        return 0

    current_streak = 0
    best_streak = 0
    for meal in meals:
        if _on_diet(meal):
            current_streak += 1
            if current_streak > best_streak:
                best_streak = current_streak
        else:
            current_streak = 0
    return best_streak
