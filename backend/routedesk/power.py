"""
RouteDesk — Power Schedule Evaluator
======================================

What:  Maps a location's power mode and a date to an ON/OFF status, and sorts
       locations for display using that status.
Who:   Used by the client reconciliation layer (indicator colors, table order)
       and by the schemas to validate power-mode values on write.

Schedules:
    Daily    → always ON
    Weekday  → OFF on Friday and Saturday, ON otherwise
    Alt 1    → ON on odd days of the month
    Alt 2    → ON on even days of the month
    other    → OFF (unknown labels already stored in the database are tolerated)

Display order:
    ON rows first, then OFF rows; inside each group ascending by numeric code.
    Codes that are not numbers follow the numeric ones, ordered as text, and
    rows without a code come last.
"""

from datetime import date
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple

ON = "ON"
OFF = "OFF"


class PowerMode(str, Enum):
    DAILY = "Daily"
    WEEKDAY = "Weekday"
    ALT_1 = "Alt 1"
    ALT_2 = "Alt 2"


POWER_MODES = tuple(mode.value for mode in PowerMode)

# date.weekday(): Monday == 0 ... Sunday == 6
_FRIDAY = 4
_SATURDAY = 5


def get_power_status(mode: Optional[str], today: Optional[date] = None) -> str:
    """Return "ON" or "OFF" for `mode` on `today` (defaults to the current date)."""
    today = today or date.today()

    if mode == PowerMode.DAILY.value:
        return ON
    if mode == PowerMode.WEEKDAY.value:
        return OFF if today.weekday() in (_FRIDAY, _SATURDAY) else ON
    if mode == PowerMode.ALT_1.value:
        return ON if today.day % 2 == 1 else OFF
    if mode == PowerMode.ALT_2.value:
        return ON if today.day % 2 == 0 else OFF
    return OFF


def _code_key(code: Any) -> Tuple[int, float, str]:
    if code is None or str(code).strip() == "":
        return (2, 0.0, "")
    text = str(code).strip()
    try:
        return (0, float(text), text)
    except ValueError:
        return (1, 0.0, text)


def display_sort_key(power_mode: Optional[str], code: Any, today: Optional[date] = None):
    """Sort key placing ON before OFF, then ordering by numeric code."""
    status = get_power_status(power_mode, today)
    return (0 if status == ON else 1,) + _code_key(code)


def sort_for_display(locations: Iterable[Any], today: Optional[date] = None) -> List[Any]:
    """
    Return locations in display order.

    Accepts mappings (wire dicts with `powerMode`/`code`) or objects exposing
    `power_mode`/`code` attributes (ORM rows, working-copy rows).
    """
    today = today or date.today()

    def key(loc):
        if isinstance(loc, dict):
            return display_sort_key(loc.get("powerMode"), loc.get("code"), today)
        return display_sort_key(getattr(loc, "power_mode", None), getattr(loc, "code", None), today)

    return sorted(locations, key=key)
