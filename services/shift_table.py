# services/shift_table.py - static shift definitions and code resolution

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from services.exceptions import InvalidShiftError


@dataclass(frozen=True)
class ShiftConfig:
    code: str
    scheduled_start: str          # "HH:MM:SS"
    scheduled_end: str            # "HH:MM:SS"
    allowed_break_minutes: int = 60
    category: Optional[str] = None

    def __post_init__(self):
        if self.allowed_break_minutes < 0:
            raise ValueError("allowed_break_minutes must be >= 0")


def _shift(code: str, start: str, end: str, category: str, break_minutes: int = 60) -> ShiftConfig:
    return ShiftConfig(code, start, end, break_minutes, category)


# Numbered shifts are named after their start hour; named shifts are kept
# for schedules imported before numbered shifts existed.
DEFAULT_SHIFTS: Dict[str, ShiftConfig] = {
    s.code: s
    for s in (
        _shift("7", "07:00:00", "17:00:00", "Pagi"),
        _shift("8", "08:00:00", "18:00:00", "Pagi"),
        _shift("9", "09:00:00", "19:00:00", "Pagi"),
        _shift("10", "10:00:00", "20:00:00", "Middle"),
        _shift("11", "11:00:00", "21:00:00", "Middle"),
        _shift("12", "12:00:00", "22:00:00", "Siang"),
        _shift("13", "13:00:00", "23:00:00", "Siang"),
        _shift("Pagi", "08:00:00", "18:00:00", "Pagi"),
        _shift("Middle", "10:00:00", "20:00:00", "Middle"),
        _shift("Siang", "12:00:00", "22:00:00", "Siang"),
    )
}

# Numeric code -> named shift, consulted only when the code itself is unknown
DEFAULT_FALLBACKS: Dict[str, str] = {
    "7": "Pagi",
    "8": "Pagi",
    "9": "Pagi",
    "10": "Middle",
    "11": "Middle",
    "12": "Siang",
    "13": "Siang",
}


class ShiftTable:
    """
    Two-level shift lookup: the primary table first, then the fallback
    name mapping for codes the primary table does not know.
    Loaded once at startup and never mutated.
    """

    def __init__(
        self,
        shifts: Optional[Mapping[str, ShiftConfig]] = None,
        fallbacks: Optional[Mapping[str, str]] = None,
    ):
        self._shifts = dict(DEFAULT_SHIFTS if shifts is None else shifts)
        self._fallbacks = dict(DEFAULT_FALLBACKS if fallbacks is None else fallbacks)

    def resolve(self, code: str) -> ShiftConfig:
        key = (code or "").strip()
        shift = self._shifts.get(key)
        if shift is not None:
            return shift

        mapped = self._fallbacks.get(key)
        if mapped is not None and mapped in self._shifts:
            return self._shifts[mapped]

        raise InvalidShiftError(code)


default_shift_table = ShiftTable()
