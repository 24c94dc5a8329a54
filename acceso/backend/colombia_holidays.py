"""
Colombian public holidays and business-day calculations.
Pure functions with no I/O. All dates are naive calendar dates.
"""
from datetime import date, datetime, timedelta
from functools import lru_cache
from typing import List, NamedTuple, Optional, Tuple


class Holiday(NamedTuple):
    date: date
    name: str
    type: str  # 'fixed', 'easter' or 'movable'


FIXED_HOLIDAYS = [
    (1, 1, "Año Nuevo"),
    (5, 1, "Día del Trabajo"),
    (7, 20, "Día de la Independencia"),
    (8, 7, "Batalla de Boyacá"),
    (12, 8, "Inmaculada Concepción"),
    (12, 25, "Navidad"),
]

# Moved to the following Monday (Ley Emiliani)
MOVABLE_HOLIDAYS = [
    (1, 6, "Reyes Magos"),
    (3, 19, "San José"),
    (6, 29, "San Pedro y San Pablo"),
    (8, 15, "Asunción de la Virgen"),
    (10, 12, "Día de la Raza"),
    (11, 1, "Todos los Santos"),
    (11, 11, "Independencia de Cartagena"),
]

# (offset from Easter Sunday, name, moved to Monday)
EASTER_HOLIDAYS = [
    (-3, "Jueves Santo", False),
    (-2, "Viernes Santo", False),
    (0, "Domingo de Pascua", False),
    (39, "Ascensión del Señor", True),
    (60, "Corpus Christi", True),
    (68, "Sagrado Corazón", True),
]


def _to_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def easter_sunday(year: int) -> date:
    """Easter Sunday for the given year (anonymous Gregorian / Gauss algorithm)"""
    a = year % 19
    b = year // 100
    c = year % 100
    d = b // 4
    e = b % 4
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i = c // 4
    k = c % 4
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month = (h + l - 7 * m + 114) // 31  # 1-based
    day = ((h + l - 7 * m + 114) % 31) + 1
    return date(year, month, day)


def move_to_monday(holiday_date: date) -> date:
    """
    Apply the Emiliani rule: a Monday stays put, a Sunday moves one day,
    any other weekday moves to the following Monday.
    """
    return holiday_date + timedelta(days=(7 - holiday_date.weekday()) % 7)


@lru_cache(maxsize=64)
def holidays_for_year(year: int) -> Tuple[Holiday, ...]:
    """Calculate Colombian public holidays for a given year, sorted by date"""
    holidays = []

    for month, day, name in FIXED_HOLIDAYS:
        holidays.append(Holiday(date(year, month, day), name, 'fixed'))

    for month, day, name in MOVABLE_HOLIDAYS:
        holidays.append(Holiday(move_to_monday(date(year, month, day)), name, 'movable'))

    easter = easter_sunday(year)
    for offset, name, moves in EASTER_HOLIDAYS:
        holiday_date = easter + timedelta(days=offset)
        if moves:
            holiday_date = move_to_monday(holiday_date)
        holidays.append(Holiday(holiday_date, name, 'easter'))

    return tuple(sorted(holidays, key=lambda h: h.date))


def is_holiday(day) -> bool:
    day = _to_date(day)
    return any(h.date == day for h in holidays_for_year(day.year))


def is_business_day(day) -> bool:
    """True if the day is not a weekend nor a holiday"""
    day = _to_date(day)
    # Saturday=5, Sunday=6
    if day.weekday() >= 5:
        return False
    return not is_holiday(day)


def next_business_day(day) -> date:
    """First business day strictly after the given day"""
    current = _to_date(day) + timedelta(days=1)
    for _ in range(366):
        if is_business_day(current):
            return current
        current += timedelta(days=1)
    raise RuntimeError(f"No business day found within a year after {day}")


def count_business_days(start_date, end_date) -> int:
    """Count business days in the closed interval [start_date, end_date]"""
    start_date, end_date = _to_date(start_date), _to_date(end_date)
    if start_date > end_date:
        return 0

    total_days = 0
    current = start_date
    while current <= end_date:
        if is_business_day(current):
            total_days += 1
        current += timedelta(days=1)

    return total_days


def _days_of_month(year: int, month: int):
    current = date(year, month, 1)
    while current.month == month:
        yield current
        current += timedelta(days=1)


def nth_business_day_of_month(year: int, month: int, n: int) -> Optional[date]:
    """
    Return the n-th business day of a month (1-based month).
    Returns None when the month has fewer than n business days.
    """
    count = 0
    for day in _days_of_month(year, month):
        if is_business_day(day):
            count += 1
            if count == n:
                return day
    return None


def business_days_of_month(year: int, month: int) -> List[date]:
    return [day for day in _days_of_month(year, month) if is_business_day(day)]


def holidays_in_range(start_date, end_date) -> List[Holiday]:
    """Holidays falling within [start_date, end_date], across year boundaries"""
    start_date, end_date = _to_date(start_date), _to_date(end_date)
    holidays = []
    for year in range(start_date.year, end_date.year + 1):
        holidays.extend(h for h in holidays_for_year(year) if start_date <= h.date <= end_date)
    return holidays
