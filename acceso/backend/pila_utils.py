"""
PILA (social security) payment date calculations.
Pure functions with no network dependencies.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from colombia_holidays import nth_business_day_of_month

logger = logging.getLogger(__name__)

DATE_FMT = "%d/%m/%Y"
DEFAULT_BUSINESS_DAYS = 10
WARNING_WINDOW_DAYS = 10

MONTH_NAMES = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]

# Business days allowed per bracket of the last two NIT digits
_NIT_BRACKETS = [
    (0, 7, 2),
    (8, 14, 3),
    (15, 21, 4),
    (22, 28, 5),
    (29, 35, 6),
    (36, 42, 7),
    (43, 49, 8),
    (50, 56, 9),
    (57, 63, 10),
    (64, 69, 11),
    (70, 75, 12),
    (76, 81, 13),
    (82, 87, 14),
    (88, 93, 15),
    (94, 99, 16),
]

LIMITE_SEG_SOCIAL: Mapping[str, int] = MappingProxyType({
    f"{digits:02d}": days
    for low, high, days in _NIT_BRACKETS
    for digits in range(low, high + 1)
})


class InvalidPeriodError(ValueError):
    """Raised when a period cannot be parsed or its start is not before its end"""


@dataclass
class DueDate:
    id: int
    fecha: str
    estado: str  # 'normal', 'warning' or 'success'
    mes_texto: str

    @property
    def due_on(self) -> date:
        return parse_date(self.fecha)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fecha": self.fecha,
            "estado": self.estado,
            "mesTexto": self.mes_texto,
        }


@dataclass
class PilaSchedule:
    nit_suffix: str
    required_business_days: int
    used_default: bool
    due_dates: List[DueDate] = field(default_factory=list)


# ==================== DATE HELPERS ====================

def format_date(value: date) -> str:
    """Format a date as DD/MM/YYYY"""
    return value.strftime(DATE_FMT)


def parse_date(value: str) -> date:
    """Parse a DD/MM/YYYY string"""
    return datetime.strptime(value, DATE_FMT).date()


def month_label(value: date) -> str:
    """Spanish 'month year' label, e.g. 'enero de 2025'"""
    return f"{MONTH_NAMES[value.month - 1]} de {value.year}"


def days_until(value: date, today: Optional[date] = None) -> int:
    """Calendar days from today to value (negative if already past)"""
    if today is None:
        today = date.today()
    return (value - today).days


def iter_months(start_date: date, end_date: date):
    """Yield (year, month) for every calendar month touched by [start_date, end_date]"""
    year, month = start_date.year, start_date.month
    while (year, month) <= (end_date.year, end_date.month):
        yield year, month
        month += 1
        if month > 12:
            month = 1
            year += 1


# ==================== NIT OPERATIONS ====================

def nit_suffix(nit) -> str:
    """Last two digits of a NIT, zero padded"""
    digits = re.sub(r"[^0-9]", "", str(nit))
    return digits[-2:].rjust(2, "0")


def lookup_required_business_days(nit) -> Tuple[int, bool]:
    """
    Resolve the business days allowed for a NIT.

    Returns:
        Tuple of (business days, whether the default value was used)
    """
    days = LIMITE_SEG_SOCIAL.get(nit_suffix(nit))
    if days is None:
        return DEFAULT_BUSINESS_DAYS, True
    return days, False


def required_business_days(nit) -> int:
    return lookup_required_business_days(nit)[0]


def is_valid_nit(nit) -> bool:
    """A Colombian NIT has between 8 and 10 digits"""
    digits = re.sub(r"[^0-9]", "", str(nit))
    return 8 <= len(digits) <= 10


# ==================== DUE DATE CALCULATION ====================

def generate_due_dates(
    required_days: int,
    start_date: date,
    end_date: date,
    today: Optional[date] = None
) -> List[DueDate]:
    """
    Build one due date per month of the period: the required_days-th business
    day of the month, kept only when it falls inside the period.
    Status is provisional: 'warning' when due within WARNING_WINDOW_DAYS, else 'normal'.
    """
    due_dates = []

    for year, month in iter_months(start_date, end_date):
        due = nth_business_day_of_month(year, month, required_days)
        if due is None or not start_date <= due <= end_date:
            continue

        remaining = days_until(due, today)
        estado = "warning" if 0 <= remaining <= WARNING_WINDOW_DAYS else "normal"

        due_dates.append(DueDate(
            id=len(due_dates) + 1,
            fecha=format_date(due),
            estado=estado,
            mes_texto=month_label(due),
        ))

    return due_dates


def mark_next_due(due_dates: List[DueDate], today: Optional[date] = None) -> List[DueDate]:
    """Mark the first due date on or after today as 'success'"""
    if today is None:
        today = date.today()

    for due in due_dates:
        if due.due_on >= today:
            due.estado = "success"
            break

    return due_dates


def calculate_pila_schedule(
    nit,
    start_date: date,
    end_date: date,
    today: Optional[date] = None
) -> PilaSchedule:
    """
    Calculate PILA payment dates for a NIT over a period.
    The period is expected to be validated by the caller.
    """
    if today is None:
        today = date.today()

    suffix = nit_suffix(nit)
    days, used_default = lookup_required_business_days(nit)
    if used_default:
        logger.warning(
            "No PILA deadline found for NIT digits %s; using default of %d business days",
            suffix,
            days,
        )

    due_dates = generate_due_dates(days, start_date, end_date, today)
    mark_next_due(due_dates, today)

    return PilaSchedule(
        nit_suffix=suffix,
        required_business_days=days,
        used_default=used_default,
        due_dates=due_dates,
    )


def compute_due_dates(nit, start_date: date, end_date: date, today: Optional[date] = None) -> List[DueDate]:
    return calculate_pila_schedule(nit, start_date, end_date, today).due_dates


def default_due_dates(start_date: date, end_date: date) -> List[DueDate]:
    """Fallback schedule: the 10th of each month in the period, first one marked 'success'"""
    due_dates = []

    for year, month in iter_months(start_date, end_date):
        due = date(year, month, 10)
        if start_date <= due <= end_date:
            due_dates.append(DueDate(
                id=len(due_dates) + 1,
                fecha=format_date(due),
                estado="normal",
                mes_texto=month_label(due),
            ))

    if due_dates:
        due_dates[0].estado = "success"

    return due_dates


def describe_due_date(fecha: str, today: Optional[date] = None) -> Dict[str, object]:
    """Status, message and remaining days for a DD/MM/YYYY payment date"""
    remaining = days_until(parse_date(fecha), today)

    if remaining < 0:
        return {"estado": "overdue", "mensaje": f"Vencida hace {abs(remaining)} días", "diasRestantes": remaining}
    if remaining == 0:
        return {"estado": "warning", "mensaje": "Vence hoy", "diasRestantes": remaining}
    if remaining <= WARNING_WINDOW_DAYS:
        return {"estado": "warning", "mensaje": f"Vence en {remaining} días", "diasRestantes": remaining}
    return {"estado": "normal", "mensaje": f"Faltan {remaining} días", "diasRestantes": remaining}
