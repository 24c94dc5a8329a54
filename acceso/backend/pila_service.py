"""
Business logic layer for PILA payment dates.
This service layer validates periods and orchestrates between upstream_service and pila_utils.
"""
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

import upstream_service
from pila_utils import (
    WARNING_WINDOW_DAYS,
    InvalidPeriodError,
    calculate_pila_schedule,
    days_until,
    default_due_dates,
    is_valid_nit,
    lookup_required_business_days,
    nit_suffix,
    parse_date,
)

logger = logging.getLogger(__name__)

_ISO_TIME_SEPARATOR = re.compile(r"[T ]")


# ==================== PERIOD VALIDATION ====================

def parse_period_date(value) -> date:
    """
    Parse a period boundary into a naive calendar date.
    Accepts date/datetime objects, ISO strings ('YYYY-MM-DD', with or without time)
    and 'DD/MM/YYYY'.

    Raises:
        InvalidPeriodError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            # Time and offset are ignored, only the calendar day counts
            return date.fromisoformat(_ISO_TIME_SEPARATOR.split(text, maxsplit=1)[0])
        except ValueError:
            pass
        try:
            return parse_date(text)
        except ValueError:
            pass
    raise InvalidPeriodError(f"Fecha inválida: {value!r}")


def validate_period(start, end) -> Tuple[date, date]:
    """
    Parse and validate a period.

    Returns:
        Tuple of (start_date, end_date)

    Raises:
        InvalidPeriodError: If a date is invalid or start is not before end
    """
    try:
        start_date = parse_period_date(start)
        end_date = parse_period_date(end)
    except InvalidPeriodError:
        raise InvalidPeriodError("Las fechas de inicio o fin no son válidas")

    if start_date >= end_date:
        raise InvalidPeriodError("La fecha de inicio debe ser anterior a la fecha de fin")

    return start_date, end_date


# ==================== PILA OPERATIONS ====================

def annotate_remaining_days(fechas: List[Dict[str, Any]], today: Optional[date] = None) -> List[Dict[str, Any]]:
    """
    Add 'diasRestantes' to each serialized due date and refresh its status:
    past dates become 'normal', dates due within the warning window become 'warning'.
    """
    annotated = []
    for fecha in fechas:
        remaining = days_until(parse_date(fecha["fecha"]), today)
        estado = fecha["estado"]
        if remaining < 0:
            estado = "normal"
        elif remaining <= WARNING_WINDOW_DAYS:
            estado = "warning"
        annotated.append({**fecha, "estado": estado, "diasRestantes": remaining})
    return annotated


def get_pila_due_dates(nit, fecha_inicio, fecha_fin, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Calculate PILA payment dates for a NIT and a visit period.

    Args:
        nit: NIT of the company
        fecha_inicio: Start of the visit period
        fecha_fin: End of the visit period
        today: Reference day for statuses (defaults to the current date)

    Returns:
        Dictionary with the response contract of the fechas-corte endpoint

    Raises:
        InvalidPeriodError: If the period is invalid
    """
    start_date, end_date = validate_period(fecha_inicio, fecha_fin)
    metadata = {
        "nit": nit_suffix(nit),
        "fechaInicio": fecha_inicio,
        "fechaFin": fecha_fin,
    }

    try:
        schedule = calculate_pila_schedule(nit, start_date, end_date, today)
    except Exception:
        logger.exception("Error calculating PILA dates; using default dates")
        fechas = [d.to_dict() for d in default_due_dates(start_date, end_date)]
        return {
            "success": True,
            "fechas": fechas,
            "warning": "Se usaron fechas predeterminadas debido a un error en el cálculo",
            "metadata": {**metadata, "totalFechas": len(fechas)},
        }

    fechas = annotate_remaining_days([d.to_dict() for d in schedule.due_dates], today)
    logger.info("PILA dates calculated for NIT digits %s: %d", schedule.nit_suffix, len(fechas))

    result = {
        "success": True,
        "fechas": fechas,
        "metadata": {
            **metadata,
            "totalFechas": len(fechas),
            "diasHabiles": schedule.required_business_days,
        },
    }
    if schedule.used_default:
        result["warning"] = "No se encontró información para los dígitos del NIT; se usó el valor por defecto"
    return result


def get_pila_due_dates_for_solicitud(id_solicitud: str, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Fetch a solicitud from the upstream backend and calculate its PILA payment dates.

    Raises:
        UpstreamError: If the solicitud cannot be fetched
        ValueError: If the solicitud lacks data or its period is invalid
    """
    solicitud = upstream_service.fetch_solicitud(id_solicitud)

    if not solicitud.nit or not solicitud.fecha_inicio or not solicitud.fecha_fin:
        raise ValueError("Datos insuficientes en la solicitud. Se requiere NIT, fecha inicio y fecha fin.")

    return get_pila_due_dates(solicitud.nit, solicitud.fecha_inicio, solicitud.fecha_fin, today)


def get_payment_business_days(nit) -> Dict[str, Any]:
    """Business days allowed for a NIT's PILA payment"""
    days, used_default = lookup_required_business_days(nit)
    return {
        "nit": str(nit),
        "digitos": nit_suffix(nit),
        "diasHabiles": days,
        "valorPorDefecto": used_default,
        "nitValido": is_valid_nit(nit),
    }
