#!/usr/bin/env python3
"""
MCP interface for the Colombian calendar and PILA functionality with StreamableHttp transport.
This is a thin wrapper around the calendar and PILA services, suitable for assistants and internal tooling.
"""

import os
import logging
from dotenv import load_dotenv
from datetime import date
from mcp.server.fastmcp import FastMCP

import pila_service
from pila_utils import describe_due_date
from colombia_holidays import (
    count_business_days,
    holidays_for_year,
    holidays_in_range,
    is_business_day,
    next_business_day,
    nth_business_day_of_month,
)

# Load environment variables from .env file
load_dotenv()

# Logging (stdlib only)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
logger = logging.getLogger(__name__)

# Create MCP server instance with JSON responses
mcp = FastMCP("ControlAcceso", json_response=True)


# ==================== MCP TOOLS ====================

@mcp.tool()
def get_colombian_holidays(year: int = None) -> list | dict:
    """
    Get the list of Colombian public holidays for a given year.

    Args:
        year: The year to get holidays for (defaults to current year)

    Returns:
        List of holidays with name, date and type (fixed, movable or easter)
    """
    if year is None:
        year = date.today().year
    try:
        return [
            {"name": h.name, "date": h.date.isoformat(), "type": h.type}
            for h in holidays_for_year(year)
        ]
    except ValueError as e:
        return {"error": str(e)}


@mcp.tool()
def check_business_day(day: str) -> dict:
    """
    Check whether a date is a business day in Colombia.

    Args:
        day: Date in YYYY-MM-DD format

    Returns:
        Whether the date is a business day and the next business day after it
    """
    try:
        value = date.fromisoformat(day)
        return {
            "date": value.isoformat(),
            "is_business_day": is_business_day(value),
            "next_business_day": next_business_day(value).isoformat()
        }
    except ValueError as e:
        return {"error": str(e)}


@mcp.tool()
def calc_business_days(start_date: str, end_date: str) -> dict:
    """
    Calculate the number of business days between two dates, both included.

    Args:
        start_date: Start date in YYYY-MM-DD format
        end_date: End date in YYYY-MM-DD format

    Returns:
        Dictionary with business days count and holidays in range
    """
    try:
        start = date.fromisoformat(start_date)
        end = date.fromisoformat(end_date)
        if start > end:
            raise ValueError("Start date must be before end date")

        return {
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "business_days": count_business_days(start, end),
            "holidays_in_range": [
                {"name": h.name, "date": h.date.isoformat()}
                for h in holidays_in_range(start, end)
            ]
        }
    except ValueError as e:
        return {"error": str(e)}


@mcp.tool()
def get_nth_business_day(year: int, month: int, n: int) -> dict:
    """
    Get the n-th business day of a month.

    Args:
        year: Year
        month: Month (1-12)
        n: Position of the business day, starting at 1

    Returns:
        The date, or null when the month has fewer business days
    """
    try:
        value = nth_business_day_of_month(year, month, n)
    except ValueError as e:
        return {"error": str(e)}
    return {"date": value.isoformat() if value else None}


@mcp.tool()
def calc_pila_due_dates(nit: str, start_date: str, end_date: str) -> dict:
    """
    Calculate the PILA social security payment dates of a company for a period.

    Args:
        nit: NIT of the company
        start_date: Start of the period in YYYY-MM-DD format
        end_date: End of the period in YYYY-MM-DD format

    Returns:
        Payment dates (DD/MM/YYYY) with their status and remaining days
    """
    try:
        return pila_service.get_pila_due_dates(nit, start_date, end_date)
    except ValueError as e:
        return {"error": str(e)}


@mcp.tool()
def get_pila_business_days(nit: str) -> dict:
    """
    Get the number of business days a company has to pay PILA each month.

    Args:
        nit: NIT of the company

    Returns:
        The last two NIT digits and the business days allowed
    """
    return pila_service.get_payment_business_days(nit)


@mcp.tool()
def describe_pila_due_date(fecha: str) -> dict:
    """
    Describe how close a PILA payment date is.

    Args:
        fecha: Payment date in DD/MM/YYYY format

    Returns:
        Status (overdue, warning or normal), a Spanish message and the remaining days
    """
    try:
        return describe_due_date(fecha)
    except ValueError as e:
        return {"error": str(e)}


if __name__ == "__main__":
    # Run with StreamableHttp transport
    mcp.run(transport="streamable-http")
