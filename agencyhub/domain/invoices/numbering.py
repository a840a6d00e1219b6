"""Year-scoped sequential invoice numbers: {prefix}-{year}-{sequence}"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 4


def next_invoice_number(last_number: Optional[str], prefix: str, year: int, starting_number: int) -> str:
    """
    Derive the next number from the last issued one.

    The sequence restarts at `starting_number` on the first invoice and
    whenever the calendar year has advanced past the last invoice's year.
    """
    if not last_number:
        return format_invoice_number(prefix, year, starting_number)

    try:
        last_prefix, last_year, last_sequence = last_number.rsplit("-", 2)
        last_year_value = int(last_year)
        last_sequence_value = int(last_sequence)
    except ValueError:
        logger.warning(f"⚠️ Unparseable invoice number '{last_number}', restarting sequence")
        return format_invoice_number(prefix, year, starting_number)

    if last_prefix != prefix or last_year_value < year:
        return format_invoice_number(prefix, year, starting_number)

    return format_invoice_number(prefix, year, last_sequence_value + 1)


def format_invoice_number(prefix: str, year: int, sequence: int) -> str:
    return f"{prefix}-{year}-{sequence:0{SEQUENCE_WIDTH}d}"
