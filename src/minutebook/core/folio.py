# src/minutebook/core/folio.py
"""Folio rendering.

A folio is the human-facing, fixed-width rendering of a folio serial:
serial 7 with width 4 is "0007". Serials wider than the width are rendered
in full, never truncated, so distinct serials always render distinctly.
"""

import re
from dataclasses import dataclass

from minutebook.contracts.enums import FolioSource

DEFAULT_FOLIO_WIDTH = 4

_DIGITS = re.compile(r"^\d+$")


def format_folio(serial: int, width: int = DEFAULT_FOLIO_WIDTH) -> str:
    """Render a folio serial as a zero-padded string.

    Raises:
        ValueError: If serial is not positive or width is not positive
    """
    if serial < 1:
        raise ValueError(f"folio serial must be >= 1, got {serial}")
    if width < 1:
        raise ValueError(f"folio width must be >= 1, got {width}")
    return str(serial).zfill(width)


def _as_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _DIGITS.match(value.strip()):
        try:
            return int(value.strip())
        except ValueError:
            # beyond the interpreter's int/str conversion limit
            return None
    return None


@dataclass(frozen=True)
class FolioInfo:
    """A folio ready for display.

    Attributes:
        display: Always something showable ("0007", "M-0007", or a short id)
        numeric: The parsed serial, when one could be parsed
        source: Which attribute the display came from
    """

    display: str
    numeric: int | None
    source: FolioSource


def resolve_folio(
    folio: object,
    folio_serial: object,
    record_id: str | None,
    width: int = DEFAULT_FOLIO_WIDTH,
) -> FolioInfo:
    """Pick the best displayable folio for a record. Never raises.

    Preference order:
        1. numeric folio, re-padded
        2. numeric folio_serial, padded
        3. non-numeric folio / folio_serial text as-is (custom formats like "M-0007")
        4. first 8 characters of the id, upper-cased
    """
    for value, source in ((folio, FolioSource.FOLIO), (folio_serial, FolioSource.FOLIO_SERIAL)):
        number = _as_int(value)
        if number is not None and number >= 1:
            return FolioInfo(display=str(number).zfill(width), numeric=number, source=source)

    for value, source in ((folio, FolioSource.FOLIO), (folio_serial, FolioSource.FOLIO_SERIAL)):
        if isinstance(value, str) and value.strip():
            return FolioInfo(display=value.strip(), numeric=None, source=source)

    fallback = (record_id or "")[:8].upper() or "-"
    return FolioInfo(display=fallback, numeric=None, source=FolioSource.ID)
