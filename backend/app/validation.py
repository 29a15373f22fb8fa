from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Optional

from pydantic import BeforeValidator

from .errors import InvalidArgument


def _to_upper_str(v):
    if v is None:
        return v
    return str(v).strip().upper()


def _to_stripped_str(v):
    if v is None:
        return v
    return str(v).strip()


PAYMENT_METHODS = ("CASH", "CARD", "TRANSFER", "INSURANCE")
REFUND_METHODS = ("CASH", "CARD", "CREDIT_NOTE")
ADJUSTMENT_TYPES = ("ADD", "SUBTRACT", "SET")

# Free-form codes are normalized on the way in; membership is checked by the
# workflows so that each failure gets its own user-facing message.
MethodCode = Annotated[Optional[str], BeforeValidator(_to_upper_str)]
TrimmedStr = Annotated[Optional[str], BeforeValidator(_to_stripped_str)]

# Sentinel the invoice list UI sends for "no status filter".
STATUS_ALL = "all"


def normalize_status_filter(status: Optional[str]) -> Optional[str]:
    s = (status or "").strip()
    if not s or s.lower() == STATUS_ALL:
        return None
    return s


# Ids and counters are PostgreSQL integer columns.
PG_INT_MAX = 2**31 - 1


def parse_optional_int(raw) -> Optional[int]:
    if raw is None:
        return None
    try:
        value = int(str(raw).strip())
    except ValueError:
        return None
    if abs(value) > PG_INT_MAX:
        return None
    return value


def parse_optional_date(raw, field: str = "date") -> Optional[date]:
    if raw is None:
        return None
    if isinstance(raw, date):
        return raw
    s = str(raw).strip()
    if not s:
        return None
    invalid = InvalidArgument(f"Invalid {field}: expected YYYY-MM-DD")
    # A bare date, or a full ISO timestamp whose date part is used.
    if len(s) > 10 and s[10] not in "T ":
        raise invalid
    try:
        if len(s) == 10:
            return date.fromisoformat(s)
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    except ValueError:
        raise invalid from None


def parse_positive_id(raw, message: str) -> int:
    value = parse_optional_int(raw)
    if value is None or value <= 0:
        raise InvalidArgument(message)
    return value
