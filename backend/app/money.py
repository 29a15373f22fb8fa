from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_decimal(v) -> Decimal:
    if v is None or v == "":
        return Decimal("0")
    try:
        return Decimal(str(v))
    except InvalidOperation:
        return Decimal("0")


def q2(v) -> Decimal:
    return to_decimal(v).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(v, currency: str) -> str:
    # "CRC 1,234.56"
    return f"{currency} {q2(v):,.2f}"
