from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_cents(amount):
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(unit_price, quantity, discount_pct=Decimal("0")):
    """Tax-inclusive amount of a line after its percentage discount, in cents."""
    gross = Decimal(unit_price) * Decimal(quantity)
    return to_cents(gross * (Decimal("1") - Decimal(discount_pct or 0) / HUNDRED))


def split_tax_inclusive(amount, vat_rate):
    """Return ``(excl_vat, vat)`` for a cents-exact tax-inclusive amount."""
    excl_vat = to_cents(Decimal(amount) / (Decimal("1") + Decimal(vat_rate) / HUNDRED))
    return excl_vat, Decimal(amount) - excl_vat


def compute_line(unit_price, quantity, discount_pct, vat_rate):
    gross = to_cents(Decimal(unit_price) * Decimal(quantity))
    total = line_total(unit_price, quantity, discount_pct)
    subtotal, vat_amount = split_tax_inclusive(total, vat_rate)
    return {
        "subtotal": subtotal,
        "vat_amount": vat_amount,
        "total": total,
        "discount": gross - total,
    }
