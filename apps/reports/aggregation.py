"""Daily cash-register aggregation behind the X and Z reports.

Everything here works on sales that were already fetched: no function in this
module reads or writes the database, so an X report can be produced any number
of times without side effects. Sales may be model instances (with ``items`` and
``payments`` related managers) or any objects exposing the same attributes.

Amounts are ``Decimal`` throughout. VAT buckets accumulate unrounded HT and VAT
and only round when they are rendered; the rendered VAT of a bucket is its
rounded tax-inclusive total minus its rounded HT, so that HT + VAT of every
bucket adds up to the cents the customers actually paid.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from apps.sales.models import PaymentMethod
from apps.sales.pricing import CENT, HUNDRED, line_total, to_cents

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ZERO_RATE = Decimal("0.00")
OTHER_METHODS = (PaymentMethod.CHECK, PaymentMethod.VOUCHER)


def _rows(related):
    if related is None:
        return []
    if hasattr(related, "all"):
        return list(related.all())
    return list(related)


def _money(value):
    return format(to_cents(value), "f")


def normalize_vat_rate(raw_rate):
    """Round a VAT rate to two decimals, or return ``None`` when it cannot be read.

    ``0`` is a legal exemption rate and normalizes to ``Decimal("0.00")``; only a
    missing, non-numeric or out of range value yields ``None``.
    """
    if raw_rate is None or isinstance(raw_rate, bool):
        return None
    try:
        rate = Decimal(str(raw_rate).strip())
    except (InvalidOperation, ValueError):
        return None
    if not rate.is_finite() or rate < 0 or rate > HUNDRED:
        return None
    if rate == 0:
        return ZERO_RATE
    return rate.quantize(CENT)


@dataclass
class VatBucket:
    rate: Decimal
    total_ht: Decimal = ZERO
    total_vat: Decimal = ZERO
    total_ttc: Decimal = ZERO
    items_count: int = 0

    def add(self, amount):
        item_ht = amount / (Decimal("1") + self.rate / HUNDRED)
        self.total_ht += item_ht
        self.total_vat += item_ht * (self.rate / HUNDRED)
        self.total_ttc += amount
        self.items_count += 1

    def rounded(self):
        total_ht = to_cents(self.total_ht)
        total_ttc = to_cents(self.total_ttc)
        return {
            "vat_rate": self.rate,
            "total_ht": total_ht,
            "total_vat": total_ttc - total_ht,
            "total_ttc": total_ttc,
        }


@dataclass(frozen=True)
class FlaggedItem:
    sale_id: str
    sale_number: str
    product_name: str
    raw_vat_rate: object
    amount: Decimal
    reason: str = "vat_rate"


@dataclass
class MethodTotal:
    total: Decimal = ZERO
    count: int = 0


@dataclass
class VatAggregation:
    buckets: dict = field(default_factory=dict)
    flagged_items: list = field(default_factory=list)

    @property
    def unclassified_total(self):
        return sum((item.amount for item in self.flagged_items), ZERO)

    def lines(self):
        return [self.buckets[rate].rounded() for rate in sorted(self.buckets, reverse=True)]


def included_sales(sales):
    return [sale for sale in sales if not getattr(sale, "is_cancelled", False)]


def aggregate_vat(sales):
    """Group every item of the non-cancelled sales by normalized VAT rate.

    Items whose rate or amount cannot be read are kept out of the buckets and
    returned in ``flagged_items`` for manual review; no rate is ever assumed for
    them. An item with an unreadable amount is flagged with an amount of zero.
    """
    result = VatAggregation()
    for sale in included_sales(sales):
        for item in _rows(getattr(sale, "items", None)):
            raw_rate = getattr(item, "vat_rate", None)
            rate = normalize_vat_rate(raw_rate)
            try:
                amount = line_total(
                    getattr(item, "unit_price", None),
                    getattr(item, "quantity", None),
                    getattr(item, "discount_pct", ZERO) or ZERO,
                )
            except (TypeError, InvalidOperation, ValueError):
                amount = None
            if amount is None or not amount.is_finite():
                amount, reason = ZERO, "amount"
            elif rate is None:
                reason = "vat_rate"
            else:
                reason = None
            if reason is not None:
                flagged = FlaggedItem(
                    sale_id=str(sale.id),
                    sale_number=getattr(sale, "sale_number", ""),
                    product_name=getattr(item, "product_name", ""),
                    raw_vat_rate=raw_rate,
                    amount=amount,
                    reason=reason,
                )
                result.flagged_items.append(flagged)
                logger.warning(
                    "Sale %s item %r has unreadable %s, left out of VAT totals",
                    flagged.sale_number or flagged.sale_id,
                    flagged.product_name,
                    reason,
                )
                continue
            bucket = result.buckets.get(rate)
            if bucket is None:
                bucket = result.buckets[rate] = VatBucket(rate=rate)
            bucket.add(amount)
    return result


def payment_shares(sale):
    """Split ``sale.total`` across the methods the customer paid with.

    Cash handed back as change is taken off the cash tender first. Whatever
    mismatch remains is spread proportionally to the tendered amounts, the last
    method absorbing the rounding remainder, so the shares always add up to the
    sale total. A sale without recorded payments is attributed entirely to its
    ``payment_method``.
    """
    total = Decimal(sale.total)
    tendered = {}
    for payment in _rows(getattr(sale, "payments", None)):
        tendered[payment.method] = tendered.get(payment.method, ZERO) + Decimal(payment.amount)
    tendered = {method: amount for method, amount in tendered.items() if amount > 0}
    if not tendered:
        return [(sale.payment_method, total)]

    excess = sum(tendered.values(), ZERO) - total
    if excess > 0 and PaymentMethod.CASH in tendered:
        change = min(excess, tendered[PaymentMethod.CASH])
        tendered[PaymentMethod.CASH] -= change
        if tendered[PaymentMethod.CASH] <= 0:
            del tendered[PaymentMethod.CASH]
        if not tendered:
            return [(PaymentMethod.CASH, total)]

    paid = sum(tendered.values(), ZERO)
    if paid == total:
        return list(tendered.items())

    shares = []
    remaining = total
    methods = list(tendered.items())
    for index, (method, amount) in enumerate(methods):
        if index == len(methods) - 1:
            share = remaining
        else:
            share = to_cents(total * amount / paid)
            remaining -= share
        shares.append((method, share))
    return shares


def aggregate_payments(sales):
    totals = {method: MethodTotal() for method in PaymentMethod.values}
    for sale in included_sales(sales):
        for method, share in payment_shares(sale):
            bucket = totals.setdefault(method, MethodTotal())
            bucket.total += share
            bucket.count += 1
    return totals


@dataclass
class ReportData:
    sales_count: int
    total_sales: Decimal
    by_method: dict
    vat: VatAggregation

    def method_total(self, *methods):
        return sum((self.by_method[method].total for method in methods if method in self.by_method), ZERO)

    @property
    def total_cash(self):
        return self.method_total(PaymentMethod.CASH)

    @property
    def total_card(self):
        return self.method_total(PaymentMethod.CARD)

    @property
    def total_mobile(self):
        return self.method_total(PaymentMethod.MOBILE)

    @property
    def total_other(self):
        return self.method_total(*OTHER_METHODS)

    @property
    def vat_by_rate(self):
        return {line["vat_rate"]: line for line in self.vat.lines()}

    @property
    def unclassified_total(self):
        return self.vat.unclassified_total

    def as_dict(self):
        return {
            "sales_count": self.sales_count,
            "total_sales": _money(self.total_sales),
            "total_cash": _money(self.total_cash),
            "total_card": _money(self.total_card),
            "total_mobile": _money(self.total_mobile),
            "total_other": _money(self.total_other),
            "by_method": [
                {"method": method, "total": _money(bucket.total), "count": bucket.count}
                for method, bucket in self.by_method.items()
            ],
            "vat_by_rate": [
                {
                    "vat_rate": format(line["vat_rate"], "f"),
                    "total_ht": _money(line["total_ht"]),
                    "total_vat": _money(line["total_vat"]),
                    "total_ttc": _money(line["total_ttc"]),
                }
                for line in self.vat.lines()
            ],
            "unclassified_total": _money(self.unclassified_total),
            "flagged_items": [
                {
                    "sale_id": item.sale_id,
                    "sale_number": item.sale_number,
                    "product_name": item.product_name,
                    "vat_rate": None if item.raw_vat_rate is None else str(item.raw_vat_rate),
                    "amount": _money(item.amount),
                    "reason": item.reason,
                }
                for item in self.vat.flagged_items
            ],
        }


def compute_report_data(sales):
    sales = included_sales(sales)
    return ReportData(
        sales_count=len(sales),
        total_sales=sum((Decimal(sale.total) for sale in sales), ZERO),
        by_method=aggregate_payments(sales),
        vat=aggregate_vat(sales),
    )


@dataclass(frozen=True)
class CashReconciliation:
    opening_amount: Decimal
    total_cash: Decimal
    expected_cash: Decimal
    counted_cash: Decimal = None
    discrepancy: Decimal = None

    def as_dict(self):
        return {
            "opening_amount": _money(self.opening_amount),
            "total_cash": _money(self.total_cash),
            "expected_cash": _money(self.expected_cash),
            "counted_cash": None if self.counted_cash is None else _money(self.counted_cash),
            "discrepancy": None if self.discrepancy is None else _money(self.discrepancy),
        }


def reconcile_cash(opening_amount, total_cash, counted_amount=None):
    """Expected drawer content is the opening float plus cash takings.

    The discrepancy is informational: it never blocks a closing.
    """
    opening_amount = to_cents(opening_amount)
    total_cash = to_cents(total_cash)
    expected_cash = opening_amount + total_cash
    if counted_amount is None:
        return CashReconciliation(opening_amount, total_cash, expected_cash)
    counted_cash = to_cents(counted_amount)
    return CashReconciliation(opening_amount, total_cash, expected_cash, counted_cash, counted_cash - expected_cash)
