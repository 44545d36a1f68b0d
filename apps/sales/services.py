import logging
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from apps.audit.services import record_audit
from apps.common.errors import DomainError
from apps.common.sequences import next_sale_number
from apps.inventory.models import MovementType, StockMovement
from apps.reports.services import lock_day
from apps.sales.models import PaymentMethod, Sale, SaleItem, SalePayment

logger = logging.getLogger(__name__)


class SaleError(DomainError):
    pass


class DayClosedError(SaleError):
    code = "day_closed"
    status_code = 409


def _ensure_day_open(sold_at, detail):
    report = lock_day(timezone.localdate(sold_at))
    if report is not None and not report.is_open:
        raise DayClosedError(detail)


def _primary_method(payments):
    best = None
    for payment in payments:
        if best is None or payment["amount"] > best["amount"]:
            best = payment
    return best["method"] if best else PaymentMethod.CASH


def _stock_quantities(lines):
    quantities = {}
    for line in lines:
        product = line.get("product")
        if product is None:
            continue
        quantities.setdefault(product.id, [product, Decimal("0")])
        quantities[product.id][1] += line["quantity"]
    return quantities.values()


def create_sale(*, cashier, lines, payments, totals, notes=""):
    """Persist a validated sale with its items, payments and stock movements.

    ``lines`` carry the snapshot and computed amounts of each item; ``totals``
    the sale level amounts (see ``SaleCreateSerializer.validate``).
    """
    sold_at = timezone.now()
    with transaction.atomic():
        _ensure_day_open(sold_at, "La journee est cloturee. Rouvrez la journee pour encaisser.")
        sale = Sale.objects.create(
            sale_number=next_sale_number(timezone.localtime(sold_at)),
            cashier=cashier,
            sold_at=sold_at,
            subtotal=totals["subtotal"],
            total_vat=totals["total_vat"],
            total_discount=totals["total_discount"],
            total=totals["total"],
            payment_method=_primary_method(payments),
            amount_paid=totals["amount_paid"],
            change_amount=totals["change_amount"],
            notes=notes,
        )
        SaleItem.objects.bulk_create(
            [
                SaleItem(
                    sale=sale,
                    product=line.get("product"),
                    product_name=line["product_name"],
                    product_barcode=line.get("product_barcode") or "",
                    quantity=line["quantity"],
                    unit_price=line["unit_price"],
                    discount_pct=line["discount_pct"],
                    vat_rate=line["vat_rate"],
                    subtotal=line["subtotal"],
                    vat_amount=line["vat_amount"],
                    total=line["total"],
                )
                for line in lines
            ]
        )
        SalePayment.objects.bulk_create(
            [SalePayment(sale=sale, method=payment["method"], amount=payment["amount"]) for payment in payments]
        )
        for product, quantity in _stock_quantities(lines):
            StockMovement.objects.create(
                product=product,
                movement_type=MovementType.SALE,
                quantity_delta=-quantity,
                reference_type="sale",
                reference_id=str(sale.id),
                note=f"Vente {sale.sale_number}",
                created_by=cashier,
            )
        record_audit(
            actor=cashier,
            action="sale.create",
            entity_type="sale",
            entity_id=sale.id,
            payload={
                "sale_number": sale.sale_number,
                "total": str(sale.total),
                "payments": [{"method": p["method"], "amount": str(p["amount"])} for p in payments],
            },
        )
    logger.info("Sale %s recorded: %s", sale.sale_number, sale.total)
    return sale


def cancel_sale(*, sale, actor, reason):
    """Cancel a sale, restoring stock. Returns ``False`` when it already was."""
    with transaction.atomic():
        _ensure_day_open(sale.sold_at, "Cette vente appartient a une journee cloturee et ne peut plus etre annulee.")
        locked = Sale.objects.select_for_update().get(pk=sale.pk)
        if locked.is_cancelled:
            return False

        sale_movements = StockMovement.objects.select_related("product").filter(
            reference_type="sale",
            reference_id=str(locked.id),
        )
        for movement in sale_movements:
            StockMovement.objects.create(
                product=movement.product,
                movement_type=MovementType.SALE_CANCEL,
                quantity_delta=-movement.quantity_delta,
                reference_type="sale_cancel",
                reference_id=str(locked.id),
                note=f"Annulation {locked.sale_number}",
                created_by=actor,
            )

        locked.is_cancelled = True
        locked.cancelled_at = timezone.now()
        locked.cancelled_by = actor
        locked.cancel_reason = reason
        locked.save(update_fields=["is_cancelled", "cancelled_at", "cancelled_by", "cancel_reason"])

        record_audit(
            actor=actor,
            action="sale.cancel",
            entity_type="sale",
            entity_id=locked.id,
            payload={"sale_number": locked.sale_number, "total": str(locked.total), "reason": reason},
        )
    logger.info("Sale %s cancelled by %s", locked.sale_number, actor)
    return True
