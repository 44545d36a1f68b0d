import uuid
from decimal import Decimal

from django.db import models

BELGIAN_VAT_RATES = (Decimal("0.00"), Decimal("6.00"), Decimal("12.00"), Decimal("21.00"))


def normalize_barcode(value: str) -> str:
    return "".join((value or "").split())


class Product(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    barcode = models.CharField(max_length=64, unique=True, null=True, blank=True, db_index=True)
    name = models.CharField(max_length=255, db_index=True)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    vat_rate = models.DecimalField(max_digits=5, decimal_places=2)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(condition=models.Q(price__gte=0), name="product_price_gte_zero"),
            models.CheckConstraint(
                condition=models.Q(vat_rate__gte=0) & models.Q(vat_rate__lte=100),
                name="product_vat_rate_range",
            ),
        ]

    def save(self, *args, **kwargs):
        self.barcode = normalize_barcode(self.barcode) or None
        self.name = (self.name or "").strip()
        super().save(*args, **kwargs)

    @property
    def price_excl_vat(self):
        return (self.price / (Decimal("1") + self.vat_rate / Decimal("100"))).quantize(Decimal("0.01"))

    def __str__(self):
        return f"{self.barcode or '-'} - {self.name}"
