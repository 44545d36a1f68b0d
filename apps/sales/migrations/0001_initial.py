import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

PAYMENT_METHOD_CHOICES = [
    ("CASH", "Cash"),
    ("CARD", "Card"),
    ("MOBILE", "Mobile"),
    ("CHECK", "Check"),
    ("VOUCHER", "Voucher"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Sale",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("sale_number", models.CharField(max_length=32, unique=True)),
                ("sold_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("subtotal", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("total_vat", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("total_discount", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("total", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("payment_method", models.CharField(choices=PAYMENT_METHOD_CHOICES, default="CASH", max_length=16)),
                ("amount_paid", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("change_amount", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("notes", models.CharField(blank=True, max_length=255)),
                ("is_cancelled", models.BooleanField(default=False)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancel_reason", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "cashier",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sales",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "cancelled_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="cancelled_sales",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-sold_at"],
                "indexes": [
                    models.Index(fields=["is_cancelled", "sold_at"], name="sale_cancelled_sold_idx"),
                    models.Index(fields=["cashier", "sold_at"], name="sale_cashier_sold_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SaleItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("product_name", models.CharField(max_length=255)),
                ("product_barcode", models.CharField(blank=True, max_length=64)),
                ("quantity", models.DecimalField(decimal_places=3, max_digits=12)),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("discount_pct", models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                ("vat_rate", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("subtotal", models.DecimalField(decimal_places=2, max_digits=12)),
                ("vat_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("total", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "product",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="sale_items",
                        to="catalog.product",
                    ),
                ),
                (
                    "sale",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="sales.sale",
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["product"], name="saleitem_product_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(quantity__gt=0), name="saleitem_quantity_gt_zero"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SalePayment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("method", models.CharField(choices=PAYMENT_METHOD_CHOICES, max_length=16)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                (
                    "sale",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payments",
                        to="sales.sale",
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["sale", "method"], name="salepayment_sale_method_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(amount__gt=0), name="salepayment_amount_gt_zero"),
                ],
            },
        ),
    ]
