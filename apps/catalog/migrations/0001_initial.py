import uuid
from decimal import Decimal

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("barcode", models.CharField(blank=True, db_index=True, max_length=64, null=True, unique=True)),
                ("name", models.CharField(db_index=True, max_length=255)),
                ("price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("vat_rate", models.DecimalField(decimal_places=2, default=Decimal("21.00"), max_digits=5)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(price__gte=0), name="product_price_gte_zero"),
                    models.CheckConstraint(
                        condition=models.Q(vat_rate__gte=0) & models.Q(vat_rate__lte=100),
                        name="product_vat_rate_range",
                    ),
                ],
            },
        ),
    ]
