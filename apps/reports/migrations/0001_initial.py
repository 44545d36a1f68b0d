import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="DailyReport",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("report_date", models.DateField(unique=True)),
                ("opening_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("closing_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("sales_count", models.PositiveIntegerField(default=0)),
                ("total_sales", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("total_cash", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("total_card", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("total_mobile", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("total_other", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("unclassified_total", models.DecimalField(decimal_places=2, default=0, max_digits=14)),
                ("expected_cash", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("cash_difference", models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ("serial_number", models.CharField(blank=True, max_length=32, null=True, unique=True)),
                ("opened_at", models.DateTimeField()),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "cashier",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="opened_reports",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "closed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="closed_reports",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-report_date"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(opening_amount__gte=0),
                        name="dailyreport_opening_gte_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(closing_amount__isnull=True) | models.Q(serial_number__isnull=False),
                        name="dailyreport_closed_has_serial",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DailyReportVatLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("vat_rate", models.DecimalField(decimal_places=2, max_digits=5)),
                ("total_ht", models.DecimalField(decimal_places=2, max_digits=14)),
                ("total_vat", models.DecimalField(decimal_places=2, max_digits=14)),
                ("total_ttc", models.DecimalField(decimal_places=2, max_digits=14)),
                (
                    "report",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="vat_lines",
                        to="reports.dailyreport",
                    ),
                ),
            ],
            options={
                "ordering": ["-vat_rate"],
                "constraints": [
                    models.UniqueConstraint(fields=("report", "vat_rate"), name="unique_vat_line_per_report_rate"),
                ],
            },
        ),
        migrations.CreateModel(
            name="DailyReportArchive",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("serial_number", models.CharField(max_length=32)),
                ("snapshot", models.JSONField(default=dict)),
                ("reason", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "archived_by",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="report_archives",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "report",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="archives",
                        to="reports.dailyreport",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
