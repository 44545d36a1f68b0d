import uuid

from django.db import models


class ReportStatus(models.TextChoices):
    OPEN = "OPEN", "Open"
    CLOSED = "CLOSED", "Closed"


class DailyReport(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    report_date = models.DateField(unique=True)
    opening_amount = models.DecimalField(max_digits=12, decimal_places=2)
    # Null while the day is open.
    closing_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    sales_count = models.PositiveIntegerField(default=0)
    total_sales = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    total_cash = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    total_card = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    total_mobile = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    total_other = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    unclassified_total = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    expected_cash = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    cash_difference = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    serial_number = models.CharField(max_length=32, unique=True, null=True, blank=True)
    cashier = models.ForeignKey(
        "accounts.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="opened_reports",
    )
    closed_by = models.ForeignKey(
        "accounts.User",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="closed_reports",
    )
    opened_at = models.DateTimeField()
    closed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-report_date"]
        constraints = [
            models.CheckConstraint(condition=models.Q(opening_amount__gte=0), name="dailyreport_opening_gte_zero"),
            models.CheckConstraint(
                condition=models.Q(closing_amount__isnull=True) | models.Q(serial_number__isnull=False),
                name="dailyreport_closed_has_serial",
            ),
        ]

    @property
    def is_open(self):
        return self.closing_amount is None

    @property
    def status(self):
        return ReportStatus.OPEN if self.is_open else ReportStatus.CLOSED

    def __str__(self):
        return f"{self.report_date} ({self.status})"


class DailyReportVatLine(models.Model):
    report = models.ForeignKey(DailyReport, on_delete=models.CASCADE, related_name="vat_lines")
    vat_rate = models.DecimalField(max_digits=5, decimal_places=2)
    total_ht = models.DecimalField(max_digits=14, decimal_places=2)
    total_vat = models.DecimalField(max_digits=14, decimal_places=2)
    total_ttc = models.DecimalField(max_digits=14, decimal_places=2)

    class Meta:
        ordering = ["-vat_rate"]
        constraints = [
            models.UniqueConstraint(fields=["report", "vat_rate"], name="unique_vat_line_per_report_rate"),
        ]


class DailyReportArchive(models.Model):
    """Closed figures of a report, kept before the day is reopened."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    report = models.ForeignKey(DailyReport, on_delete=models.CASCADE, related_name="archives")
    serial_number = models.CharField(max_length=32)
    snapshot = models.JSONField(default=dict)
    archived_by = models.ForeignKey("accounts.User", on_delete=models.PROTECT, related_name="report_archives")
    reason = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
