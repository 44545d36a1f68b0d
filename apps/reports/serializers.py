from rest_framework import serializers

from apps.reports.models import DailyReport, DailyReportArchive, DailyReportVatLine


class DailyReportVatLineSerializer(serializers.ModelSerializer):
    class Meta:
        model = DailyReportVatLine
        fields = ["vat_rate", "total_ht", "total_vat", "total_ttc"]
        read_only_fields = fields


class DailyReportArchiveSerializer(serializers.ModelSerializer):
    archived_by_username = serializers.CharField(source="archived_by.username", read_only=True)

    class Meta:
        model = DailyReportArchive
        fields = ["id", "serial_number", "reason", "archived_by_username", "created_at", "snapshot"]
        read_only_fields = fields


class DailyReportSerializer(serializers.ModelSerializer):
    status = serializers.CharField(read_only=True)
    cashier_username = serializers.CharField(source="cashier.username", read_only=True, default=None)
    closed_by_username = serializers.CharField(source="closed_by.username", read_only=True, default=None)
    vat_lines = DailyReportVatLineSerializer(many=True, read_only=True)
    archives = DailyReportArchiveSerializer(many=True, read_only=True)

    class Meta:
        model = DailyReport
        fields = [
            "id",
            "report_date",
            "status",
            "opening_amount",
            "closing_amount",
            "sales_count",
            "total_sales",
            "total_cash",
            "total_card",
            "total_mobile",
            "total_other",
            "unclassified_total",
            "expected_cash",
            "cash_difference",
            "serial_number",
            "cashier",
            "cashier_username",
            "closed_by",
            "closed_by_username",
            "opened_at",
            "closed_at",
            "vat_lines",
            "archives",
        ]
        read_only_fields = fields


# Amounts stay raw strings here; the day services own their validation codes.
class OpenDaySerializer(serializers.Serializer):
    opening_amount = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    reopen = serializers.BooleanField(required=False, default=False)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")


class CloseDaySerializer(serializers.Serializer):
    closing_amount = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    date = serializers.DateField(required=False)


class XReportQuerySerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
    counted = serializers.CharField(required=False)
