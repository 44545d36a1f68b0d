from django.contrib import admin

from apps.reports.models import DailyReport, DailyReportArchive, DailyReportVatLine


class DailyReportVatLineInline(admin.TabularInline):
    model = DailyReportVatLine
    extra = 0
    can_delete = False
    readonly_fields = ("vat_rate", "total_ht", "total_vat", "total_ttc")


@admin.register(DailyReport)
class DailyReportAdmin(admin.ModelAdmin):
    list_display = (
        "report_date",
        "serial_number",
        "opening_amount",
        "closing_amount",
        "total_sales",
        "cash_difference",
        "closed_by",
    )
    search_fields = ("serial_number",)
    date_hierarchy = "report_date"
    readonly_fields = ("serial_number", "closed_at", "opened_at")
    inlines = [DailyReportVatLineInline]


@admin.register(DailyReportArchive)
class DailyReportArchiveAdmin(admin.ModelAdmin):
    list_display = ("report", "serial_number", "archived_by", "reason", "created_at")
    search_fields = ("serial_number", "reason")
    readonly_fields = ("snapshot",)
