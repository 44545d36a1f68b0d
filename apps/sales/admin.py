from django.contrib import admin

from apps.sales.models import Sale, SaleItem, SalePayment


class SaleItemInline(admin.TabularInline):
    model = SaleItem
    extra = 0
    readonly_fields = ("product", "product_name", "quantity", "unit_price", "discount_pct", "vat_rate", "total")


class SalePaymentInline(admin.TabularInline):
    model = SalePayment
    extra = 0


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = ("sale_number", "sold_at", "cashier", "payment_method", "total", "is_cancelled")
    list_filter = ("is_cancelled", "payment_method", "cashier")
    search_fields = ("sale_number", "cashier__username", "items__product_name")
    autocomplete_fields = ("cashier",)
    date_hierarchy = "sold_at"
    inlines = [SaleItemInline, SalePaymentInline]


@admin.register(SalePayment)
class SalePaymentAdmin(admin.ModelAdmin):
    list_display = ("sale", "method", "amount")
    list_filter = ("method",)
    search_fields = ("sale__sale_number",)
