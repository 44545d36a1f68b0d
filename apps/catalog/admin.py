from django.contrib import admin

from apps.catalog.models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "barcode", "price", "vat_rate", "is_active", "updated_at")
    list_filter = ("is_active", "vat_rate")
    search_fields = ("name", "barcode")
