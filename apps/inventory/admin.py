from django.contrib import admin

from apps.inventory.models import StockMovement


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = ("product", "movement_type", "quantity_delta", "reference_type", "reference_id", "created_by", "created_at")
    list_filter = ("movement_type",)
    search_fields = ("product__barcode", "product__name", "reference_id")
    autocomplete_fields = ("product", "created_by")
