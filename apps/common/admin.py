from django.contrib import admin

from apps.common.models import SequenceCounter


@admin.register(SequenceCounter)
class SequenceCounterAdmin(admin.ModelAdmin):
    list_display = ("name", "last_value", "updated_at")
    readonly_fields = ("name", "last_value", "updated_at")
