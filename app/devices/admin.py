"""Admin configuration for push devices."""

from django.contrib import admin

from devices.models import PushDevice


@admin.register(PushDevice)
class PushDeviceAdmin(admin.ModelAdmin):
    list_display = [
        "user_id",
        "device_id",
        "platform",
        "device_name",
        "is_active",
        "last_active_at",
        "success_count",
        "failure_count",
    ]
    list_filter = ["platform", "is_active"]
    search_fields = ["user_id", "device_id", "device_name"]
    readonly_fields = [
        "created_at",
        "updated_at",
        "deactivated_at",
        "success_count",
        "failure_count",
    ]
    ordering = ["-created_at"]
