"""Django app configuration for devices."""

from django.apps import AppConfig


class DevicesConfig(AppConfig):
    """Configuration for the push device registry app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "devices"
    verbose_name = "Push Devices"
