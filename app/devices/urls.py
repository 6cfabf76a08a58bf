"""
URL configuration for the device API.

Routes:
    /                          - List (GET) / register (POST)
    /{device_id}/              - Update (PATCH) / remove (DELETE)
    /{device_id}/ping/         - Activity ping (POST)
    /unregister-all/           - Remove all devices (POST)
"""

from rest_framework.routers import DefaultRouter

from devices.views import DeviceViewSet

router = DefaultRouter()
router.register(r"", DeviceViewSet, basename="device")

app_name = "devices"
urlpatterns = router.urls
