"""
URL configuration for notifications API.

Routes:
    /                         - Feed (GET), create (POST, staff)
    /{id}/                    - Feed entry (GET), hide (DELETE)
    /unread-count/            - Unread count (GET)
    /{id}/read/               - Mark single as read (POST)
    /read-all/                - Mark all as read (POST)
    /delete-all/              - Hide all (POST)
    /stats/                   - Reading statistics (GET)
    /{id}/delivery-status/    - Per-recipient status (GET, staff)
    /{id}/analytics/          - Delivery/read rates (GET, staff)
"""

from rest_framework.routers import DefaultRouter

from notifications.views import NotificationViewSet

router = DefaultRouter()
router.register(r"", NotificationViewSet, basename="notification")

app_name = "notifications"
urlpatterns = router.urls
