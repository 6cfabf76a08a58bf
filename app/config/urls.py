"""
URL configuration for the notification service.

URL Structure:
    /                                  - ReDoc API documentation
    /admin/                            - Django admin interface
    /health/                           - Health check endpoint (load balancers, Docker)
    /schema/                           - OpenAPI schema (YAML)
    /api/v1/devices/                   - Push device registry
        {device_id}/                   - Update (PATCH) / remove (DELETE)
        {device_id}/ping/              - Activity ping
        unregister-all/                - Remove all of the caller's devices
    /api/v1/notifications/             - Feed (GET) / create (POST, staff)
        {id}/                          - One feed entry (GET) / hide (DELETE)
        {id}/read/                     - Mark read
        {id}/delivery-status/          - Per-recipient status (staff)
        {id}/analytics/                - Delivery/read rates (staff)
        unread-count/                  - Unread badge count
        read-all/                      - Mark everything read
        delete-all/                    - Hide everything
        stats/                         - Caller's reading statistics

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Push devices
    path("devices/", include("devices.urls")),
    # Notifications
    path("notifications/", include("notifications.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Notification Service Admin"
admin.site.site_title = "Notification Service"
admin.site.index_title = "Devices and notifications"
