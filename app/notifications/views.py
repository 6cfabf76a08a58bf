"""
Views for notification API.

Endpoints:
    POST   /api/v1/notifications/                        - Create (staff)
    GET    /api/v1/notifications/                        - Feed page + unread count
    GET    /api/v1/notifications/{id}/                   - One feed entry
    DELETE /api/v1/notifications/{id}/                   - Hide from feed
    GET    /api/v1/notifications/unread-count/           - Unread count
    POST   /api/v1/notifications/{id}/read/              - Mark read
    POST   /api/v1/notifications/read-all/               - Mark all read
    POST   /api/v1/notifications/delete-all/             - Hide all
    GET    /api/v1/notifications/stats/                  - Caller's reading stats
    GET    /api/v1/notifications/{id}/delivery-status/   - Per-recipient status (staff)
    GET    /api/v1/notifications/{id}/analytics/         - Delivery/read rates (staff)

Caching:
    Reads go through FeedCache. Every mutation invalidates the caller's
    cache before the response is returned.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response

from core.exceptions import BaseApplicationError
from core.helpers import parse_positive_int, user_identifier
from notifications.container import get_container
from notifications.serializers import (
    CreatedNotificationSerializer,
    DeleteAllResponseSerializer,
    DeliveryStatusResponseSerializer,
    FeedResponseSerializer,
    MarkAllReadResponseSerializer,
    NotificationAnalyticsSerializer,
    NotificationCreateSerializer,
    NotificationFeedItemSerializer,
    UnreadCountSerializer,
    UserStatsQuerySerializer,
    UserStatsSerializer,
)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

STAFF_ACTIONS = {"create", "delivery_status", "analytics"}


def error_response(e: BaseApplicationError) -> Response:
    return Response(e.to_dict(), status=e.http_status)


class NotificationViewSet(viewsets.ViewSet):
    """
    Notification feed and read state for the authenticated user.

    Creation and delivery inspection are restricted to staff.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = "[^/.]+"

    def get_permissions(self):
        if self.action in STAFF_ACTIONS:
            return [IsAuthenticated(), IsAdminUser()]
        return super().get_permissions()

    @property
    def container(self):
        return get_container()

    def _unread_count(self, user_id: str) -> int:
        return self.container.cache.get_or_set(
            "unread", user_id, None, lambda: self.container.tracker.unread_count(user_id)
        )

    @extend_schema(
        operation_id="create_notification",
        summary="Create notification",
        description=(
            "Persist a notification and schedule push delivery. Returns as soon "
            "as the notification is stored; delivery results are available "
            "through the delivery-status endpoint."
        ),
        request=NotificationCreateSerializer,
        responses={
            201: CreatedNotificationSerializer,
            400: OpenApiResponse(description="Invalid payload"),
            503: OpenApiResponse(description="Notification store unavailable"),
        },
        tags=["Notifications - Delivery"],
    )
    def create(self, request):
        payload = request.data if isinstance(request.data, dict) else request.data.dict()
        try:
            created = self.container.orchestrator.create_notification(
                payload, created_by=user_identifier(request.user)
            )
        except BaseApplicationError as e:
            return error_response(e)

        serializer = CreatedNotificationSerializer(
            {"notification_id": created.notification_id, "recipients": created.recipients}
        )
        return Response(serializer.data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="list_notifications",
        summary="List notifications",
        description="Paginated feed of the caller's notifications, newest first.",
        parameters=[
            OpenApiParameter(name="page", type=int, required=False),
            OpenApiParameter(name="page_size", type=int, required=False),
        ],
        responses={200: FeedResponseSerializer},
        tags=["Notifications - Inbox"],
    )
    def list(self, request):
        user_id = user_identifier(request.user)
        page = parse_positive_int(request.query_params.get("page"), default=1)
        page_size = parse_positive_int(
            request.query_params.get("page_size"),
            default=DEFAULT_PAGE_SIZE,
            maximum=MAX_PAGE_SIZE,
        )
        params = {"page": page, "page_size": page_size}

        def load_feed():
            result = self.container.tracker.feed(user_id, page, page_size)
            return {
                "results": NotificationFeedItemSerializer(result["results"], many=True).data,
                "pagination": result["pagination"],
            }

        feed = self.container.cache.get_or_set("notifications", user_id, params, load_feed)

        return Response({**feed, "unread_count": self._unread_count(user_id)})

    @extend_schema(
        operation_id="get_notification",
        summary="Get notification",
        responses={
            200: NotificationFeedItemSerializer,
            404: OpenApiResponse(description="Notification not found"),
        },
        tags=["Notifications - Inbox"],
    )
    def retrieve(self, request, pk=None):
        user_id = user_identifier(request.user)
        def load_item():
            record = self.container.tracker.get_record(pk, user_id)
            return NotificationFeedItemSerializer(record).data

        try:
            item = self.container.cache.get_or_set("detail", user_id, {"id": pk}, load_item)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(item)

    @extend_schema(
        operation_id="get_unread_notification_count",
        summary="Get unread notification count",
        description="Get the count of unread notifications for badge display.",
        responses={200: UnreadCountSerializer},
        tags=["Notifications - Inbox"],
    )
    @action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request):
        count = self._unread_count(user_identifier(request.user))
        return Response(UnreadCountSerializer({"unread_count": count}).data)

    @extend_schema(
        operation_id="mark_notification_read",
        summary="Mark notification as read",
        description=(
            "Mark a single notification as read. "
            "This operation is idempotent - already-read notifications return success."
        ),
        request=None,
        responses={
            200: NotificationFeedItemSerializer,
            404: OpenApiResponse(description="Notification not found"),
        },
        tags=["Notifications - Inbox"],
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        user_id = user_identifier(request.user)
        try:
            record = self.container.tracker.mark_read(pk, user_id)
        except BaseApplicationError as e:
            return error_response(e)
        finally:
            self.container.cache.invalidate(user_id)
        return Response(NotificationFeedItemSerializer(record).data)

    @extend_schema(
        operation_id="mark_all_notifications_read",
        summary="Mark all notifications as read",
        description="Mark all unread notifications for the authenticated user as read.",
        request=None,
        responses={200: MarkAllReadResponseSerializer},
        tags=["Notifications - Inbox"],
    )
    @action(detail=False, methods=["post"], url_path="read-all")
    def read_all(self, request):
        user_id = user_identifier(request.user)
        count = self.container.tracker.mark_all_read(user_id)
        self.container.cache.invalidate(user_id)
        return Response(MarkAllReadResponseSerializer({"marked_count": count}).data)

    @extend_schema(
        operation_id="delete_notification",
        summary="Delete notification",
        description="Hide a notification from the caller's feed.",
        responses={
            204: None,
            404: OpenApiResponse(description="Notification not found"),
        },
        tags=["Notifications - Inbox"],
    )
    def destroy(self, request, pk=None):
        user_id = user_identifier(request.user)
        try:
            self.container.tracker.soft_delete(pk, user_id)
        except BaseApplicationError as e:
            return error_response(e)
        finally:
            self.container.cache.invalidate(user_id)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="delete_all_notifications",
        summary="Delete all notifications",
        request=None,
        responses={200: DeleteAllResponseSerializer},
        tags=["Notifications - Inbox"],
    )
    @action(detail=False, methods=["post"], url_path="delete-all")
    def delete_all(self, request):
        user_id = user_identifier(request.user)
        count = self.container.tracker.soft_delete_all(user_id)
        self.container.cache.invalidate(user_id)
        return Response(DeleteAllResponseSerializer({"deleted_count": count}).data)

    @extend_schema(
        operation_id="get_notification_stats",
        summary="Reading statistics",
        parameters=[UserStatsQuerySerializer],
        responses={200: UserStatsSerializer},
        tags=["Notifications - Inbox"],
    )
    @action(detail=False, methods=["get"])
    def stats(self, request):
        query = UserStatsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        start = query.validated_data.get("start_date")
        end = query.validated_data.get("end_date")
        user_id = user_identifier(request.user)

        params = {
            "start": start.isoformat() if start else "",
            "end": end.isoformat() if end else "",
        }
        stats = self.container.cache.get_or_set(
            "analytics",
            user_id,
            params,
            lambda: UserStatsSerializer(
                self.container.tracker.user_stats(user_id, start, end)
            ).data,
        )
        return Response(stats)

    @extend_schema(
        operation_id="get_delivery_status",
        summary="Delivery status",
        description="Per-recipient delivery and read state of a notification.",
        responses={
            200: DeliveryStatusResponseSerializer,
            404: OpenApiResponse(description="Notification not found"),
        },
        tags=["Notifications - Delivery"],
    )
    @action(detail=True, methods=["get"], url_path="delivery-status")
    def delivery_status(self, request, pk=None):
        try:
            recipients = self.container.tracker.delivery_status(pk)
        except BaseApplicationError as e:
            return error_response(e)
        serializer = DeliveryStatusResponseSerializer(
            {"notification_id": pk, "recipients": recipients}
        )
        return Response(serializer.data)

    @extend_schema(
        operation_id="get_notification_analytics",
        summary="Notification analytics",
        responses={
            200: NotificationAnalyticsSerializer,
            404: OpenApiResponse(description="Notification not found"),
        },
        tags=["Notifications - Delivery"],
    )
    @action(detail=True, methods=["get"])
    def analytics(self, request, pk=None):
        try:
            analytics = self.container.tracker.notification_analytics(pk)
        except BaseApplicationError as e:
            return error_response(e)
        return Response(NotificationAnalyticsSerializer(analytics).data)
