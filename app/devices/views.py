"""
Views for the device API.

Endpoints:
    POST   /api/v1/devices/                      - Register a device
    GET    /api/v1/devices/                      - List the caller's devices
    PATCH  /api/v1/devices/{device_id}/          - Update device name/version/locale
    DELETE /api/v1/devices/{device_id}/          - Remove a device
    POST   /api/v1/devices/{device_id}/ping/     - Record client activity
    POST   /api/v1/devices/unregister-all/       - Remove every device of the caller
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.exceptions import BaseApplicationError
from core.helpers import user_identifier
from devices.serializers import (
    DeviceRegistrationResponseSerializer,
    DeviceRegistrationSerializer,
    DeviceSerializer,
    DeviceUpdateSerializer,
    RemovedCountSerializer,
)
from notifications.container import get_container


class DeviceViewSet(viewsets.ViewSet):
    """
    Push device management for the authenticated user.

    Users only ever see and modify their own devices; the owner is always
    taken from the authenticated request.
    """

    permission_classes = [IsAuthenticated]
    lookup_field = "device_id"
    lookup_value_regex = "[^/]+"

    @property
    def registry(self):
        return get_container().registry

    @extend_schema(
        operation_id="list_devices",
        summary="List devices",
        description="List push devices registered by the authenticated user.",
        responses={200: DeviceSerializer(many=True)},
        tags=["Devices"],
    )
    def list(self, request):
        devices = self.registry.list_devices(user_identifier(request.user))
        return Response(DeviceSerializer(devices, many=True).data)

    @extend_schema(
        operation_id="register_device",
        summary="Register device",
        description=(
            "Register an Expo token or Web Push subscription. Registering an "
            "existing device id overwrites it and marks it active."
        ),
        request=DeviceRegistrationSerializer,
        responses={
            201: DeviceRegistrationResponseSerializer,
            400: OpenApiResponse(description="Invalid token or subscription"),
            503: OpenApiResponse(description="Device registry unavailable"),
        },
        tags=["Devices"],
    )
    def create(self, request):
        serializer = DeviceRegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            device_id = self.registry.register(
                user_identifier(request.user),
                data["platform"],
                serializer.push_target(),
                device_info=serializer.device_info(),
                device_id=data.get("device_id"),
            )
        except BaseApplicationError as e:
            return Response(e.to_dict(), status=e.http_status)

        response = DeviceRegistrationResponseSerializer(
            {
                "device_id": device_id,
                "platform": data["platform"],
                "device_name": data.get("device_name", ""),
            }
        )
        return Response(response.data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="update_device",
        summary="Update device",
        description="Update device_name, app_version, language or timezone.",
        request=DeviceUpdateSerializer,
        responses={
            200: DeviceSerializer,
            400: OpenApiResponse(description="No updatable fields supplied"),
            404: OpenApiResponse(description="Device not found"),
        },
        tags=["Devices"],
    )
    def partial_update(self, request, device_id=None):
        serializer = DeviceUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            device = self.registry.update_device(
                user_identifier(request.user), device_id, serializer.validated_data
            )
        except BaseApplicationError as e:
            return Response(e.to_dict(), status=e.http_status)

        return Response(DeviceSerializer(device).data)

    @extend_schema(
        operation_id="remove_device",
        summary="Remove device",
        responses={
            204: None,
            404: OpenApiResponse(description="Device not found"),
        },
        tags=["Devices"],
    )
    def destroy(self, request, device_id=None):
        if not self.registry.remove(user_identifier(request.user), device_id):
            return Response(
                {"detail": "Not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="ping_device",
        summary="Record device activity",
        description="Refresh the device's activity time so it is not swept as stale.",
        request=None,
        responses={
            204: None,
            404: OpenApiResponse(description="Device not found"),
        },
        tags=["Devices"],
    )
    @action(detail=True, methods=["post"])
    def ping(self, request, device_id=None):
        if not self.registry.touch(user_identifier(request.user), device_id):
            return Response(
                {"detail": "Not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="unregister_all_devices",
        summary="Unregister all devices",
        request=None,
        responses={200: RemovedCountSerializer},
        tags=["Devices"],
    )
    @action(detail=False, methods=["post"], url_path="unregister-all")
    def unregister_all(self, request):
        removed = self.registry.remove_all(user_identifier(request.user))
        return Response(RemovedCountSerializer({"removed_count": removed}).data)
