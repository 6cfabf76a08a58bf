"""
Test configuration and fixtures for device tests.

Usage:
    def test_example(user, authenticated_client):
        response = authenticated_client.get("/api/v1/devices/")
        assert response.status_code == 200
"""

from datetime import timedelta

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from core.tests.factories import UserFactory
from devices.registry import DeviceRegistry


@pytest.fixture
def registry():
    return DeviceRegistry(stale_after=timedelta(days=30))


@pytest.fixture
def user(db):
    return UserFactory(username="alice")


@pytest.fixture
def other_user(db):
    return UserFactory(username="bob")


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def authenticated_client(user):
    """API client authenticated with a JWT for ``user``."""
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client
