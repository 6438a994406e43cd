"""
Tests for the health check endpoint.
"""

from __future__ import annotations

import pytest
from django.db import DatabaseError


@pytest.mark.django_db
class TestHealthCheck:
    """Test /health/."""

    def test_healthy(self, client):
        """Should report database and cache connected."""
        response = client.get("/health/")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "database": "connected",
            "cache": "connected",
        }

    def test_database_down_returns_503(self, client, mocker):
        """Should return 503 when the database is unreachable."""
        connection = mocker.patch("core.views.connection")
        connection.cursor.side_effect = DatabaseError("down")

        response = client.get("/health/")

        assert response.status_code == 503
        assert response.json()["database"] == "disconnected"
