"""
Tests for liveness and readiness endpoints
"""
import pytest
from unittest.mock import MagicMock, patch
from httpx import AsyncClient

from parcel_server import main


class TestHealthEndpoints:

    @pytest.mark.integration
    async def test_root_is_plain_text(self, test_client: AsyncClient):
        response = await test_client.get("/")

        assert response.status_code == 200
        assert response.text == "Parcel server is running!"

    @pytest.mark.integration
    async def test_liveness(self, test_client: AsyncClient):
        response = await test_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.integration
    async def test_readiness_ok(self, test_client: AsyncClient):
        response = await test_client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["db"] == "ok"

    @pytest.mark.integration
    async def test_readiness_degraded_when_db_unreachable(self, test_client: AsyncClient):
        broken = MagicMock()
        broken.connect.side_effect = OSError("connection refused")
        with patch.object(main, "engine", broken):
            response = await test_client.get("/health/ready")

        assert response.status_code == 503
        assert response.json() == {"status": "degraded", "db": "error"}
