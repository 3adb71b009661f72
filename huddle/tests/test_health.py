import pytest
from httpx import AsyncClient


class TestHealthCheck:

    @pytest.mark.asyncio
    async def test_health_check(self, async_client: AsyncClient):
        response = await async_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data
        assert data["features"]["scheduler"] is False


class TestAPIDocumentation:

    @pytest.mark.asyncio
    async def test_openapi_schema_available(self, async_client: AsyncClient):
        response = await async_client.get("/api/openapi.json")

        # Only served when DEBUG is on
        assert response.status_code in [200, 404]

    @pytest.mark.asyncio
    async def test_unknown_route(self, async_client: AsyncClient):
        response = await async_client.get("/api/does-not-exist")

        assert response.status_code == 404
