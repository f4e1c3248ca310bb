"""
Tests for the health check endpoint and the database probe behind it.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch


class TestHealthCheckFunctions:
    """Test the database probe."""

    @pytest.mark.asyncio
    async def test_check_db_connection_success(self):
        """Should return True when database is reachable."""
        from toolchat.db.session import check_db_connection

        mock_engine = MagicMock()
        mock_connection = AsyncMock()
        mock_engine.connect = MagicMock(return_value=mock_connection)
        mock_connection.__aenter__ = AsyncMock(return_value=mock_connection)
        mock_connection.__aexit__ = AsyncMock(return_value=None)
        mock_connection.execute = AsyncMock()

        with patch('toolchat.db.session.engine', mock_engine):
            result = await check_db_connection()

        assert result is True

    @pytest.mark.asyncio
    async def test_check_db_connection_failure(self):
        """Should return False when database is unreachable."""
        from toolchat.db.session import check_db_connection

        mock_engine = MagicMock()
        mock_engine.connect = MagicMock(side_effect=Exception("Connection refused"))

        with patch('toolchat.db.session.engine', mock_engine):
            result = await check_db_connection()

        assert result is False


class TestHealthEndpoint:
    """Test /health responses."""

    @pytest.mark.asyncio
    async def test_healthy(self, client):
        with patch('toolchat.main.check_db_connection', new_callable=AsyncMock, return_value=True):
            response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "toolchat-backend"
        assert data["checks"] == {"database": True}

    @pytest.mark.asyncio
    async def test_unhealthy_returns_503(self, client):
        with patch('toolchat.main.check_db_connection', new_callable=AsyncMock, return_value=False):
            response = await client.get("/api/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_security_headers(self, client):
        """Every response carries the security headers."""
        with patch('toolchat.main.check_db_connection', new_callable=AsyncMock, return_value=True):
            response = await client.get("/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client):
        """An incoming X-Request-ID is returned on the response."""
        with patch('toolchat.main.check_db_connection', new_callable=AsyncMock, return_value=True):
            response = await client.get("/health", headers={"X-Request-ID": "abc123"})

        assert response.headers["x-request-id"] == "abc123"
