"""
Tests for SmartOltAPIClient

Tests the async SmartOLT client with the HTTP layer mocked out.
"""

import pytest
from unittest.mock import AsyncMock, patch

from onu_map.api.errors import (
    InvalidCredentialsError,
    QuotaExceededError,
    UpstreamApplicationError,
    UpstreamTransportError,
)
from onu_map.api.rate_limiter import EndpointClass, RateLimiter
from onu_map.api.smartolt_client import (
    SmartOltAPIClient,
    SmartOltConnection,
    SmartOltOnuOperations,
    is_credential_message,
)
from onu_map.utils.config import RateLimitConfig, SmartOltConfig


@pytest.fixture
def smartolt_config():
    """Create a test SmartOLT config."""
    return SmartOltConfig(
        base_url="isp.smartolt.com/api/",
        api_key="test_token",
        timeout=5
    )


@pytest.fixture
def rate_limiter():
    """Rate limiter whose spacing waits return immediately."""
    return RateLimiter(
        RateLimitConfig(api_delay_ms=8000, gps_limit=3, details_limit=3),
        sleep=AsyncMock()
    )


@pytest.fixture
def connection(smartolt_config, rate_limiter):
    return SmartOltConnection(smartolt_config, rate_limiter)


class TestSmartOltConnection:
    """Tests for SmartOltConnection class."""

    def test_base_url_gets_https_prefix_and_no_trailing_slash(self, connection):
        assert connection.base_url == "https://isp.smartolt.com/api"

    def test_existing_scheme_is_preserved(self, rate_limiter):
        config = SmartOltConfig(base_url="http://olt.local/api")
        conn = SmartOltConnection(config, rate_limiter)
        assert conn.base_url == "http://olt.local/api"

    def test_headers_carry_token(self, connection):
        assert connection.headers["X-Token"] == "test_token"
        assert connection.headers["Accept"] == "application/json"

    def test_envelope_success_passes_through(self, connection):
        data = {"status": True, "response": []}
        assert connection._check_envelope("op", data) is data

    def test_envelope_failure_raises_application_error(self, connection):
        with pytest.raises(UpstreamApplicationError) as exc_info:
            connection._check_envelope("op", {"status": False, "error": "ONU not found"})
        assert not isinstance(exc_info.value, InvalidCredentialsError)
        assert "ONU not found" in str(exc_info.value)

    def test_envelope_token_failure_raises_credentials_error(self, connection):
        with pytest.raises(InvalidCredentialsError):
            connection._check_envelope("op", {"status": False, "error": "Invalid token"})

    def test_empty_body_raises_application_error(self, connection):
        with pytest.raises(UpstreamApplicationError):
            connection._check_envelope("op", None)

    @pytest.mark.asyncio
    async def test_close_handles_no_session(self, connection):
        connection.session = None
        await connection.close()  # Should not raise


class TestExecuteGet:
    """Gating behavior of execute_get_async."""

    @pytest.mark.asyncio
    async def test_successful_restricted_call_consumes_quota(self, connection, rate_limiter):
        with patch.object(connection, "_get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = {"status": True, "response": []}

            result = await connection.execute_get_async(
                "details", "/onu/get_all_onus_details", None, EndpointClass.DETAILS
            )

        assert result == {"status": True, "response": []}
        assert rate_limiter.remaining(EndpointClass.DETAILS) == 2

    @pytest.mark.asyncio
    async def test_normal_call_does_not_touch_quota(self, connection, rate_limiter):
        with patch.object(connection, "_get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = {"status": True, "response": []}
            await connection.execute_get_async("statuses", "/onu/get_onus_statuses")

        assert rate_limiter.remaining(EndpointClass.DETAILS) == 3
        assert rate_limiter.remaining(EndpointClass.GPS) == 3

    @pytest.mark.asyncio
    async def test_transport_failure_does_not_consume_quota(self, connection, rate_limiter):
        with patch.object(connection, "_get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = UpstreamTransportError("timed out")

            with pytest.raises(UpstreamTransportError):
                await connection.execute_get_async(
                    "gps", "/onu/get_all_onus_gps_coordinates", None, EndpointClass.GPS
                )

        assert rate_limiter.remaining(EndpointClass.GPS) == 3

    @pytest.mark.asyncio
    async def test_failure_envelope_does_not_consume_quota(self, connection, rate_limiter):
        with patch.object(connection, "_get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = {"status": False, "error": "Upstream busy"}

            with pytest.raises(UpstreamApplicationError):
                await connection.execute_get_async(
                    "gps", "/onu/get_all_onus_gps_coordinates", None, EndpointClass.GPS
                )

        assert rate_limiter.remaining(EndpointClass.GPS) == 3

    @pytest.mark.asyncio
    async def test_exhausted_quota_raises_before_request(self, connection, rate_limiter):
        for _ in range(3):
            rate_limiter.record_call(EndpointClass.GPS)

        with patch.object(connection, "_get", new_callable=AsyncMock) as mock_get:
            with pytest.raises(QuotaExceededError):
                await connection.execute_get_async(
                    "gps", "/onu/get_all_onus_gps_coordinates", None, EndpointClass.GPS
                )

            mock_get.assert_not_called()

    @pytest.mark.asyncio
    async def test_spacing_applies_between_calls(self, connection, rate_limiter):
        with patch.object(connection, "_get", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = {"status": True}
            await connection.execute_get_async("a", "/system/get_olts")
            await connection.execute_get_async("b", "/system/get_olts")

        rate_limiter._sleep.assert_awaited_once()


class TestSmartOltOnuOperations:
    """Endpoint paths and classes."""

    @pytest.fixture
    def onu_ops(self, connection):
        return SmartOltOnuOperations(connection)

    @pytest.mark.asyncio
    async def test_bulk_details_is_details_class(self, onu_ops):
        with patch.object(onu_ops.connection, "execute_get_async", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = {"status": True, "response": []}
            await onu_ops.get_all_onus_details({"olt_id": "1"})

        args = mock_get.call_args[0]
        assert args[1] == "/onu/get_all_onus_details"
        assert args[2] == {"olt_id": "1"}
        assert args[3] == EndpointClass.DETAILS

    @pytest.mark.asyncio
    async def test_gps_is_gps_class(self, onu_ops):
        with patch.object(onu_ops.connection, "execute_get_async", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = {"status": True, "onus": []}
            await onu_ops.get_all_onus_gps_coordinates()

        args = mock_get.call_args[0]
        assert args[1] == "/onu/get_all_onus_gps_coordinates"
        assert args[3] == EndpointClass.GPS

    @pytest.mark.asyncio
    async def test_single_onu_endpoints(self, onu_ops):
        with patch.object(onu_ops.connection, "execute_get_async", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = {"status": True}
            await onu_ops.get_onu_details("HWTC1")
            await onu_ops.get_onu_status("HWTC1")
            await onu_ops.get_onu_signal("HWTC1")

        endpoints = [call[0][1] for call in mock_get.call_args_list]
        assert endpoints == [
            "/onu/get_onu_details/HWTC1",
            "/onu/get_onu_status/HWTC1",
            "/onu/get_onu_signal/HWTC1"
        ]


class TestSmartOltAPIClient:
    """Facade and connection test."""

    @pytest.fixture
    def client(self, smartolt_config, rate_limiter):
        return SmartOltAPIClient(smartolt_config, rate_limiter)

    @pytest.mark.asyncio
    async def test_test_connection_success(self, client):
        with patch.object(client.system, "get_olts_list", new_callable=AsyncMock) as mock_olts:
            mock_olts.return_value = {"status": True, "response": [{"id": "1"}, {"id": "2"}]}
            result = await client.test_connection()

        assert result["success"] is True
        assert "2 OLTs" in result["message"]

    @pytest.mark.asyncio
    async def test_test_connection_invalid_key(self, client):
        with patch.object(client.system, "get_olts_list", new_callable=AsyncMock) as mock_olts:
            mock_olts.side_effect = InvalidCredentialsError("Invalid token")
            result = await client.test_connection()

        assert result["success"] is False
        assert result["error_kind"] == "invalid_credentials"

    @pytest.mark.asyncio
    async def test_test_connection_unreachable(self, client):
        with patch.object(client.system, "get_olts_list", new_callable=AsyncMock) as mock_olts:
            mock_olts.side_effect = UpstreamTransportError("connection refused")
            result = await client.test_connection()

        assert result["success"] is False
        assert result["error_kind"] == "transport"

    @pytest.mark.asyncio
    async def test_context_manager_closes_connection(self, client):
        with patch.object(client.connection, "close", new_callable=AsyncMock) as mock_close:
            async with client:
                pass
        mock_close.assert_awaited_once()


class TestCredentialMessages:

    def test_markers(self):
        assert is_credential_message("Invalid API key")
        assert is_credential_message("Token expired")
        assert not is_credential_message("ONU not found")
        assert not is_credential_message(None)
