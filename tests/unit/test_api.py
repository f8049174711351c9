"""
Unit Tests for the Light World API client
Tests for: response parsing, endpoint payloads, network failures
"""
import json

import httpx
import pytest
import pytest_asyncio
import respx
from httpx import Response

from lightworld.api import ApiResult, CONNECT_ERROR_MESSAGE, LightWorldClient, parse_response


API_URL = "http://testserver/api"


@pytest_asyncio.fixture
async def client():
    async with LightWorldClient(API_URL, timeout=5) as api:
        yield api


def make_response(status_code: int, **kwargs) -> Response:
    return Response(status_code, request=httpx.Request("POST", f"{API_URL}/auth/x"), **kwargs)


class TestParseResponse:
    """Test turning HTTP responses into ApiResults"""

    def test_success(self):
        """Test 2xx with success=true is ok"""
        result = parse_response(make_response(200, json={"success": True, "message": "Code sent"}), "fallback")

        assert result.ok is True
        assert result.message == "Code sent"
        assert result.status_code == 200

    def test_success_flag_false(self):
        """Test 2xx with success=false carries the body message"""
        result = parse_response(make_response(200, json={"success": False, "message": "Invalid OTP"}), "fallback")

        assert result.ok is False
        assert result.message == "Invalid OTP"

    def test_missing_success_flag(self):
        """Test 2xx without a success field is a failure"""
        result = parse_response(make_response(200, json={"message": "ok?"}), "fallback")

        assert result.ok is False

    def test_error_status_with_success_true(self):
        """Test a 4xx status fails even if the body claims success"""
        result = parse_response(make_response(400, json={"success": True, "message": "odd"}), "fallback")

        assert result.ok is False
        assert result.status_code == 400

    def test_error_without_message_uses_fallback(self):
        """Test the fallback text is used when the body has no message"""
        result = parse_response(make_response(500, json={"success": False}), "Password reset failed")

        assert result.message == "Password reset failed"

    def test_non_json_body(self):
        """Test an HTML error page becomes the fallback message"""
        result = parse_response(make_response(502, text="<html>Bad Gateway</html>"), "OTP verification failed")

        assert result.ok is False
        assert result.message == "OTP verification failed"

    def test_json_list_body(self):
        """Test a non-object JSON body is a failure"""
        result = parse_response(make_response(200, json=[1, 2]), "fallback")

        assert result == ApiResult.failure("fallback", 200)


class TestRecoveryEndpoints:
    """Test the three password recovery calls"""

    @pytest.mark.asyncio
    async def test_request_password_reset(self, client):
        """Test the email is posted to request-password-reset"""
        with respx.mock(base_url=API_URL) as router:
            route = router.post("/auth/request-password-reset").mock(
                return_value=Response(200, json={"success": True, "message": "OTP sent"})
            )

            result = await client.request_password_reset("user@example.com")

        assert result.ok is True
        assert route.call_count == 1
        assert json.loads(route.calls.last.request.content) == {"email": "user@example.com"}

    @pytest.mark.asyncio
    async def test_verify_otp(self, client):
        """Test email and code are posted to verify-otp"""
        with respx.mock(base_url=API_URL) as router:
            route = router.post("/auth/verify-otp").mock(
                return_value=Response(400, json={"success": False, "message": "Invalid or expired OTP"})
            )

            result = await client.verify_otp("user@example.com", "123456")

        assert result.ok is False
        assert result.message == "Invalid or expired OTP"
        assert json.loads(route.calls.last.request.content) == {
            "email": "user@example.com",
            "otp": "123456",
        }

    @pytest.mark.asyncio
    async def test_reset_password_payload(self, client):
        """Test the confirmation is sent as confirmPassword"""
        with respx.mock(base_url=API_URL) as router:
            route = router.post("/auth/reset-password").mock(
                return_value=Response(200, json={"success": True})
            )

            result = await client.reset_password("user@example.com", "newpass12", "newpass12")

        assert result.ok is True
        assert json.loads(route.calls.last.request.content) == {
            "email": "user@example.com",
            "password": "newpass12",
            "confirmPassword": "newpass12",
        }

    @pytest.mark.asyncio
    async def test_reset_password_fallback(self, client):
        """Test an empty error body falls back to the endpoint message"""
        with respx.mock(base_url=API_URL) as router:
            router.post("/auth/reset-password").mock(return_value=Response(500, text=""))

            result = await client.reset_password("user@example.com", "newpass12", "newpass12")

        assert result.message == "Password reset failed"


class TestAccountEndpoints:
    """Test login, register and profile calls"""

    @pytest.mark.asyncio
    async def test_login(self, client):
        """Test login returns the token and user"""
        body = {"success": True, "token": "jwt-token", "user": {"id": "1", "email": "a@b.org"}}
        with respx.mock(base_url=API_URL) as router:
            router.post("/auth/login").mock(return_value=Response(200, json=body))

            result = await client.login("a@b.org", "secret123")

        assert result.ok is True
        assert result.data["token"] == "jwt-token"

    @pytest.mark.asyncio
    async def test_profile_sends_bearer_token(self, client):
        """Test profile calls carry the Authorization header"""
        with respx.mock(base_url=API_URL) as router:
            route = router.get("/auth/profile").mock(
                return_value=Response(200, json={"success": True, "user": {}})
            )

            await client.get_profile("jwt-token")

        assert route.calls.last.request.headers["Authorization"] == "Bearer jwt-token"

    @pytest.mark.asyncio
    async def test_update_profile_uses_put(self, client):
        """Test profile updates are sent with PUT"""
        with respx.mock(base_url=API_URL) as router:
            route = router.put("/auth/profile").mock(
                return_value=Response(200, json={"success": True, "user": {"firstName": "Ada"}})
            )

            result = await client.update_profile("jwt-token", {"firstName": "Ada"})

        assert result.ok is True
        assert json.loads(route.calls.last.request.content) == {"firstName": "Ada"}


class TestNetworkFailures:
    """Test transport errors never escape the client"""

    @pytest.mark.asyncio
    async def test_connect_error(self, client):
        """Test an unreachable backend gives the connection message"""
        with respx.mock(base_url=API_URL) as router:
            router.post("/auth/request-password-reset").mock(side_effect=httpx.ConnectError("refused"))

            result = await client.request_password_reset("user@example.com")

        assert result.ok is False
        assert result.message == CONNECT_ERROR_MESSAGE
        assert result.status_code is None

    @pytest.mark.asyncio
    async def test_timeout(self, client):
        """Test a timeout is reported with its own text"""
        with respx.mock(base_url=API_URL) as router:
            router.post("/auth/verify-otp").mock(side_effect=httpx.ReadTimeout("timed out"))

            result = await client.verify_otp("user@example.com", "123456")

        assert result.ok is False
        assert result.message == "timed out"
