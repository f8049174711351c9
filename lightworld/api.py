"""
Light World REST API client

Thin async wrapper around the church backend's /auth endpoints.

Every call returns an ApiResult instead of raising: backend refusals
({"success": false, "message": ...}), non-2xx statuses, unreadable bodies and
network failures all come back as ApiResult(ok=False, message=...). Callers
never see a raw response body.

Usage:
    async with LightWorldClient(config.api_base_url) as client:
        result = await client.request_password_reset("user@example.com")
        if not result.ok:
            print(result.message)
"""

import time
import httpx
from dataclasses import dataclass, field
from typing import Optional, Dict, Any

from lightworld.logging_config import logger


CONNECT_ERROR_MESSAGE = "Cannot connect to server. Is the backend running?"


@dataclass
class ApiResult:
    """Outcome of one backend call"""
    ok: bool
    data: Dict[str, Any] = field(default_factory=dict)
    message: str = ""
    status_code: Optional[int] = None

    @classmethod
    def success(cls, data: Dict[str, Any], status_code: Optional[int] = None) -> "ApiResult":
        return cls(ok=True, data=data, message=data.get("message", ""), status_code=status_code)

    @classmethod
    def failure(cls, message: str, status_code: Optional[int] = None) -> "ApiResult":
        return cls(ok=False, message=message, status_code=status_code)


def parse_response(response: httpx.Response, fallback: str) -> ApiResult:
    """
    Turn an HTTP response into an ApiResult.

    Success needs both a 2xx status and a truthy "success" field. Failures
    carry the body's "message", or the fallback when there is none.
    """
    try:
        body = response.json()
    except ValueError:
        return ApiResult.failure(fallback, response.status_code)

    if not isinstance(body, dict):
        return ApiResult.failure(fallback, response.status_code)

    if response.is_success and body.get("success"):
        return ApiResult.success(body, response.status_code)

    return ApiResult.failure(body.get("message") or fallback, response.status_code)


class LightWorldClient:
    """
    Async client for the Light World backend.

    One httpx.AsyncClient is shared by all calls; close it with aclose() or
    use the client as an async context manager.
    """

    REQUEST_RESET_PATH = "/auth/request-password-reset"
    VERIFY_OTP_PATH = "/auth/verify-otp"
    RESET_PASSWORD_PATH = "/auth/reset-password"
    LOGIN_PATH = "/auth/login"
    REGISTER_PATH = "/auth/register"
    PROFILE_PATH = "/auth/profile"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "LightWorldClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        fallback: str,
        payload: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None
    ) -> ApiResult:
        headers = {"Authorization": f"Bearer {token}"} if token else None
        start = time.perf_counter()

        try:
            response = await self._client.request(method, path, json=payload, headers=headers)
        except httpx.ConnectError as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.log_request(method, path, None, duration_ms, error_type=type(e).__name__)
            return ApiResult.failure(CONNECT_ERROR_MESSAGE)
        except httpx.HTTPError as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.log_request(method, path, None, duration_ms, error_type=type(e).__name__)
            return ApiResult.failure(str(e) or fallback)

        duration_ms = (time.perf_counter() - start) * 1000
        logger.log_request(method, path, response.status_code, duration_ms)
        return parse_response(response, fallback)

    # ==================== Password Recovery ====================

    async def request_password_reset(self, email: str) -> ApiResult:
        """Ask the backend to email a one-time code"""
        return await self._request(
            "POST", self.REQUEST_RESET_PATH,
            "Failed to request password reset",
            {"email": email}
        )

    async def verify_otp(self, email: str, otp: str) -> ApiResult:
        return await self._request(
            "POST", self.VERIFY_OTP_PATH,
            "OTP verification failed",
            {"email": email, "otp": otp}
        )

    async def reset_password(self, email: str, password: str, confirm_password: str) -> ApiResult:
        return await self._request(
            "POST", self.RESET_PASSWORD_PATH,
            "Password reset failed",
            {"email": email, "password": password, "confirmPassword": confirm_password}
        )

    # ==================== Account ====================

    async def login(self, email: str, password: str) -> ApiResult:
        return await self._request(
            "POST", self.LOGIN_PATH,
            "Login failed",
            {"email": email, "password": password}
        )

    async def register(self, user_data: Dict[str, Any]) -> ApiResult:
        return await self._request("POST", self.REGISTER_PATH, "Registration failed", user_data)

    async def get_profile(self, token: str) -> ApiResult:
        return await self._request("GET", self.PROFILE_PATH, "Failed to fetch profile", token=token)

    async def update_profile(self, token: str, profile_data: Dict[str, Any]) -> ApiResult:
        return await self._request(
            "PUT", self.PROFILE_PATH,
            "Failed to update profile",
            profile_data,
            token=token
        )
