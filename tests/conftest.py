"""
Light World CLI - Test Configuration and Fixtures
"""
import os
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from faker import Faker

from lightworld.api import ApiResult
from lightworld.config import CLIConfig
from lightworld.recovery import RecoveryFlow, RecoveryPolicy

fake = Faker()

API_URL = "http://testserver/api"


ENV_VARS = (
    "LIGHTWORLD_API_URL",
    "LIGHTWORLD_TIMEOUT",
    "LIGHTWORLD_VERBOSE",
    "LIGHTWORLD_LOG_FORMAT",
    "LIGHTWORLD_LOG_LEVEL",
    "LIGHTWORLD_MIN_PASSWORD_LENGTH",
    "LIGHTWORLD_OTP_TTL",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No real env vars or .env file leak into config loading"""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    yield
    # load_dotenv writes straight to os.environ
    for name in ENV_VARS:
        os.environ.pop(name, None)


@pytest.fixture
def config(tmp_path) -> CLIConfig:
    """Config isolated in a temporary home directory"""
    return CLIConfig(api_base_url=API_URL, config_dir=str(tmp_path / ".lightworld"))


@pytest.fixture
def endpoints():
    """Recovery endpoints that all succeed"""
    return {
        "request_reset": AsyncMock(return_value=ApiResult.success({"success": True, "message": "Code sent"})),
        "verify_otp": AsyncMock(return_value=ApiResult.success({"success": True})),
        "reset_password": AsyncMock(return_value=ApiResult.success({"success": True})),
    }


@pytest.fixture
def fast_policy() -> RecoveryPolicy:
    """Default rules with timers short enough for tests"""
    return RecoveryPolicy(tick_interval=0.01, redirect_delay=0.02)


@pytest.fixture
def on_complete() -> MagicMock:
    return MagicMock()


@pytest_asyncio.fixture
async def flow(endpoints, fast_policy, on_complete):
    """Recovery flow wired to mocked endpoints, closed after the test"""
    recovery = RecoveryFlow(
        endpoints["request_reset"],
        endpoints["verify_otp"],
        endpoints["reset_password"],
        on_complete=on_complete,
        policy=fast_policy,
    )
    yield recovery
    await recovery.close()


@pytest.fixture
def test_email() -> str:
    return fake.email()


@pytest.fixture
def test_user_data() -> dict:
    """Backend user object"""
    return {
        "id": fake.uuid4(),
        "firstName": fake.first_name(),
        "lastName": fake.last_name(),
        "email": fake.email(),
        "whatsappNumber": "+2348012345678",
        "phoneNumber": "",
        "authProvider": "local",
        "role": "member",
        "department": "media",
    }
