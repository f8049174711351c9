"""
Unit Tests for the CLI entry point
"""
from io import StringIO

import pytest
from rich.console import Console
from unittest.mock import AsyncMock, MagicMock, patch

from lightworld.exceptions import NotAuthenticatedError
from lightworld.main import build_config, create_parser, main, run_command
from lightworld.recovery_prompt import ENTRY_POINTS


pytestmark = pytest.mark.usefixtures("clean_env")


@pytest.fixture
def console() -> Console:
    return Console(file=StringIO())


@pytest.fixture
def auth_manager():
    manager = MagicMock()
    manager.interactive_login = AsyncMock()
    manager.interactive_register = AsyncMock()
    manager.interactive_edit_profile = AsyncMock()
    with patch("lightworld.auth.get_auth_manager", return_value=manager):
        yield manager


class TestParser:
    """Test argument parsing"""

    def test_recovery_commands(self):
        parser = create_parser()

        assert parser.parse_args(["forgot-password"]).command == "forgot-password"
        assert parser.parse_args(["password-reset", "-e", "a@b.org"]).email == "a@b.org"

    def test_otp_requires_email(self):
        """Test the otp command refuses to run without --email"""
        with pytest.raises(SystemExit):
            create_parser().parse_args(["otp"])

    def test_global_flags(self):
        args = create_parser().parse_args(
            ["--server-url", "http://x/api", "--min-password-length", "6", "-v", "status"]
        )

        assert args.server_url == "http://x/api"
        assert args.min_password_length == 6
        assert args.verbose is True


class TestBuildConfig:
    """Test flags override loaded config"""

    def test_flags_win(self):
        args = create_parser().parse_args(["--server-url", "http://x/api", "--min-password-length", "6", "login"])

        config = build_config(args)

        assert config.api_base_url == "http://x/api"
        assert config.min_password_length == 6

    def test_defaults_without_flags(self):
        config = build_config(create_parser().parse_args(["login"]))

        assert config.min_password_length == 8
        assert config.verbose is False


class TestRunCommand:
    """Test subcommand dispatch"""

    @pytest.mark.asyncio
    async def test_login(self, config, console, auth_manager):
        args = create_parser().parse_args(["login", "-e", "a@b.org"])

        assert await run_command(args, config, console) == 0
        auth_manager.interactive_login.assert_awaited_once_with("a@b.org")

    @pytest.mark.asyncio
    async def test_whoami_shows_status(self, config, console, auth_manager):
        args = create_parser().parse_args(["whoami"])

        await run_command(args, config, console)

        auth_manager.show_status.assert_called_once_with()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("command", sorted(ENTRY_POINTS))
    async def test_recovery_commands_use_prompt(self, config, console, auth_manager, command):
        """Test each recovery command runs the prompt with its entry point"""
        args = create_parser().parse_args([command, "-e", "a@b.org"])
        with patch("lightworld.recovery_prompt.RecoveryPrompt") as prompt_class:
            prompt_class.return_value.run = AsyncMock(return_value=False)

            assert await run_command(args, config, console) == 1

        prompt_class.assert_called_once_with(config, ENTRY_POINTS[command], console, auth_manager)
        prompt_class.return_value.run.assert_awaited_once_with("a@b.org")


class TestMain:
    """Test process exit codes"""

    def run_main(self, argv, run_result=None, side_effect=None):
        with patch("sys.argv", ["lightworld", *argv]), \
                patch("lightworld.logging_config.setup_logging", return_value=MagicMock()), \
                patch("lightworld.main.run_command", new=AsyncMock(return_value=run_result, side_effect=side_effect)):
            with pytest.raises(SystemExit) as exc_info:
                main()
        return exc_info.value.code

    def test_no_command_prints_help(self, capsys):
        assert self.run_main([]) == 0
        assert "forgot-password" in capsys.readouterr().out

    def test_success(self):
        assert self.run_main(["status"], run_result=0) == 0

    def test_light_world_error_exits_1(self):
        assert self.run_main(["profile"], side_effect=NotAuthenticatedError()) == 1

    def test_light_world_error_is_logged_with_details(self):
        """Test the error code and details reach the log record"""
        logger = MagicMock()
        with patch("sys.argv", ["lightworld", "profile"]), \
                patch("lightworld.logging_config.setup_logging", return_value=logger), \
                patch("lightworld.main.run_command", new=AsyncMock(side_effect=NotAuthenticatedError())):
            with pytest.raises(SystemExit):
                main()

        error = logger.warning.call_args.kwargs["extra"]["error"]
        assert error["code"] == "NOT_AUTHENTICATED"
        assert error["message"] == "Authentication required. Run 'lightworld login' first."

    def test_unexpected_error_exits_1(self):
        assert self.run_main(["profile"], side_effect=RuntimeError("boom")) == 1

