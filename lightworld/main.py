#!/usr/bin/env python3
"""
Light World CLI - Main Entry Point

Usage:
    lightworld login                    # Login to your account
    lightworld forgot-password          # Reset a forgotten password
    lightworld otp --email you@x.org    # Enter a code you already received
    lightworld --help                   # Show help
"""

import argparse
import asyncio
import sys

from lightworld import __version__
from lightworld.config import CLIConfig, DEFAULT_API_URL


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI"""
    parser = argparse.ArgumentParser(
        prog="lightworld",
        description="Light World Mission - member account tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  lightworld login                             Login to your account
  lightworld status                            Check login status
  lightworld register                          Create an account
  lightworld profile                           Edit your profile
  lightworld forgot-password                   Reset a forgotten password
  lightworld password-reset -e you@church.org  Same, with the email filled in
  lightworld otp -e you@church.org             Enter a code you already received

Password recovery:
  A 6-digit code is emailed to you. It expires after 2 minutes; once it
  expires you can ask for a new one. After the password is changed the
  CLI takes you straight to login.
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    login_parser = subparsers.add_parser("login", help="Login to Light World")
    login_parser.add_argument("--email", "-e", help="Email to pre-fill")

    subparsers.add_parser("logout", help="Logout from Light World")
    subparsers.add_parser("status", help="Show authentication status")
    subparsers.add_parser("whoami", help="Show current user info")
    subparsers.add_parser("register", help="Create an account")
    subparsers.add_parser("profile", help="Edit your profile")

    forgot_parser = subparsers.add_parser("forgot-password", help="Reset a forgotten password")
    forgot_parser.add_argument("--email", "-e", help="Account email (skips the email prompt)")

    reset_parser = subparsers.add_parser("password-reset", help="Reset your password with an emailed code")
    reset_parser.add_argument("--email", "-e", help="Account email (skips the email prompt)")

    otp_parser = subparsers.add_parser("otp", help="Verify a code you already received")
    otp_parser.add_argument("--email", "-e", required=True, help="Email the code was sent to")

    parser.add_argument(
        "--server-url",
        type=str,
        default=None,
        help=f"Backend API URL (default: {DEFAULT_API_URL})"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to config file"
    )

    parser.add_argument(
        "--min-password-length",
        type=int,
        default=None,
        help="Minimum length for a new password (default: 8)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def build_config(args: argparse.Namespace) -> CLIConfig:
    """Defaults < config.json < .env/env vars < --config file < flags"""
    config = CLIConfig.load_default()

    if args.config:
        config.load_from_file(args.config)
    if args.server_url:
        config.api_base_url = args.server_url
    if args.min_password_length is not None:
        config.min_password_length = args.min_password_length
    if args.verbose:
        config.verbose = True

    return config


async def run_command(args: argparse.Namespace, config: CLIConfig, console) -> int:
    """Dispatch one subcommand; returns the process exit code"""
    from lightworld.auth import get_auth_manager
    from lightworld.recovery_prompt import ENTRY_POINTS, RecoveryPrompt

    auth_manager = get_auth_manager(config)

    if args.command in ENTRY_POINTS:
        prompt = RecoveryPrompt(config, ENTRY_POINTS[args.command], console, auth_manager)
        return 0 if await prompt.run(args.email) else 1

    if args.command == "login":
        await auth_manager.interactive_login(args.email)
    elif args.command == "logout":
        auth_manager.logout()
    elif args.command in ("status", "whoami"):
        auth_manager.show_status()
    elif args.command == "register":
        await auth_manager.interactive_register()
    elif args.command == "profile":
        await auth_manager.interactive_edit_profile()
    return 0


def main():
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(0)

    from rich.console import Console
    from lightworld.exceptions import LightWorldError
    from lightworld.logging_config import setup_logging

    console = Console()
    config = build_config(args)
    logger = setup_logging(config)

    try:
        exit_code = asyncio.run(run_command(args, config, console))
    except KeyboardInterrupt:
        console.print("\n\nGoodbye! 👋")
        sys.exit(0)
    except LightWorldError as e:
        logger.warning(f"{args.command} failed: {e.code}: {e.message}", extra={"error": e.to_dict()})
        console.print(f"\n[red]✗ {e.message}[/red]")
        sys.exit(1)
    except Exception as e:
        logger.log_error_with_context(e, context=args.command)
        if args.verbose:
            console.print_exception()
        else:
            console.print(f"\n[red]❌ Error: {e}[/red]")
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
