"""
Light World CLI Authentication Module
=====================================

Account commands:
  lightworld login        Interactive email/password login
  lightworld logout       Forget the stored login
  lightworld status       Show current user
  lightworld register     Create an account
  lightworld profile      Edit your profile

Flow:
1. Member registers (here or on the web portal)
2. Member runs: lightworld login
3. CLI stores the token in ~/.lightworld/credentials.json
4. Profile requests send the token as a Bearer header

Forgotten passwords are handled by lightworld.recovery_prompt, which hands
back to interactive_login() when the reset is done.
"""

import os
import json
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass, asdict
from datetime import datetime

from rich.console import Console
from rich.prompt import Prompt
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from lightworld.api import ApiResult, LightWorldClient
from lightworld.config import CLIConfig
from lightworld.exceptions import (
    AuthenticationError,
    ApiError,
    LightWorldError,
    NotAuthenticatedError,
    TransportError,
    ValidationError,
)
from lightworld.logging_config import logger, set_user_email
from lightworld.validation import (
    GENDERS,
    validate_email,
    validate_profile,
    validate_registration,
)


@dataclass
class UserCredentials:
    """Stored user credentials"""
    user_id: str
    email: str
    first_name: str
    last_name: str
    token: str
    role: str = "user"  # admin, head_of_department, member, user
    department: Optional[str] = None
    auth_provider: str = "local"
    whatsapp_number: str = ""
    phone_number: str = ""
    last_login: str = ""

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.email.split("@")[0]

    @classmethod
    def from_api(cls, user: Dict[str, Any], token: str) -> "UserCredentials":
        """Build credentials from the backend's user object"""
        return cls(
            user_id=str(user.get("id") or user.get("_id") or ""),
            email=user.get("email", ""),
            first_name=user.get("firstName", ""),
            last_name=user.get("lastName", ""),
            token=token,
            role=user.get("role") or "user",
            department=user.get("department"),
            auth_provider=user.get("authProvider") or "local",
            whatsapp_number=user.get("whatsappNumber") or "",
            phone_number=user.get("phoneNumber") or "",
            last_login=datetime.now().isoformat(),
        )


class CLIAuthManager:
    """
    Manages CLI authentication.

    Token is stored in ~/.lightworld/credentials.json
    """

    def __init__(self, config: CLIConfig, console: Optional[Console] = None):
        self.config = config
        self.console = console or Console()
        self.credentials: Optional[UserCredentials] = None
        self.credentials_file: Path = config.credentials_file

        # Load existing credentials if available
        self._load_credentials()

    def _client(self) -> LightWorldClient:
        return LightWorldClient(self.config.api_base_url, timeout=self.config.timeout)

    def _load_credentials(self) -> bool:
        """Load credentials from file"""
        if self.credentials_file.exists():
            try:
                with open(self.credentials_file, 'r') as f:
                    data = json.load(f)
                    self.credentials = UserCredentials(**data)
                    return True
            except (OSError, ValueError, TypeError) as e:
                logger.warning(f"Could not load credentials: {e}")
                self.console.print(f"[yellow]Warning: Could not load credentials: {e}[/yellow]")
        return False

    def _save_credentials(self):
        """Save credentials to file"""
        if not self.credentials:
            return
        with open(self.credentials_file, 'w') as f:
            json.dump(asdict(self.credentials), f, indent=2)
        # Secure the file (no-op on Windows)
        try:
            os.chmod(self.credentials_file, 0o600)
        except OSError:
            pass

    def _clear_credentials(self):
        """Clear stored credentials"""
        self.credentials = None
        if self.credentials_file.exists():
            self.credentials_file.unlink()

    def is_authenticated(self) -> bool:
        return bool(self.credentials and self.credentials.token)

    def require_auth(self) -> UserCredentials:
        if not self.is_authenticated():
            raise NotAuthenticatedError()
        return self.credentials

    # ==================== Login / Logout ====================

    async def login_with_credentials(self, email: str, password: str) -> UserCredentials:
        """Login using email and password"""
        email = (email or "").strip()
        if not email or not password:
            raise ValidationError("Please fill in all fields")
        error = validate_email(email)
        if error:
            raise ValidationError(error, field="email")

        async with self._client() as client:
            result = await client.login(email, password)

        token = result.data.get("token")
        if not result.ok or not isinstance(token, str) or not token:
            reason = result.message if not result.ok else "No token in login response"
            logger.log_auth_event("login", False, user_email=email, reason=reason)
            if result.status_code is None:
                raise TransportError(reason)
            raise AuthenticationError(reason)

        self.credentials = UserCredentials.from_api(result.data.get("user") or {"email": email}, token)
        self._save_credentials()
        set_user_email(self.credentials.email)
        logger.log_auth_event("login", True, user_email=email)
        return self.credentials

    async def interactive_login(self, email: Optional[str] = None) -> UserCredentials:
        """Interactive login flow"""
        self.console.print(Panel(
            "[bold cyan]Light World Mission - Login[/bold cyan]\n\n"
            "Login using your registered account.\n"
            "Forgot your password? Run [cyan]lightworld forgot-password[/cyan].",
            border_style="cyan"
        ))

        email = Prompt.ask("Email", default=email) if email else Prompt.ask("Email")
        password = Prompt.ask("Password", password=True)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=self.console,
            transient=True
        ) as progress:
            progress.add_task("Logging in...", total=None)
            credentials = await self.login_with_credentials(email, password)

        self.console.print("\n[green]✓ Login successful![/green]")
        self.console.print(f"Welcome, [bold]{credentials.name}[/bold]!")
        return credentials

    def logout(self):
        """Logout and clear credentials"""
        email = self.credentials.email if self.credentials else None
        self._clear_credentials()
        logger.log_auth_event("logout", True, user_email=email)
        self.console.print("[green]Logged out successfully[/green]")

    # ==================== Registration ====================

    async def register(self, user_data: Dict[str, str], confirm_password: str) -> Optional[UserCredentials]:
        """Create an account; returns stored credentials when the backend logs the user straight in"""
        error = validate_registration(user_data, confirm_password)
        if error:
            raise ValidationError(error)

        async with self._client() as client:
            result = await client.register(user_data)

        if not result.ok:
            logger.log_auth_event("register", False, user_email=user_data["email"], reason=result.message)
            raise _error_for(result)

        logger.log_auth_event("register", True, user_email=user_data["email"])
        token = result.data.get("token")
        if not isinstance(token, str) or not token:
            return None

        self.credentials = UserCredentials.from_api(result.data.get("user") or user_data, token)
        self._save_credentials()
        return self.credentials

    async def interactive_register(self) -> Optional[UserCredentials]:
        self.console.print(Panel(
            "[bold cyan]REGISTRATION FORM[/bold cyan]\n\n"
            "Fields marked * are required.",
            border_style="cyan"
        ))

        user_data = {
            "firstName": Prompt.ask("First Name *"),
            "lastName": Prompt.ask("Last Name *"),
            "email": Prompt.ask("Email Address *"),
            "gender": Prompt.ask("Gender *", choices=list(GENDERS)),
            "password": Prompt.ask("Password *", password=True),
        }
        confirm = Prompt.ask("Confirm Password *", password=True)
        user_data["whatsappNumber"] = Prompt.ask("WhatsApp Number *")
        user_data["phoneNumber"] = Prompt.ask("Phone Number (Optional)", default="")

        credentials = await self.register(user_data, confirm)
        self.console.print("\n[green]✓ Registration successful![/green]")
        if credentials is None:
            self.console.print("Run [cyan]lightworld login[/cyan] to sign in.")
        return credentials

    # ==================== Profile ====================

    async def fetch_profile(self) -> Dict[str, Any]:
        credentials = self.require_auth()
        async with self._client() as client:
            result = await client.get_profile(credentials.token)
        if not result.ok:
            raise _error_for(result)
        return result.data.get("user") or {}

    async def update_profile(self, profile_data: Dict[str, str]) -> UserCredentials:
        credentials = self.require_auth()
        error = validate_profile(profile_data)
        if error:
            raise ValidationError(error)

        async with self._client() as client:
            result = await client.update_profile(credentials.token, profile_data)
        if not result.ok:
            raise _error_for(result)

        user = result.data.get("user") or {}
        self.credentials = UserCredentials.from_api({**_credentials_to_user(credentials), **user}, credentials.token)
        self._save_credentials()
        logger.info("Profile updated", extra={"event_type": "profile_update"})
        return self.credentials

    async def interactive_edit_profile(self) -> UserCredentials:
        user = await self.fetch_profile()

        self.console.print(Panel("[bold cyan]EDIT PROFILE[/bold cyan]", border_style="cyan"))
        profile_data = {
            "firstName": Prompt.ask("First Name *", default=user.get("firstName", "")),
            "lastName": Prompt.ask("Last Name *", default=user.get("lastName", "")),
            "whatsappNumber": Prompt.ask("WhatsApp Number *", default=user.get("whatsappNumber", "")),
            "phoneNumber": Prompt.ask("Phone Number (Optional)", default=user.get("phoneNumber") or ""),
        }

        credentials = await self.update_profile(profile_data)
        self.console.print("\n[green]✓ Profile updated[/green]")
        self._show_user_panel()
        return credentials

    # ==================== Status ====================

    def show_status(self):
        """Show current authentication status"""
        if self.is_authenticated():
            self._show_user_panel()
        else:
            self.console.print(Panel(
                "[red]Not authenticated[/red]\n\n"
                "Please login using: [cyan]lightworld login[/cyan]\n"
                "Or create an account: [cyan]lightworld register[/cyan]",
                title="Authentication Status",
                border_style="red"
            ))

    def _show_user_panel(self):
        """Display user info panel"""
        if not self.credentials:
            return

        content_lines = [
            f"[bold]Name:[/bold] {self.credentials.name}",
            f"[bold]Email:[/bold] {self.credentials.email}",
            f"[bold]Role:[/bold] {self.credentials.role}",
            f"[bold]Department:[/bold] {self.credentials.department or '[dim]Not set[/dim]'}",
            f"[bold]WhatsApp:[/bold] {self.credentials.whatsapp_number or '[dim]Not set[/dim]'}",
        ]

        if self.credentials.last_login:
            try:
                dt = datetime.fromisoformat(self.credentials.last_login)
                content_lines.append("")
                content_lines.append(f"[dim]Last login: {dt.strftime('%Y-%m-%d %H:%M')}[/dim]")
            except ValueError:
                pass

        self.console.print(Panel(
            "\n".join(content_lines),
            title="[bold cyan]Account[/bold cyan]",
            border_style="cyan"
        ))


def _error_for(result: ApiResult) -> LightWorldError:
    """No status code means the request never got an answer"""
    if result.status_code is None:
        return TransportError(result.message)
    return ApiError(result.message, status_code=result.status_code)


def _credentials_to_user(credentials: UserCredentials) -> Dict[str, Any]:
    """Stored credentials in the backend's field names"""
    return {
        "id": credentials.user_id,
        "email": credentials.email,
        "firstName": credentials.first_name,
        "lastName": credentials.last_name,
        "role": credentials.role,
        "department": credentials.department,
        "authProvider": credentials.auth_provider,
        "whatsappNumber": credentials.whatsapp_number,
        "phoneNumber": credentials.phone_number,
    }


# Singleton instance
_auth_manager: Optional[CLIAuthManager] = None


def get_auth_manager(config: CLIConfig) -> CLIAuthManager:
    """Get or create auth manager singleton"""
    global _auth_manager
    if _auth_manager is None:
        _auth_manager = CLIAuthManager(config)
    return _auth_manager
