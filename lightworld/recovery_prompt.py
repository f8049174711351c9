"""
Password recovery prompts

Terminal front end for lightworld.recovery.RecoveryFlow. Three commands
share the same controller and differ only in where they start and what
"go back" allows:

  lightworld forgot-password          email -> code -> new password
  lightworld password-reset           same, "go back" only while entering the code
  lightworld otp --email E            code already sent, start at code entry

While the code is being entered the bottom toolbar shows the countdown,
refreshed every second.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from lightworld.api import LightWorldClient
from lightworld.auth import CLIAuthManager, get_auth_manager
from lightworld.config import CLIConfig
from lightworld.exceptions import LightWorldError
from lightworld.logging_config import logger
from lightworld.recovery import RecoveryFlow, RecoveryPolicy, RecoverySession, Stage


RESEND_COMMANDS = ("r", ":resend")
BACK_COMMANDS = ("b", ":back")


@dataclass(frozen=True)
class RecoveryEntry:
    """One way into the recovery flow"""
    command: str
    title: str
    start: Stage
    allow_back_from: FrozenSet[Stage]
    redirect_delay: float


ENTRY_POINTS = {
    "forgot-password": RecoveryEntry(
        command="forgot-password",
        title="FORGOT PASSWORD",
        start=Stage.EMAIL,
        allow_back_from=frozenset({Stage.OTP, Stage.NEW_PASSWORD}),
        redirect_delay=2.0,
    ),
    "password-reset": RecoveryEntry(
        command="password-reset",
        title="RESET PASSWORD",
        start=Stage.EMAIL,
        allow_back_from=frozenset({Stage.OTP}),
        redirect_delay=3.0,
    ),
    "otp": RecoveryEntry(
        command="otp",
        title="VERIFY OTP",
        start=Stage.OTP,
        allow_back_from=frozenset(),
        redirect_delay=2.0,
    ),
}


def format_time(seconds: int) -> str:
    """120 -> '2:00'"""
    mins, secs = divmod(max(seconds, 0), 60)
    return f"{mins}:{secs:02d}"


def countdown_text(session: RecoverySession) -> str:
    if session.seconds_remaining > 0:
        return f"Code expires in {format_time(session.seconds_remaining)}"
    return "Code expired. Please request a new one."


def render_digits(session: RecoverySession) -> Text:
    """Six boxes, the focused one highlighted"""
    text = Text()
    for index, digit in enumerate(session.otp_digits):
        style = "bold reverse" if index == session.focus_index else ("bold cyan" if digit else "dim")
        text.append(f" {digit or '-'} ", style=style)
        text.append(" ")
    return text


def fill_otp(flow: RecoveryFlow, code: str) -> bool:
    """
    Replace the digits with a code typed on one line.

    Returns False (leaving the boxes empty) when the line is not made of at
    most otp_length digits.
    """
    code = code.replace(" ", "")
    for index in reversed(range(flow.policy.otp_length)):
        flow.edit_otp_digit(index, "")

    if len(code) > flow.policy.otp_length:
        return False
    for index, char in enumerate(code):
        if not flow.edit_otp_digit(index, char):
            for reset_index in reversed(range(index)):
                flow.edit_otp_digit(reset_index, "")
            return False
    return True


class RecoveryPrompt:
    """
    Interactive driver for one recovery attempt.

    Usage:
        prompt = RecoveryPrompt(config, ENTRY_POINTS["forgot-password"])
        ok = await prompt.run()
    """

    def __init__(
        self,
        config: CLIConfig,
        entry: RecoveryEntry,
        console: Optional[Console] = None,
        auth_manager: Optional[CLIAuthManager] = None
    ):
        self.config = config
        self.entry = entry
        self.console = console or Console()
        self.auth_manager = auth_manager
        self._session: Optional[PromptSession] = None

    def _policy(self) -> RecoveryPolicy:
        return RecoveryPolicy.from_config(
            self.config,
            allow_back_from=self.entry.allow_back_from,
            redirect_delay=self.entry.redirect_delay,
        )

    async def _ask(
        self,
        message: str,
        is_password: bool = False,
        toolbar: Optional[Callable[[], str]] = None
    ) -> str:
        if self._session is None:
            self._session = PromptSession()
        return await self._session.prompt_async(
            HTML(f"<b>{message}</b> "),
            is_password=is_password,
            bottom_toolbar=toolbar,
            refresh_interval=1.0 if toolbar else 0,
        )

    async def run(self, email: Optional[str] = None) -> bool:
        """Walk the user through recovery; True once the password was reset"""
        redirected = asyncio.Event()
        logger.info(f"Starting recovery via {self.entry.command}")

        async with LightWorldClient(self.config.api_base_url, timeout=self.config.timeout) as client:
            flow = RecoveryFlow.for_client(client, on_complete=redirected.set, policy=self._policy())
            try:
                if not await self._start(flow, email):
                    return False

                while flow.stage != Stage.SUCCESS:
                    if flow.stage == Stage.EMAIL:
                        await self._email_step(flow)
                    elif flow.stage == Stage.OTP:
                        await self._otp_step(flow)
                    else:
                        await self._password_step(flow)

                self._show_success()
                await redirected.wait()
            except (KeyboardInterrupt, EOFError):
                self.console.print("\n[yellow]Password recovery cancelled[/yellow]")
                logger.info("Recovery cancelled by user")
                return False
            finally:
                await flow.close()

        await self._open_login(flow.session.email)
        return True

    async def _start(self, flow: RecoveryFlow, email: Optional[str]) -> bool:
        if self.entry.start == Stage.OTP:
            if not flow.begin_at_otp(email or ""):
                self._show_error(flow)
                return False
            return True

        if email:
            with self.console.status("Sending code..."):
                await flow.submit_email(email)
            self._show_error(flow)
        return True

    def _show_error(self, flow: RecoveryFlow) -> None:
        if flow.session.error_message:
            self.console.print(f"[red]✗ {flow.session.error_message}[/red]")

    def _back_unavailable(self) -> None:
        self.console.print("[yellow]Going back is not available here[/yellow]")

    # ==================== Stages ====================

    async def _email_step(self, flow: RecoveryFlow) -> None:
        self.console.print(Panel(
            f"[bold cyan]{self.entry.title}[/bold cyan]\n\n"
            "Enter your email address and we'll send you a code.",
            border_style="cyan"
        ))
        email = await self._ask("Email:")

        with self.console.status("Sending code..."):
            await flow.submit_email(email)
        self._show_error(flow)

    async def _otp_step(self, flow: RecoveryFlow) -> None:
        hints = ["type the code and press Enter", "[cyan]r[/cyan] resend once expired"]
        if flow.can_go_back:
            hints.append("[cyan]b[/cyan] use a different email")

        self.console.print(Panel(
            f"[bold cyan]VERIFY CODE[/bold cyan]\n\n"
            f"We've sent a code to [bold]{flow.session.email}[/bold]\n"
            f"[dim]{' · '.join(hints)}[/dim]",
            border_style="cyan"
        ))
        self.console.print(render_digits(flow.session))

        answer = (await self._ask("Code:", toolbar=lambda: countdown_text(flow.session))).strip()

        if answer.lower() in RESEND_COMMANDS:
            await self._resend(flow)
        elif answer.lower() in BACK_COMMANDS:
            if not flow.go_back_to_email():
                self._back_unavailable()
        elif not fill_otp(flow, answer):
            self.console.print(f"[red]✗ Enter up to {flow.policy.otp_length} digits[/red]")
        elif not flow.can_submit_otp:
            self.console.print(render_digits(flow.session))
            self.console.print(f"[yellow]Enter all {flow.policy.otp_length} digits to verify[/yellow]")
        else:
            with self.console.status("Verifying code..."):
                await flow.submit_otp()
            self._show_error(flow)

    async def _resend(self, flow: RecoveryFlow) -> None:
        if not flow.session.can_resend:
            self.console.print(
                f"[yellow]You can request a new code in "
                f"{format_time(flow.session.seconds_remaining)}[/yellow]"
            )
            return

        with self.console.status("Sending a new code..."):
            sent = await flow.resend()
        if sent:
            self.console.print("[green]✓ A new code is on its way[/green]")
        self._show_error(flow)

    async def _password_step(self, flow: RecoveryFlow) -> None:
        back_hint = "\n[dim]Type [cyan]:back[/cyan] to start over[/dim]" if flow.can_go_back else ""
        self.console.print(Panel(
            f"[bold cyan]NEW PASSWORD[/bold cyan]\n\n"
            f"Choose a password of at least {flow.policy.min_password_length} characters."
            f"{back_hint}",
            border_style="cyan"
        ))

        password = await self._ask("New password:", is_password=True)
        if password == ":back":
            if not flow.go_back_to_email():
                self._back_unavailable()
            return
        confirm = await self._ask("Confirm password:", is_password=True)

        with self.console.status("Updating password..."):
            await flow.submit_new_password(password, confirm)
        self._show_error(flow)

    def _show_success(self) -> None:
        self.console.print(Panel(
            "[bold green]✓ Password reset![/bold green]\n\n"
            "You can now login with your new password.\n"
            "[dim]Redirecting to login...[/dim]",
            border_style="green"
        ))

    async def _open_login(self, email: str) -> None:
        auth_manager = self.auth_manager or get_auth_manager(self.config)
        try:
            await auth_manager.interactive_login(email)
        except LightWorldError as e:
            self.console.print(f"[red]✗ {e.message}[/red]")
            self.console.print("Try again with [cyan]lightworld login[/cyan].")
