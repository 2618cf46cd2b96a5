"""
Command Line Interface for SubTrack Auth
========================================

The terminal version of the SubTrack login screen. It drives the same
`LoginFlowController` the app uses, with the terminal standing in for the
navigator and the snackbar.

Usage:
------
    # Email/password (password is prompted for)
    python cli.py --email you@example.com

    # Show the password while typing it
    python cli.py --email you@example.com --show-password

    # Continue with Google; runs the local OAuth callback server
    SUBTRACK_OAUTH_REDIRECT_URL=http://127.0.0.1:8765/auth/callback python cli.py --oauth

Exit codes: 0 when the flow reached a screen, 1 on failure or timeout,
130 when interrupted.
"""

import argparse
import asyncio
import getpass
import json
import logging
import sys
import webbrowser
from typing import Optional

import uvicorn

from auth_provider import AuthProviderProtocol, create_auth_provider, create_supabase_client
from config import Settings, get_settings
from login_flow import LoginFlowController
from models import Screen
from profile_store import ProfileStoreProtocol, create_profile_store
from exceptions import SubTrackError


logger = logging.getLogger(__name__)


# ANSI colors for terminal output
class Colors:
    """ANSI color codes for pretty terminal output."""
    HEADER = '\033[95m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'


def colorize(text: str, color: str) -> str:
    """Add color to text if terminal supports it."""
    if sys.stdout.isatty():
        return f"{color}{text}{Colors.ENDC}"
    return text


def print_banner():
    banner = """
    +--------------------------------------+
    |              SubTrack                |
    |            Welcome Back              |
    +--------------------------------------+
    """
    print(colorize(banner, Colors.CYAN))


class TerminalNavigator:
    """
    Navigator that prints screen changes and lets the CLI wait for them.

    Keeps the stack so `replace` behaves like it does on mobile: the login
    screen is swapped out, not stacked under home.
    """

    def __init__(self, quiet: bool = False):
        self.stack: list[str] = ["login"]
        self.quiet = quiet
        self._arrivals: asyncio.Queue = asyncio.Queue()

    @property
    def current(self) -> str:
        return self.stack[-1]

    def push(self, screen: Screen) -> None:
        self.stack.append(screen.value)
        self._arrive(screen)

    def replace(self, screen: Screen) -> None:
        self.stack[-1] = screen.value
        self._arrive(screen)

    def _arrive(self, screen: Screen) -> None:
        if not self.quiet:
            print(colorize(f"-> {screen.value.replace('_', ' ')}", Colors.BLUE))
        self._arrivals.put_nowait(screen)

    async def wait_for_navigation(self, timeout: float) -> Optional[Screen]:
        """Return the next screen navigated to, or None after `timeout` seconds."""
        try:
            return await asyncio.wait_for(self._arrivals.get(), timeout)
        except asyncio.TimeoutError:
            return None


class TerminalNotifier:
    """Prints what the app would show in a snackbar."""

    def __init__(self):
        self.messages: list[str] = []

    def show_message(self, message: str) -> None:
        self.messages.append(message)
        print(colorize(f"! {message}", Colors.YELLOW))


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="subtrack-login",
        description="Sign in to SubTrack from the terminal",
        epilog="Example: subtrack-login --email you@example.com",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "--email", "-e",
        type=str,
        help="Account email (prompted for when omitted)"
    )

    parser.add_argument(
        "--password", "-p",
        type=str,
        help="Account password (prompted for when omitted; avoid on shared machines)"
    )

    parser.add_argument(
        "--show-password",
        action="store_true",
        help="Echo the password while typing it"
    )

    parser.add_argument(
        "--oauth",
        action="store_true",
        help="Continue with the configured OAuth provider instead of a password"
    )

    parser.add_argument(
        "--no-browser",
        action="store_true",
        help="With --oauth, print the sign-in URL instead of opening a browser"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        help="Seconds to wait for sign-in to complete (overrides config)"
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the outcome as JSON"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output with debug info"
    )

    parser.add_argument(
        "--no-banner",
        action="store_true",
        help="Don't show the banner"
    )

    return parser


def setup_logging_for_cli(verbose: bool, quiet: bool, settings: Settings) -> None:
    """Configure logging based on CLI flags, falling back to settings."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=settings.log_format
    )


def read_credentials(
    email: Optional[str],
    password: Optional[str],
    obscure_password: bool,
) -> tuple[str, str]:
    """Prompt for whatever was not given on the command line."""
    if email is None:
        email = input("Email: ")
    if password is None:
        password = getpass.getpass("Password: ") if obscure_password else input("Password: ")
    return email, password


def serve_callback(
    settings: Settings,
    auth_provider: AuthProviderProtocol,
) -> tuple[uvicorn.Server, asyncio.Task]:
    """
    Run the OAuth callback app on the current event loop.

    The app is handed this process's auth provider so the code exchange
    uses the PKCE verifier stored when the flow started.
    """
    from api.main import app, app_state

    app_state["auth_provider"] = auth_provider
    config = uvicorn.Config(
        app,
        host=settings.callback_host,
        port=settings.callback_port,
        log_level="warning",
    )
    server = uvicorn.Server(config)
    task = asyncio.create_task(server.serve(), name="oauth-callback-server")
    return server, task


async def run_login(
    parsed_args: argparse.Namespace,
    settings: Settings,
    auth_provider: Optional[AuthProviderProtocol] = None,
    profile_store: Optional[ProfileStoreProtocol] = None,
    navigator: Optional[TerminalNavigator] = None,
    notifier: Optional[TerminalNotifier] = None,
) -> int:
    """
    Run one login attempt end to end.

    Providers are created from settings unless injected.

    Returns:
        Exit code
    """
    if auth_provider is None or profile_store is None:
        client = await create_supabase_client(settings)
        auth_provider = auth_provider or create_auth_provider(client)
        profile_store = profile_store or create_profile_store(client, settings=settings)

    navigator = navigator or TerminalNavigator(quiet=parsed_args.quiet or parsed_args.json)
    notifier = notifier or TerminalNotifier()
    timeout = parsed_args.timeout if parsed_args.timeout is not None else settings.auth_event_timeout_seconds

    controller = LoginFlowController(
        auth_provider,
        profile_store,
        navigator,
        notifier,
        settings=settings,
    )

    server: Optional[uvicorn.Server] = None
    server_task: Optional[asyncio.Task] = None

    async with controller:
        try:
            if parsed_args.show_password:
                controller.toggle_password_visibility()

            if parsed_args.oauth:
                server, server_task = serve_callback(settings, auth_provider)
                url = await controller.start_oauth_login()
                if url is None:
                    return 1

                print(colorize(f"Continue sign-in in your browser:\n  {url}", Colors.CYAN))
                if not parsed_args.no_browser:
                    webbrowser.open(url)
            else:
                email, password = read_credentials(
                    parsed_args.email,
                    parsed_args.password,
                    controller.form.obscure_password,
                )
                result = await controller.submit_email_login(email, password)
                if not result.succeeded:
                    return 1

            screen = await navigator.wait_for_navigation(timeout)

        finally:
            if server is not None:
                server.should_exit = True
            if server_task is not None:
                await server_task

    if screen is None:
        print(colorize(f"Timed out after {timeout:.0f}s waiting for sign-in", Colors.RED))
        return 1

    outcome = {
        "screen": screen.value,
        "state": controller.state.value,
        "theme_mode": controller.theme_service.theme_mode.value,
        "currency": controller.currency_service.currency,
    }

    if parsed_args.json:
        print(json.dumps(outcome, indent=2))
    elif not parsed_args.quiet:
        if screen == Screen.HOME:
            print(colorize(
                f"\nSigned in (theme: {outcome['theme_mode']}, currency: {outcome['currency']})",
                Colors.GREEN
            ))
        else:
            print(colorize(f"\nContinue in the {screen.value.replace('_', ' ')} screen", Colors.GREEN))

    return 0


def main(args: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        args: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if parsed_args.oauth and (parsed_args.email or parsed_args.password):
        parser.error("--oauth cannot be combined with --email/--password")

    settings = get_settings()
    setup_logging_for_cli(parsed_args.verbose, parsed_args.quiet, settings)

    if not parsed_args.no_banner and not parsed_args.quiet and not parsed_args.json:
        print_banner()

    try:
        return asyncio.run(run_login(parsed_args, settings))

    except SubTrackError as e:
        print(colorize(f"\nError: {e.message}", Colors.RED))
        if parsed_args.verbose and e.details:
            print(colorize(f"   Details: {e.details}", Colors.YELLOW))
        return 1

    except KeyboardInterrupt:
        print(colorize("\n\nInterrupted by user", Colors.YELLOW))
        return 130

    except Exception as e:
        print(colorize(f"\nUnexpected error: {e}", Colors.RED))
        if parsed_args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
