"""Command-line interface for pysignin.

Shows configuration and runs the sign-in flow from a terminal: the
authorization URL is opened (or printed) and the user pastes back the
redirect URL the browser was sent to.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
import time

from pathlib import Path
from typing import TYPE_CHECKING, Any

from .exceptions import SignInError, UserCancelledError
from .log import enable_debug, set_level


if TYPE_CHECKING:
    from collections.abc import Coroutine

    from .auth import SignInClient
    from .config import SignInSettings
    from .types import SignInResult


def main(argv: list[str] | None = None) -> int:
    """Run the main CLI entry point.

    Parameters
    ----------
    argv : list[str], optional
        Arguments to parse (default: ``sys.argv[1:]``).

    Returns
    -------
    int
        Exit code.
    """
    parser = argparse.ArgumentParser(
        prog="pysignin",
        description="Google sign-in (OAuth 2.0 Authorization Code + PKCE) tools",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log the sign-in flow at DEBUG level",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="Show or export configuration",
    )
    config_group = config_parser.add_mutually_exclusive_group()
    config_group.add_argument(
        "--show",
        action="store_true",
        help="Show current configuration",
    )
    config_group.add_argument(
        "--toml",
        action="store_true",
        help="Export configuration as TOML",
    )
    config_group.add_argument(
        "--env",
        action="store_true",
        help="Export configuration as environment variables",
    )
    config_group.add_argument(
        "--sources",
        action="store_true",
        help="Show configuration file sources",
    )
    config_parser.add_argument(
        "--output",
        "-o",
        type=str,
        help="Output file path (default: stdout)",
    )

    # login command
    login_parser = subparsers.add_parser(
        "login",
        help="Sign in interactively and print the issued tokens",
    )
    login_parser.add_argument(
        "--hint",
        type=str,
        default=None,
        help="Email address to preselect on the account chooser",
    )
    login_parser.add_argument(
        "--scope",
        action="append",
        dest="scopes",
        default=None,
        help="Scope to request (repeatable; default: configured scopes)",
    )
    login_parser.add_argument(
        "--no-browser",
        action="store_true",
        help="Only print the authorization URL",
    )

    # refresh command
    refresh_parser = subparsers.add_parser(
        "refresh",
        help="Exchange a refresh token for a new access token",
    )
    refresh_parser.add_argument("token", help="Refresh token")

    # revoke command
    revoke_parser = subparsers.add_parser(
        "revoke",
        help="Revoke an access or refresh token",
    )
    revoke_parser.add_argument("token", help="Token to revoke")

    args = parser.parse_args(argv)

    if args.verbose:
        enable_debug()

    if args.command == "config":
        return handle_config(args)
    if args.command == "login":
        return handle_login(args)
    if args.command == "refresh":
        return handle_refresh(args)
    if args.command == "revoke":
        return handle_revoke(args)
    parser.print_help()
    return 0


def handle_config(args: argparse.Namespace) -> int:
    """Handle the config command.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line arguments.

    Returns
    -------
    int
        Exit code.
    """
    from .config import SignInSettings

    if args.sources:
        return show_config_sources()

    settings = SignInSettings()

    if args.toml:
        output = settings.to_toml()
    elif args.env:
        output = settings.to_env()
    else:
        output = format_config_show(settings)

    if args.output:
        Path(args.output).write_text(output, encoding="utf-8")
        print(f"Configuration written to {args.output}")
    else:
        print(output)

    return 0


def _build_client(settings: SignInSettings, open_browser: bool = True) -> SignInClient:
    """Build a client that reads the redirect URL from the terminal."""
    from .auth import ConsoleBrowserGateway, SignInClient

    client = SignInClient.from_settings(
        settings,
        gateway=ConsoleBrowserGateway(open_browser=open_browser),
    )
    # The terminal stands in for the scheme registration
    client.registered_schemes.append(client.callback_scheme)
    return client


def _run_command(
    settings: SignInSettings,
    operation: Coroutine[Any, Any, int],
    verbose: bool,
) -> int:
    """Run an async client operation and map sign-in errors to exit codes."""
    if not verbose:
        set_level(settings.log_level)
    try:
        return asyncio.run(operation)
    except UserCancelledError:
        print("Sign-in cancelled.", file=sys.stderr)
        return 1
    except SignInError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nSign-in cancelled.", file=sys.stderr)
        return 130


def handle_login(args: argparse.Namespace) -> int:
    """Handle the login command.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line arguments.

    Returns
    -------
    int
        Exit code.
    """
    from .config import get_settings
    from .types import PresentationContext

    settings = get_settings()
    try:
        client = _build_client(settings, open_browser=not args.no_browser)
    except (SignInError, ImportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    async def _login() -> int:
        try:
            result = await client.sign_in(
                PresentationContext(anchor=sys.stdout),
                hint=args.hint,
                scopes=args.scopes,
            )
        finally:
            await client.close()
        print(format_result(result))
        return 0

    return _run_command(settings, _login(), args.verbose)


def handle_refresh(args: argparse.Namespace) -> int:
    """Handle the refresh command.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line arguments.

    Returns
    -------
    int
        Exit code.
    """
    from .config import get_settings

    settings = get_settings()
    try:
        client = _build_client(settings, open_browser=False)
    except (SignInError, ImportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    async def _refresh() -> int:
        try:
            result = await client.refresh_tokens(args.token)
        finally:
            await client.close()
        print(format_result(result))
        return 0

    return _run_command(settings, _refresh(), args.verbose)


def handle_revoke(args: argparse.Namespace) -> int:
    """Handle the revoke command.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line arguments.

    Returns
    -------
    int
        Exit code.
    """
    from .config import get_settings

    settings = get_settings()
    try:
        client = _build_client(settings, open_browser=False)
    except (SignInError, ImportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    async def _revoke() -> int:
        try:
            error = await client.sign_out(access_token=args.token)
        finally:
            await client.close()
        if error is not None:
            print(f"Error: {error}", file=sys.stderr)
            return 1
        print("Token revoked.")
        return 0

    return _run_command(settings, _revoke(), args.verbose)


def format_result(result: SignInResult, now: float | None = None) -> str:
    """Format a sign-in result for the terminal.

    Parameters
    ----------
    result : SignInResult
        The tokens to show.
    now : float, optional
        Current UNIX time used for the remaining lifetime.

    Returns
    -------
    str
        One ``key: value`` line per field that is set.
    """
    now = time.time() if now is None else now
    lines = [f"access_token: {result.access_token.token}"]
    if result.access_token.expires_at is not None:
        remaining = int(result.access_token.expires_at - now)
        lines.append(f"expires_in: {max(remaining, 0)}")
    if result.refresh_token:
        lines.append(f"refresh_token: {result.refresh_token}")
    if result.id_token:
        lines.append(f"id_token: {result.id_token}")
    if result.granted_scopes:
        lines.append(f"scopes: {' '.join(result.granted_scopes)}")
    if result.account:
        lines.append(f"account: {result.account}")
    return "\n".join(lines)


def show_config_sources() -> int:
    """Show configuration file sources and their status.

    Returns
    -------
    int
        Exit code.
    """
    sources = [
        ("Built-in defaults", "", True),
        ("pyproject.toml [tool.pysignin]", "pyproject.toml", None),
        ("./pysignin.toml", "pysignin.toml", None),
        ("~/.config/pysignin/config.toml", "~/.config/pysignin/config.toml", None),
        ("$PYSIGNIN_CONFIG_FILE", os.environ.get("PYSIGNIN_CONFIG_FILE", ""), None),
        ("Environment variables", "PYSIGNIN_* vars", None),
    ]

    print("Configuration Sources (in order of precedence):\n")
    print(f"{'Source':<40} {'Status':<15} {'Path'}")
    print("-" * 80)

    for name, path_str, forced_status in sources:
        if forced_status is True:
            status = "✓ Active"
            path_display = ""
        elif name == "Environment variables":
            env_vars = [k for k in os.environ if k.startswith("PYSIGNIN_")]
            if env_vars:
                status = f"✓ {len(env_vars)} vars"
                path_display = ", ".join(env_vars[:3])
                if len(env_vars) > 3:
                    path_display += "..."
            else:
                status = "✗ No vars"
                path_display = ""
        elif not path_str:
            status = "✗ Not set"
            path_display = ""
        else:
            path = Path(path_str).expanduser()
            status = "✓ Found" if path.exists() else "✗ Not found"
            path_display = str(path)

        print(f"{name:<40} {status:<15} {path_display}")

    print("\nNote: Later sources override earlier ones.")
    return 0


def format_config_show(settings: SignInSettings) -> str:
    """Format configuration for display.

    Parameters
    ----------
    settings : SignInSettings
        The settings object to format.

    Returns
    -------
    str
        Formatted configuration string.
    """
    lines = ["pysignin Configuration\n" + "=" * 40 + "\n"]
    lines.extend(f"  {field} = {value!r}" for field, value in settings.model_dump().items())
    if settings.client_id:
        try:
            from .auth.request import callback_scheme_for, redirect_uri_for

            lines.append("")
            lines.append(f"  callback_scheme = {callback_scheme_for(settings.client_id)!r}")
            lines.append(f"  redirect_uri = {redirect_uri_for(settings.client_id)!r}")
        except SignInError as e:
            lines.append(f"  # {e}")
    return "\n".join(lines)


if __name__ == "__main__":
    sys.exit(main())
