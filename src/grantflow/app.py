"""Typer application and CLI entry point for grantflow.

The CLI is a thin host for the grant flows, useful for registering a
client and trying it from a terminal:

* ``grantflow config show`` / ``grantflow config set KEY VALUE``
* ``grantflow authorize --scope S`` -- print the authorize URL.
* ``grantflow callback CODE STATE`` -- finish the authorization-code grant.
* ``grantflow device --scope S`` -- run the device-code grant, polling
  until the user completes it or the code expires.

The nonce is kept in ``FileStorage("state")`` and tokens in
``FileStorage("tokens")`` under the data directory.

:func:`main` is the console-script entry point declared in
``pyproject.toml``. :class:`~grantflow.exceptions.GrantflowError` instances
escaping a command are printed and mapped to their ``exit_code``.
"""

from __future__ import annotations

import logging
import signal
import sys
import time
from typing import Any, Optional

import typer
from pydantic import ValidationError

from grantflow import __version__
from grantflow.exceptions import AuthorizationPendingError, GrantflowError, NotFoundError
from grantflow.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INVALID_USAGE
from grantflow.flows import AuthorizationCodeFlow, DeviceCodeFlow, GrantExchanger
from grantflow.models import AccessTokenArtifact, DeviceCodeArtifact, ProxyConfig
from grantflow.output import (
    OutputFormat,
    OutputManager,
    debug,
    device_instructions,
    error,
    format_response,
    info,
    print_data,
    set_output,
    success,
    suggest,
    warning,
)
from grantflow.transport import HttpxTransport, Transport

# RFC 8628 section 3.5: add five seconds on every slow_down
SLOW_DOWN_STEP = 5

app = typer.Typer(
    name="grantflow",
    help="OAuth2 authorization-code and device-code grants from the command line.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
config_app = typer.Typer(no_args_is_help=True)
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"grantflow {__version__}")
        raise typer.Exit()


_log_handler: Optional[logging.Handler] = None


def _configure_logging(verbose: bool) -> None:
    """Send ``grantflow`` log records to stderr, at DEBUG when verbose."""
    global _log_handler
    logger = logging.getLogger("grantflow")
    if _log_handler is None:
        _log_handler = logging.StreamHandler(sys.stderr)
        _log_handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        logger.addHandler(_log_handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Install the global output manager and logging from the CLI flags."""
    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose)


# ------------------------------------------------------------------ #
# Wiring
# ------------------------------------------------------------------ #


def _make_transport(config: ProxyConfig) -> Transport:
    return HttpxTransport(timeout=config.timeout)


def _build_exchanger(config: ProxyConfig) -> GrantExchanger:
    """Assemble a :class:`GrantExchanger` from the resolved config.

    The encryption provider is only created when an encryption secret
    source is configured; the device flow does not need one.
    """
    from grantflow.config import resolve_credential
    from grantflow.providers import FernetEncryptionProvider, FileStorage, StaticConfigProvider

    encryption = None
    if config.encryption_secret_source:
        encryption = FernetEncryptionProvider(
            resolve_credential(config.encryption_secret_source), config.encryption_salt
        )
    return GrantExchanger(
        config=StaticConfigProvider(config),
        storage=FileStorage("state", confidential=False),
        secure_storage=FileStorage("tokens"),
        encryption=encryption,
        transport=_make_transport(config),
    )


def _token_summary(token: AccessTokenArtifact) -> dict[str, Any]:
    return {
        "token_type": token.token_type,
        "expires_in": token.expires_in,
        "refresh_token": token.refresh_token is not None,
    }


# ------------------------------------------------------------------ #
# Config commands
# ------------------------------------------------------------------ #


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration (environment overrides applied).

    Example::

        grantflow config show --json
    """
    from grantflow.config import config_path, resolve_config

    config = resolve_config()
    info(f"Config file: {config_path()}")
    data = config.model_dump(mode="json", exclude_none=True)
    if "client_secret" in data:
        data["client_secret"] = "***"
    format_response(data)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config field, e.g. 'api_host'."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set one field of the config file.

    The value is validated against :class:`~grantflow.models.ProxyConfig`
    before saving.

    Example::

        grantflow config set api_host https://api.example.org
        grantflow config set client_secret_source env:MY_SECRET
    """
    from grantflow.config import load_config, save_config

    if key not in ProxyConfig.model_fields:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    data = load_config().model_dump(mode="json")
    data[key] = value
    try:
        new_config = ProxyConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_config(new_config)
    success(f"Set {key}")
    if key == "client_secret":
        warning("client_secret is stored in plain text; prefer client_secret_source")


# ------------------------------------------------------------------ #
# Grant commands
# ------------------------------------------------------------------ #


@app.command("authorize")
def authorize(
    scope: list[str] = typer.Option(..., "--scope", "-s", help="Scope to request (repeatable)."),
    return_to: Optional[str] = typer.Option(
        None, "--return-to", help="URL to return to after login."
    ),
) -> None:
    """Start the authorization-code grant and print the authorize URL.

    Example::

        grantflow authorize -s identity.readonly -s listening.write
    """
    from grantflow.config import resolve_config

    state_data = {"return_to": return_to} if return_to else None
    with _build_exchanger(resolve_config()) as exchanger:
        url = AuthorizationCodeFlow(exchanger).start(scope, state_data)
    print_data(url)
    suggest("Open the URL, then run: grantflow callback CODE STATE")


@app.command("callback")
def callback(
    code: str = typer.Argument(help="The 'code' query parameter of the callback."),
    state: str = typer.Argument(help="The 'state' query parameter of the callback."),
) -> None:
    """Finish the authorization-code grant and store the tokens."""
    from grantflow.config import resolve_config

    with _build_exchanger(resolve_config()) as exchanger:
        flow = AuthorizationCodeFlow(exchanger)
        token = flow.complete(code, state)
        return_url = flow.get_return_url()
    success("Authorization complete.")
    info(f"Return URL: {return_url}")
    format_response(_token_summary(token))


def _poll_until_authorized(
    flow: DeviceCodeFlow, artifact: DeviceCodeArtifact
) -> AccessTokenArtifact:
    deadline = time.monotonic() + artifact.expires_in
    interval = max(artifact.interval, 1)
    while True:
        time.sleep(interval)
        try:
            return flow.poll()
        except AuthorizationPendingError as exc:
            if exc.slow_down:
                interval += SLOW_DOWN_STEP
            if time.monotonic() + interval >= deadline:
                raise NotFoundError(
                    "Device code expired before authorization completed"
                ) from exc
            debug(f"Authorization pending, polling again in {interval}s")


@app.command("device")
def device(
    scope: list[str] = typer.Option(..., "--scope", "-s", help="Scope to request (repeatable)."),
) -> None:
    """Run the device-code grant, polling until the user authorizes.

    Polls every ``interval`` seconds, five seconds slower after each
    ``slow_down``, and gives up when the device code expires. The stored
    device code is cleared in every case.
    """
    from grantflow.config import resolve_config

    with _build_exchanger(resolve_config()) as exchanger:
        flow = DeviceCodeFlow(exchanger)
        artifact = flow.start(scope)

        device_instructions(artifact)
        info("Waiting for authorization...")
        try:
            token = _poll_until_authorized(flow, artifact)
        finally:
            flow.clear()

    success("Authorization complete.")
    format_response(_token_summary(token))


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``grantflow`` console script.

    :class:`~grantflow.exceptions.GrantflowError` exits with the error's
    ``exit_code``; any other exception exits with a generic failure.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except GrantflowError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
