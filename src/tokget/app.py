"""Typer application and CLI entry point for tokget.

This module wires together the top-level Typer application and registers
the built-in sub-commands (``login``, ``logout``, ``serve``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. Errors the commands do not handle themselves are
reported on stderr with their exit code; anything unexpected is written to
a crash log under the data directory.

See Also:
    :mod:`tokget.config`: Configuration resolution.
    :mod:`tokget.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import sys
import traceback
from datetime import datetime
from typing import Optional

import typer

from tokget import __version__
from tokget.commands.config import config_app
from tokget.commands.oidc import login_command, logout_command
from tokget.commands.serve import serve_command
from tokget.exit_codes import EXIT_CANCELLED, EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="tokget",
    help="Log in to an OpenID Connect provider through a real browser and get the user's tokens.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)

app.command("login")(login_command)
app.command("logout")(logout_command)
app.command("serve")(serve_command)
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"tokget {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    remote_chrome: Optional[str] = typer.Option(
        None,
        "--remote-chrome",
        help="URL of a remote Chrome's debugging endpoint, e.g. http://localhost:9222.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Print the browser's debug output."
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmations."),
    no_input: bool = typer.Option(False, "--no-input", help="Disable interactive prompts."),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~tokget.output.OutputManager` from CLI
    flags and stores the shared options in ``ctx.obj`` for the
    sub-commands.
    """
    from tokget.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet)
    set_output(output)

    ctx.ensure_object(dict)
    ctx.obj["remote_chrome"] = remote_chrome
    ctx.obj["verbose"] = verbose
    ctx.obj["no_color"] = output.no_color
    ctx.obj["force"] = force
    ctx.obj["no_input"] = no_input


def _write_crash_log() -> str:
    """Write the current traceback to disk and return the log file path."""
    from tokget.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``tokget`` console script.

    No SIGINT handler is installed: ``asyncio.run`` turns Ctrl-C into the
    cancellation of the running flow, which tears the browser down before
    the command exits with code 130.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)
    except Exception as exc:
        from tokget.errors import TokgetError
        from tokget.output import error

        if isinstance(exc, TokgetError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log()
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
