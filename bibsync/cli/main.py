"""Main CLI entry point for the bibsync command.

This module provides the Typer application with one subcommand per
operation: init, sync, sync-library, delete, set, trash and check-auth.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

from bibsync import __version__
from bibsync.cli.config import DEFAULT_CONFIG_PATH, DEFAULT_STATE_PATH
from bibsync.cli.errors import CLIError
from bibsync.cli.init_command import InitCommand
from bibsync.cli.models import ExitCode
from bibsync.cli.output import OutputHandler
from bibsync.cli.sync_command import SyncCommand
from bibsync.library.models import RegularRecord

app = typer.Typer(
    name="bibsync",
    help="""Two-way sync between a local bibliographic library and BibSonomy.

QUICK START:
  bibsync init ./library --group public --level semi-auto   # Initialize
  bibsync check-auth                                         # Validate credentials
  bibsync sync-library                                       # Sync tagged records
  bibsync sync <record-id>                                   # Sync one record

Credentials are read from BIBSONOMY_USER and BIBSONOMY_API_KEY (or a .env file).""",
    add_completion=False,
    rich_markup_mode=None,  # Disable Rich markup to avoid compatibility issues
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)


class _Options:
    verbosity: int = 0
    no_color: bool = False
    config_path: str = DEFAULT_CONFIG_PATH
    state_path: str = DEFAULT_STATE_PATH


options = _Options()


def _configure_logging(verbosity: int, logdir: Optional[str] = None) -> None:
    """Configure logging based on verbosity level.

    Configures only the 'bibsync' namespace logger to avoid affecting
    third-party libraries. The root logger is left unchanged.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2=DEBUG)
        logdir: Optional directory for log files (creates timestamped log file)
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:  # verbosity >= 2
        level = logging.DEBUG

    app_logger = logging.getLogger("bibsync")
    app_logger.setLevel(level)
    app_logger.handlers.clear()

    log_format = "%(asctime)s [%(levelname)8s] %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(log_format, datefmt=date_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    app_logger.addHandler(console_handler)

    if logdir:
        log_path = Path(logdir)
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"bibsync_{timestamp}.log"

        file_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        file_formatter = logging.Formatter(file_format, datefmt=date_format)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        app_logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")


def _output() -> OutputHandler:
    return OutputHandler(verbosity=options.verbosity, no_color=options.no_color)


def _command(output: OutputHandler) -> SyncCommand:
    return SyncCommand(
        output_handler=output,
        config_path=options.config_path,
        state_path=options.state_path,
    )


def _confirm_delete(record: RegularRecord) -> bool:
    return typer.confirm(f"Delete '{record.title or record.record_id}' from BibSonomy?", default=False)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"bibsync {__version__}")
        raise typer.Exit(ExitCode.SUCCESS)


@app.callback()
def main_callback(
    verbosity: int = typer.Option(
        0,
        "--verbosity",
        "-v",
        help="Verbosity level: 0=summary, 1=info, 2=debug",
    ),
    logdir: Optional[str] = typer.Option(
        None,
        "--logdir",
        help="Directory for log files (creates timestamped log file)",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
    config_path: str = typer.Option(
        DEFAULT_CONFIG_PATH,
        "--config",
        help="Path to the configuration file",
    ),
    state_path: str = typer.Option(
        DEFAULT_STATE_PATH,
        "--state",
        help="Path to the session state file",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Two-way sync between a local bibliographic library and BibSonomy."""
    _configure_logging(verbosity, logdir)
    options.verbosity = verbosity
    options.no_color = no_color
    options.config_path = config_path
    options.state_path = state_path


@app.command("init")
def init_command(
    library_path: str = typer.Argument(..., help="Directory of the local library"),
    group: str = typer.Option("public", "--group", help="BibSonomy group new posts are visible to"),
    level: str = typer.Option(
        "semi-auto", "--level", help="Automation level: manual, semi-auto or auto"
    ),
) -> None:
    """Initialize the sync configuration."""
    output = _output()
    init_cmd = InitCommand(config_path=options.config_path)

    try:
        settings = init_cmd.run(library_path=library_path, group=group, automation_level=level)
    except CLIError as e:
        logger.error(f"Initialization failed: {e}")
        output.error(f"Initialization failed: {e}")
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    except Exception as e:
        logger.exception("Unexpected error during initialization")
        output.error(f"Unexpected error: {e}")
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    output.success("Configuration initialized successfully")
    output.info(f"  Config file: {init_cmd.config_path}")
    output.info(f"  Library: {settings.library_path}")
    output.info(f"  Automation level: {settings.automation_level.value}")
    output.info("")
    output.info("Next steps:")
    output.info("  1. Set BIBSONOMY_USER and BIBSONOMY_API_KEY")
    output.info("  2. Run 'bibsync check-auth'")
    output.info("  3. Run 'bibsync sync-library'")
    raise typer.Exit(ExitCode.SUCCESS)


@app.command("sync")
def sync_command(
    record_id: str = typer.Argument(..., help="Id of the record to synchronize"),
    force: bool = typer.Option(False, "--force", help="Push local state even if unchanged"),
    quiet_duplicates: bool = typer.Option(
        False, "--quiet-duplicates", help="Do not report duplicate post errors"
    ),
    wait: bool = typer.Option(
        False, "--wait", help="Upload attachments of a new post before printing its URL"
    ),
) -> None:
    """Synchronize one record and print its BibSonomy URL."""
    exit_code = _command(_output()).sync_entry(
        record_id, force=force, notify_duplicate=not quiet_duplicates, wait=wait
    )
    raise typer.Exit(exit_code)


@app.command("sync-library")
def sync_library_command() -> None:
    """Synchronize every eligible record of the library."""
    exit_code = _command(_output()).sync_library()
    raise typer.Exit(exit_code)


@app.command("delete")
def delete_command(
    record_id: str = typer.Argument(..., help="Id of the record whose post is deleted"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete the BibSonomy post of a record (the local record is kept)."""
    exit_code = _command(_output()).delete_entry(
        record_id, confirm=None if yes else _confirm_delete
    )
    raise typer.Exit(exit_code)


@app.command("set")
def set_command(
    record_id: str = typer.Argument(..., help="Id of the record to change"),
    field_name: str = typer.Argument(..., help="Field name, e.g. title or year"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Change a field of a record, following the automation level."""
    exit_code = _command(_output()).set_field(record_id, field_name, value)
    raise typer.Exit(exit_code)


@app.command("trash")
def trash_command(
    record_id: str = typer.Argument(..., help="Id of the record to trash"),
) -> None:
    """Move a record to the trash, following the automation level."""
    exit_code = _command(_output()).trash_entry(record_id, confirm=_confirm_delete)
    raise typer.Exit(exit_code)


@app.command("check-auth")
def check_auth_command() -> None:
    """Validate the BibSonomy credentials."""
    exit_code = _command(_output()).check_auth()
    raise typer.Exit(exit_code)


def main() -> None:
    """Entry point for the console script."""
    app()


if __name__ == "__main__":
    main()
