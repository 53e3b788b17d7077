import asyncio
import logging
from pathlib import Path
from typing import Annotated, Callable, Optional, Protocol

import typer

from merlin_console import __version__
from merlin_console.backend import Backend
from merlin_console.backend.memory import build_memory_backend
from merlin_console.console.repl_console import ReplConsole
from merlin_console.console.state import ShellSession, ShellSettings
from merlin_console.exceptions import ConsoleError
from merlin_console.logger import setup_logging
from merlin_console.message_bus import MessageBus
from merlin_console.runtime_config import (
    DATA_DIR_ENV,
    DEBUG_ENV,
    MODULES_DIR_ENV,
    RuntimeConfig,
    get_data_dir,
    load_envs,
)


class ConsoleInterface(Protocol):
    """Common interface for console interactions."""

    async def run(self) -> None:
        pass


BackendFactory = Callable[[RuntimeConfig], Backend]
ConsoleFactory = Callable[[ShellSession, RuntimeConfig], ConsoleInterface]

# Global factory functions - set by create_app()
_backend_factory: Optional[BackendFactory] = None
_console_factory: Optional[ConsoleFactory] = None


def default_backend_factory(config: RuntimeConfig) -> Backend:
    """Default factory: in-memory collaborators with a fresh message bus."""
    bus = MessageBus(
        queue_size=config.queue_size, publish_timeout=config.publish_timeout
    )
    return build_memory_backend(config.modules_dir, bus)


def default_console_factory(
    session: ShellSession, config: RuntimeConfig
) -> ConsoleInterface:
    """Default factory for creating Console instances."""
    return ReplConsole(session, config)


def version() -> None:
    """Print the console version."""
    typer.echo(f"Merlin Console version {__version__}")


def main(
    ctx: typer.Context,
    debug: Annotated[
        bool,
        typer.Option("--debug", envvar=DEBUG_ENV, help="Show DEBUG messages"),
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", help="Enable verbose output")
    ] = False,
    data_dir: Annotated[
        Optional[Path],
        typer.Option(
            "--data-dir",
            envvar=DATA_DIR_ENV,
            help="Directory for the history file and logs",
        ),
    ] = None,
    modules_dir: Annotated[
        Optional[Path],
        typer.Option(
            "--modules-dir",
            envvar=MODULES_DIR_ENV,
            help="Directory holding module definitions (<name>.json)",
        ),
    ] = None,
    history_file: Annotated[
        Optional[Path],
        typer.Option("--history-file", help="Line history file"),
    ] = None,
) -> None:
    """MERLIN CONSOLE - operator console for the Merlin server"""
    if ctx.invoked_subcommand is not None:
        return

    data_dir = data_dir or get_data_dir()
    cfg = RuntimeConfig(
        debug=debug,
        verbose=verbose,
        data_dir=data_dir,
        modules_dir=modules_dir or data_dir / "modules",
        history_file=history_file,
    )
    setup_logging(cfg.log_path, debug=cfg.debug)
    logger = logging.getLogger(__name__)
    logger.info("Starting console with data directory %s", cfg.data_dir)

    backend_fact = _backend_factory or default_backend_factory
    console_fact = _console_factory or default_console_factory
    session = ShellSession(
        backend_fact(cfg),
        settings=ShellSettings(debug=cfg.debug, verbose=cfg.verbose),
    )
    console = console_fact(session, cfg)
    try:
        asyncio.run(console.run())
    except KeyboardInterrupt:
        print("\nExiting...")
    except (ConsoleError, OSError) as e:
        logger.exception("Console stopped")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


def create_app(
    backend_factory: Optional[BackendFactory] = None,
    console_factory: Optional[ConsoleFactory] = None,
) -> typer.Typer:
    """
    Create and configure the Typer application.

    Args:
        backend_factory: Factory function to create the Backend collaborators
        console_factory: Factory function to create Console instances

    Returns:
        Typer application
    """
    # Load settings from .env if not already set in the environment
    load_envs()

    # Set global factory functions
    global _backend_factory, _console_factory
    _backend_factory = backend_factory
    _console_factory = console_factory

    app = typer.Typer(rich_markup_mode=None)
    app.callback(invoke_without_command=True)(main)
    app.command("version")(version)

    return app


# Create default app instance for the console script
app = create_app()


if __name__ == "__main__":
    app()
