import asyncio
import logging
import signal
from functools import partial
from typing import List, Optional

from prompt_toolkit.application import run_in_terminal
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.history import FileHistory
from prompt_toolkit.shortcuts import PromptSession
from prompt_toolkit.styles import Style
from rich.panel import Panel

from merlin_console import __version__, messages
from merlin_console.console import rendering
from merlin_console.console.commands.common import EXIT_QUESTION
from merlin_console.console.completion import ContextCompleter
from merlin_console.console.dispatcher import Dispatcher
from merlin_console.console.key_bindings import get_key_bindings
from merlin_console.console.state import ShellSession
from merlin_console.exceptions import ShellExit
from merlin_console.messages import UserMessage
from merlin_console.runtime_config import RuntimeConfig

logger = logging.getLogger(__name__)

# Seconds the puller waits on the bus before checking whether to stop
POLL_INTERVAL = 0.1

CONFIRM_ANSWERS = ("y", "yes", "-y")


class ReplConsole:
    """Interactive operator console: prompt loop plus bus workers."""

    session: ShellSession
    config: RuntimeConfig
    prompt_session: Optional[PromptSession[str]]

    style: Style = Style.from_dict(
        {
            "completion-menu": "noinherit",
            "completion-menu.completion": "noinherit",
            "completion-menu.completion.current": "noinherit bold",
            "scrollbar": "noinherit",
        }
    )

    def __init__(self, session: ShellSession, config: RuntimeConfig) -> None:
        self.session = session
        self.config = config
        self.dispatcher = Dispatcher(session, self.confirm)
        self.prompt_session = None

        self._confirm_session: Optional[PromptSession[str]] = None
        self._confirm_lock = asyncio.Lock()
        self._render_queue: "asyncio.Queue[UserMessage]" = asyncio.Queue(
            maxsize=config.queue_size
        )
        self._signal_event = asyncio.Event()
        self._exit_event = asyncio.Event()
        self._stop_pulling = False

    def prompt_fragments(self) -> FormattedText:
        return rendering.prompt_fragments(self.session.prompt)

    async def _pull_messages(self) -> None:
        """Move messages from this client's bus inbox onto the render queue.

        After a stop is requested the inbox is drained before returning.
        """
        bus = self.session.backend.bus
        while True:
            message = await asyncio.to_thread(
                bus.get_message, self.session.client_id, POLL_INTERVAL
            )
            if message is None:
                if self._stop_pulling:
                    return
                continue
            await self._render_queue.put(message)

    async def _print_messages(self) -> None:
        while True:
            message = await self._render_queue.get()
            try:
                await run_in_terminal(
                    partial(rendering.render_message, message, self.session.settings.debug)
                )
            except Exception:
                logger.exception("Failed to render message %r", message.text)
            finally:
                self._render_queue.task_done()

    async def _watch_signals(self) -> None:
        """Turn SIGINT/SIGTERM into the quit confirmation."""
        while True:
            await self._signal_event.wait()
            self._signal_event.clear()
            logger.info("Received interrupt signal")
            if self._confirm_lock.locked():
                continue
            app = self.prompt_session.app if self.prompt_session else None
            if app is not None and app.is_running and not app.is_done:
                app.exit(exception=KeyboardInterrupt())
            elif await self.confirm(EXIT_QUESTION):
                self._exit_event.set()

    def _install_signal_handlers(self) -> List[signal.Signals]:
        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._signal_event.set)
            except (NotImplementedError, RuntimeError):
                logger.warning("Cannot install a handler for %s", sig.name)
                continue
            installed.append(sig)
        return installed

    async def confirm(self, question: str) -> bool:
        """Ask a Yes/No question; only an explicit yes confirms."""
        async with self._confirm_lock:
            try:
                answer = await self._read_confirmation(f"{question} [Yes/No]: ")
            except KeyboardInterrupt:
                return False
            except EOFError:
                self.session.publish(
                    messages.warn("There was an error reading the input", is_error=True)
                )
                return False
        return answer.strip().lower() in CONFIRM_ANSWERS

    async def _read_confirmation(self, question: str) -> str:
        if self._confirm_session is None:
            self._confirm_session = PromptSession()
        return await self._confirm_session.prompt_async(
            FormattedText([("ansired", question)]), handle_sigint=False
        )

    async def _read_line(self) -> str:
        assert self.prompt_session is not None
        return await self.prompt_session.prompt_async(handle_sigint=False)

    async def _input_loop(self) -> None:
        while True:
            try:
                line = await self._read_line()
            except KeyboardInterrupt:
                if await self.confirm(EXIT_QUESTION):
                    return
                continue
            except EOFError:
                return

            try:
                await self.dispatcher.dispatch(line.strip())
            except ShellExit:
                return

    def _print_banner(self) -> None:
        rendering.console.print(
            Panel(
                f"[bold red]MERLIN CONSOLE[/bold red] [dim]v{__version__}[/dim]\n\n"
                f"[dim]Data Directory:[/dim] [dim cyan]{self.config.data_dir}[/dim cyan]\n"
                f"[dim]Modules:[/dim] [dim cyan]{self.config.modules_dir}[/dim cyan]\n"
                f"[dim]History:[/dim] [dim cyan]{self.config.history_path}[/dim cyan]",
                expand=False,
            )
        )

    def _create_prompt_session(self) -> PromptSession[str]:
        history_path = self.config.history_path
        history_path.parent.mkdir(parents=True, exist_ok=True)
        return PromptSession(
            message=self.prompt_fragments,
            history=FileHistory(str(history_path)),
            completer=ContextCompleter(self.session),
            style=self.style,
            complete_while_typing=False,
            key_bindings=get_key_bindings(),
        )

    async def _shutdown(self, workers: List["asyncio.Task[None]"]) -> None:
        """Flush pending messages, then stop the background tasks."""
        self._stop_pulling = True
        puller, printer, watcher = workers
        await asyncio.gather(puller, return_exceptions=True)
        if not printer.done():
            await self._render_queue.join()
        for task in (printer, watcher):
            task.cancel()
        await asyncio.gather(printer, watcher, return_exceptions=True)

    async def run(self) -> None:
        """Interactive REPL loop for the console interface.

        Raises:
            DuplicateRegistrationError: if the client id is already registered.
        """
        self._print_banner()

        registration = self.session.register()
        logger.info("Registered console client %s", self.session.client_id)
        self.session.publish(registration)

        self.prompt_session = self._create_prompt_session()

        workers = [
            asyncio.create_task(self._pull_messages(), name="bus-puller"),
            asyncio.create_task(self._print_messages(), name="bus-printer"),
            asyncio.create_task(self._watch_signals(), name="signal-watcher"),
        ]
        installed = self._install_signal_handlers()

        input_task = asyncio.create_task(self._input_loop(), name="input-loop")
        exit_task = asyncio.create_task(self._exit_event.wait(), name="exit-wait")
        try:
            done, _ = await asyncio.wait(
                {input_task, exit_task}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in done:
                task.result()
        finally:
            loop = asyncio.get_running_loop()
            for sig in installed:
                loop.remove_signal_handler(sig)
            for task in (input_task, exit_task):
                task.cancel()
            await asyncio.gather(input_task, exit_task, return_exceptions=True)
            await self._shutdown(workers)

        rendering.console.print("[!]Quitting...", style="red", markup=False)
        logger.info("Shutting down due to user input")
