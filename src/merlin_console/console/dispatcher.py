"""
Command dispatch: per-context tables mapping the first input token to a handler.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from merlin_console import messages
from merlin_console.backend import Backend
from merlin_console.console.context import MenuContext
from merlin_console.console.state import ShellSession
from merlin_console.exceptions import BackendError, ShellExit
from merlin_console.messages import UserMessage

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[str], Awaitable[bool]]
Handler = Callable[["CommandContext", List[str]], Awaitable[None]]
T = TypeVar("T")


@dataclass(frozen=True)
class Command:
    """A named command: handler plus the text shown by ``help``."""

    name: str
    handler: Handler
    description: str = ""
    usage: str = ""
    alias: bool = False


CommandTable = Dict[str, Command]


def command_table(*commands: Command) -> CommandTable:
    return {command.name.lower(): command for command in commands}


@dataclass
class CommandContext:
    """What a handler sees: the dispatcher, plus an optional agent override."""

    dispatcher: "Dispatcher"
    agent_id: Optional[uuid.UUID] = None

    @property
    def session(self) -> ShellSession:
        return self.dispatcher.session

    @property
    def backend(self) -> Backend:
        return self.dispatcher.session.backend

    @property
    def target_agent(self) -> Optional[uuid.UUID]:
        """Agent a tasking command applies to (``queue`` overrides the selection)."""
        return self.agent_id or self.session.agent_id

    def publish(self, message: UserMessage) -> None:
        self.session.publish(message)

    async def confirm(self, question: str) -> bool:
        return await self.dispatcher.confirm(question)

    async def call(self, fn: Callable[..., T], *args: Any) -> T:
        """Run a blocking collaborator call in a worker thread."""
        return await asyncio.to_thread(fn, *args)

    async def run(
        self,
        context: MenuContext,
        cmd: List[str],
        agent_id: Optional[uuid.UUID] = None,
    ) -> None:
        await self.dispatcher.run_command(context, cmd, agent_id)


async def unknown_command(ctx: CommandContext, cmd: List[str]) -> None:
    ctx.publish(messages.info("Unknown command"))


class Dispatcher:
    """Routes input lines to the command table of the active context."""

    def __init__(
        self,
        session: ShellSession,
        confirm: ConfirmFn,
        tables: Optional[Dict[MenuContext, CommandTable]] = None,
    ) -> None:
        if tables is None:
            from merlin_console.console.commands import build_command_tables

            tables = build_command_tables()
        self.session = session
        self.confirm = confirm
        self.tables = tables

    def table_for(self, context: MenuContext) -> CommandTable:
        return self.tables[context]

    async def dispatch(self, line: str) -> None:
        """Tokenize ``line`` and run it in the active context."""
        cmd = line.split()
        if not cmd:
            return
        await self.run_command(self.session.context, cmd)

    async def run_command(
        self,
        context: MenuContext,
        cmd: List[str],
        agent_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Run ``cmd`` against ``context``'s table; failures become messages.

        Raises:
            ShellExit: when a handler asks to leave the shell.
        """
        ctx = CommandContext(self, agent_id)
        command = self.table_for(context).get(cmd[0].lower())
        handler = command.handler if command else unknown_command
        logger.debug("Dispatching %r in %s menu", cmd, context.value)
        try:
            await handler(ctx, cmd)
        except ShellExit:
            raise
        except BackendError as e:
            ctx.publish(e.user_message)
        except ValueError as e:
            ctx.publish(messages.warn(str(e), is_error=True))
        except Exception as e:
            logger.exception("Command %r failed", cmd[0])
            ctx.publish(messages.warn(f"Error executing {cmd[0]}: {e}", is_error=True))
