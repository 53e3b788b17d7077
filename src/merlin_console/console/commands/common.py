"""
Handlers and helpers shared by several menus.
"""

import uuid
from typing import Dict, List, Optional

from merlin_console import messages
from merlin_console.console.context import AgentRef, ListenerRef, MenuContext
from merlin_console.console.dispatcher import CommandContext, CommandTable
from merlin_console.exceptions import ShellExit

EXIT_QUESTION = "Are you sure you want to exit the server?"


def parse_agent_id(value: str) -> uuid.UUID:
    """Parse an agent id.

    Raises:
        ValueError: with an operator-facing message.
    """
    try:
        return uuid.UUID(value)
    except ValueError:
        raise ValueError(f"Invalid uuid: {value}") from None


async def cmd_quit(ctx: CommandContext, cmd: List[str]) -> None:
    """Exit and close the server."""
    if len(cmd) > 1 and cmd[1].lower() == "-y":
        raise ShellExit()
    if await ctx.confirm(EXIT_QUESTION):
        raise ShellExit()


async def cmd_main(ctx: CommandContext, cmd: List[str]) -> None:
    """Return to the main menu."""
    ctx.session.transition(MenuContext.MAIN)


async def cmd_listeners(ctx: CommandContext, cmd: List[str]) -> None:
    """Move to the listeners menu."""
    ctx.session.transition(MenuContext.LISTENERS_MAIN)


async def cmd_sessions(ctx: CommandContext, cmd: List[str]) -> None:
    """List all agents session information."""
    await ctx.run(MenuContext.MAIN, ["agent", "list"])


async def enter_agent(ctx: CommandContext, value: str) -> None:
    """Select an agent and switch to its menu if it is registered."""
    try:
        agent_id = uuid.UUID(value)
    except ValueError:
        ctx.publish(
            messages.warn(
                f"There was an error interacting with agent {value}", is_error=True
            )
        )
        return
    if await ctx.call(ctx.backend.agents.get, agent_id) is None:
        ctx.publish(messages.warn(f"{agent_id} is not a known agent"))
        return
    ctx.session.transition(MenuContext.AGENT, AgentRef(agent_id))


async def enter_listener(ctx: CommandContext, name: str) -> None:
    """Select an instantiated listener by name and switch to its menu."""
    listeners = ctx.backend.listeners
    listener_id = await ctx.call(listeners.get_by_name, name)
    status = await ctx.call(listeners.status, listener_id)
    ref = ListenerRef(id=listener_id, name=name, status=status.text)
    ctx.session.transition(MenuContext.LISTENER, ref)


def help_message(table: CommandTable, title: str) -> messages.UserMessage:
    rows = [
        (command.name, command.description, command.usage)
        for command in table.values()
        if not command.alias
    ]
    return messages.table(
        ("Command", "Description", "Options"), sorted(rows), title=title
    )


def options_message(
    options: Dict[str, str], extra: Optional[Dict[str, str]] = None
) -> messages.UserMessage:
    rows = [(key, value) for key, value in sorted(options.items())]
    rows.extend((extra or {}).items())
    return messages.table(("Name", "Value"), rows)
