"""
Main menu commands.
"""

from datetime import datetime, timezone
from typing import List

from merlin_console import __version__, messages
from merlin_console.backend import BROADCAST_ID, AgentInfo
from merlin_console.console.commands.common import (
    cmd_listeners,
    cmd_quit,
    cmd_sessions,
    enter_agent,
    help_message,
    parse_agent_id,
)
from merlin_console.console.context import MenuContext
from merlin_console.console.dispatcher import (
    Command,
    CommandContext,
    CommandTable,
    command_table,
)

BANNER = r"""
                   &&&&&&&&
                 &&&&&&&&&&&&
                &&&&&&&&&&&&&&&
               &&&&&&&&&&&&&&&&&
   __  __           _ _
  |  \/  | ___ _ __| (_)_ __
  | |\/| |/ _ \ '__| | | '_ \
  | |  | |  __/ |  | | | | | |
  |_|  |_|\___|_|  |_|_|_| |_|
"""

AGENT_LIST_HEADERS = (
    "Agent GUID",
    "Note",
    "Platform",
    "Host",
    "Transport",
    "Status",
    "User",
    "Process",
    "Last checkin",
)

TRANSPORTS = {
    "http": "HTTP/1.1 clear-text",
    "https": "HTTP/1.1 over TLS",
    "h2c": "HTTP/2 clear-text",
    "h2": "HTTP/2 over TLS",
    "http3": "HTTP/3 (HTTP/2 over QUIC)",
}


def _transport(proto: str) -> str:
    return TRANSPORTS.get(proto, f"Unknown: {proto}")


def _process_name(agent: AgentInfo) -> str:
    separator = "\\" if agent.platform == "windows" else "/"
    return agent.process.rsplit(separator, 1)[-1]


def _since(checkin: datetime | None) -> str:
    if checkin is None:
        return "never"
    seconds = max(int((datetime.now(timezone.utc) - checkin).total_seconds()), 0)
    return f"{seconds // 3600}:{seconds // 60 % 60}:{seconds % 60} ago"


def agent_list_message(ctx: CommandContext) -> messages.UserMessage:
    registry = ctx.backend.agents
    rows = [
        (
            str(agent.id),
            agent.note,
            f"{agent.platform}/{agent.architecture}",
            agent.hostname,
            _transport(agent.proto),
            registry.status(agent.id),
            agent.username,
            f"{_process_name(agent)}({agent.pid})",
            _since(agent.status_checkin),
        )
        for agent in registry.list()
    ]
    return messages.table(AGENT_LIST_HEADERS, rows)


async def remove_agent(ctx: CommandContext, value: str) -> None:
    agent_id = parse_agent_id(value)
    if not await ctx.confirm(f"Are you sure you want to remove agent {agent_id}?"):
        return
    await ctx.call(ctx.backend.agents.remove, agent_id)
    stamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
    ctx.publish(
        messages.info(f"Agent {agent_id} was removed from the server at {stamp}")
    )


async def cmd_agent(ctx: CommandContext, cmd: List[str]) -> None:
    """Interact with agents or list agents."""
    if len(cmd) < 2:
        ctx.publish(messages.warn("Usage: agent list|interact <id>|remove <id>"))
        return
    action = cmd[1].lower()
    if action == "list":
        ctx.publish(await ctx.call(agent_list_message, ctx))
    elif action == "interact" and len(cmd) > 2:
        await enter_agent(ctx, cmd[2])
    elif action == "remove" and len(cmd) > 2:
        await remove_agent(ctx, cmd[2])
    else:
        ctx.publish(messages.warn(f"Invalid agent command: {' '.join(cmd[1:])}"))


async def cmd_banner(ctx: CommandContext, cmd: List[str]) -> None:
    ctx.publish(messages.plain(f"{BANNER}\n\t\t   Version: {__version__}"))


async def cmd_help(ctx: CommandContext, cmd: List[str]) -> None:
    ctx.publish(messages.plain(f"Merlin C2 Server (version {__version__})"))
    ctx.publish(help_message(MAIN_COMMANDS, "Main Menu Help"))


async def cmd_interact(ctx: CommandContext, cmd: List[str]) -> None:
    if len(cmd) < 2:
        ctx.publish(messages.warn("Usage: interact <agent_id>"))
        return
    await enter_agent(ctx, cmd[1])


async def cmd_queue(ctx: CommandContext, cmd: List[str]) -> None:
    if len(cmd) < 3:
        ctx.publish(messages.warn("Invalid syntax."))
        return
    target = str(BROADCAST_ID) if cmd[1].lower() == "all" else cmd[1]
    agent_id = parse_agent_id(target)
    await ctx.run(MenuContext.AGENT, cmd[2:], agent_id=agent_id)


async def cmd_listqueue(ctx: CommandContext, cmd: List[str]) -> None:
    jobs = await ctx.call(ctx.backend.jobs.list_unassigned)
    ctx.publish(messages.plain("Unassigned jobs: \n" + jobs))


async def cmd_clearqueue(ctx: CommandContext, cmd: List[str]) -> None:
    if not await ctx.confirm("Are you sure you want to remove all unassigned jobs?"):
        return
    await ctx.call(ctx.backend.jobs.clear_unassigned)
    ctx.publish(messages.plain("Unassigned jobs removed"))


async def cmd_remove(ctx: CommandContext, cmd: List[str]) -> None:
    if len(cmd) < 2:
        ctx.publish(messages.warn("Usage: remove <agent_id>"))
        return
    await remove_agent(ctx, cmd[1])


async def cmd_set(ctx: CommandContext, cmd: List[str]) -> None:
    if len(cmd) < 3:
        ctx.publish(messages.warn("Usage: set verbose|debug true|false"))
        return
    flag, value = cmd[1].lower(), cmd[2].lower()
    if flag not in ("verbose", "debug") or value not in ("true", "false"):
        ctx.publish(messages.warn(f"Invalid setting: {' '.join(cmd[1:])}"))
        return
    enabled = value == "true"
    setattr(ctx.session.settings, flag, enabled)
    state = "enabled" if enabled else "disabled"
    ctx.publish(messages.success(f"{flag.capitalize()} output {state}"))


async def cmd_use(ctx: CommandContext, cmd: List[str]) -> None:
    if len(cmd) < 2 or cmd[1].lower() != "module":
        ctx.publish(messages.note("Invalid 'use' command"))
        return
    if len(cmd) < 3:
        ctx.publish(messages.warn("Invalid module"))
        return
    modules = ctx.backend.modules
    path = await ctx.call(modules.path_for, cmd[2])
    module = await ctx.call(modules.load, path)
    ctx.session.transition(MenuContext.MODULE, module)


async def cmd_version(ctx: CommandContext, cmd: List[str]) -> None:
    ctx.publish(messages.plain(f"Merlin version: {__version__}"))


MAIN_COMMANDS: CommandTable = command_table(
    Command("agent", cmd_agent, "Interact with agents or list agents", "interact, list, remove"),
    Command("banner", cmd_banner, "Print the Merlin banner"),
    Command("clearqueue", cmd_clearqueue, "Clear all jobs that have not been sent to an agent"),
    Command("help", cmd_help, "Display this message"),
    Command("?", cmd_help, alias=True),
    Command("interact", cmd_interact, "Interact with an agent", "interact <agent_id>"),
    Command("listeners", cmd_listeners, "Move to the listeners menu"),
    Command("listqueue", cmd_listqueue, "List all jobs that have yet to be sent to an agent"),
    Command("queue", cmd_queue, "Send a job to an agent that may not be registered yet", "queue <agent_id|all> <command>"),
    Command("quit", cmd_quit, "Exit and close the Merlin server", "-y"),
    Command("remove", cmd_remove, "Remove or delete a DEAD agent from the server", "remove <agent_id>"),
    Command("sessions", cmd_sessions, "List all agents session information"),
    Command("set", cmd_set, "Toggle console output flags", "verbose|debug true|false"),
    Command("use", cmd_use, "Use a function of Merlin", "module <name>"),
    Command("version", cmd_version, "Print the Merlin server version"),
)
