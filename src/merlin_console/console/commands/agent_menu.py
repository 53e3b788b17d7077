"""
Agent menu commands. ``queue`` in the main menu runs these with an explicit target.
"""

import uuid
from typing import List

from merlin_console import messages
from merlin_console.console.commands.common import (
    cmd_main,
    cmd_quit,
    cmd_sessions,
    enter_agent,
    help_message,
    options_message,
)
from merlin_console.console.context import MenuContext
from merlin_console.console.dispatcher import (
    Command,
    CommandContext,
    CommandTable,
    command_table,
)

STATUS_LEVELS = {
    "Active": "is active",
    "Delayed": "is delayed",
    "Dead": "is dead",
}


def _require_agent(ctx: CommandContext) -> uuid.UUID:
    agent_id = ctx.target_agent
    if agent_id is None:
        raise ValueError("no agent selected")
    return agent_id


async def cmd_task(ctx: CommandContext, cmd: List[str]) -> None:
    """Forward a tasking command to the backend unchanged."""
    ctx.publish(await ctx.call(ctx.backend.tasking.task, _require_agent(ctx), cmd))


async def cmd_clear(ctx: CommandContext, cmd: List[str]) -> None:
    agent_id = _require_agent(ctx)
    if not await ctx.confirm("Are you sure you want to clear all queued commands?"):
        return
    try:
        await ctx.call(ctx.backend.jobs.clear_jobs, agent_id)
    except Exception as e:
        ctx.publish(messages.warn(f"Error clearing queued commands: {e}", is_error=True))
        return
    ctx.publish(messages.success("Cleared all queued commands"))


async def cmd_exit(ctx: CommandContext, cmd: List[str]) -> None:
    agent_id = _require_agent(ctx)
    skip = len(cmd) > 1 and cmd[1].lower() == "-y"
    if not skip and not await ctx.confirm("Are you sure you want to exit the agent?"):
        return
    ctx.session.transition(MenuContext.MAIN)
    ctx.publish(await ctx.call(ctx.backend.tasking.task, agent_id, ["exit"]))


async def cmd_help(ctx: CommandContext, cmd: List[str]) -> None:
    ctx.publish(help_message(AGENT_COMMANDS, "Agent Help Menu"))


async def cmd_info(ctx: CommandContext, cmd: List[str]) -> None:
    info = await ctx.call(ctx.backend.agents.info, _require_agent(ctx))
    ctx.publish(options_message(info))


async def cmd_interact(ctx: CommandContext, cmd: List[str]) -> None:
    if len(cmd) < 2:
        ctx.publish(messages.warn("Usage: interact <agent_id>"))
        return
    await enter_agent(ctx, cmd[1])


async def cmd_jobs(ctx: CommandContext, cmd: List[str]) -> None:
    agent_id = _require_agent(ctx)
    try:
        jobs = await ctx.call(ctx.backend.jobs.list_jobs, agent_id)
    except Exception as e:
        ctx.publish(
            messages.warn(f"Error retrieving queued commands: {e}", is_error=True)
        )
        return
    ctx.publish(messages.success("Queued commands:\n" + "\n".join(jobs)))


async def cmd_note(ctx: CommandContext, cmd: List[str]) -> None:
    note = " ".join(cmd[1:])
    await ctx.call(ctx.backend.agents.set_note, _require_agent(ctx), note)
    ctx.publish(messages.success(f"Note set to: {note}"))


async def cmd_status(ctx: CommandContext, cmd: List[str]) -> None:
    agent_id = _require_agent(ctx)
    status = await ctx.call(ctx.backend.agents.status, agent_id)
    text = STATUS_LEVELS.get(status, f"is {status}")
    ctx.publish(messages.plain(f"{agent_id} agent {text}"))


TASKING = {
    "batchcommands": ("Tell an agent to run all queued jobs on checkin", ""),
    "cd": ("Change directories", "cd ../../ OR cd c:\\\\Users"),
    "download": ("Download a file from the agent", "download <remote_file>"),
    "exec": ("Execute a command on the agent", "exec ping -c 3 8.8.8.8"),
    "ifconfig": ("Display network adapter(s) information", ""),
    "ipconfig": ("Display network adapter(s) information", ""),
    "inactivemultiplier": ("Multiply sleep values by this number each time threshold is reached", "inactivemultiplier 10"),
    "inactivethreshold": ("Go inactive if operator is idle for this many check ins", "inactivethreshold 3"),
    "ja3": ("Change agent's TLS fingerprint", "ja3 <ja3 string>"),
    "kill": ("Kill a process", "kill <pid>"),
    "killdate": ("Set agent's killdate (UNIX epoch timestamp)", "killdate 1609480800"),
    "ls": ("List directory contents", "ls /etc OR ls C:\\\\Users"),
    "maxretry": ("Set number of failed check in attempts before the agent exits", "maxretry 30"),
    "padding": ("Set maximum number of random bytes to pad messages", "padding 4096"),
    "ps": ("Display running processes", ""),
    "pwd": ("Display the current working directory", ""),
    "sdelete": ("Secure delete a file", "sdelete C:\\\\Merlin.exe"),
    "shinject": ("Execute shellcode", "self, remote <pid>, RtlCreateUserThread <pid>"),
    "sleep": ("<min> <max> (in seconds)", "sleep 15 30"),
    "timestomp": ("<source> <destination>", "timestomp <source> <destination>"),
    "touch": ("<source> <destination>", "touch <source> <destination>"),
    "upload": ("Upload a file to the agent", "upload <local_file> <remote_file>"),
    "winexec": ("Execute a program using Windows API calls", "winexec [-ppid 500] ping -c 3 8.8.8.8"),
}

AGENT_COMMANDS: CommandTable = command_table(
    Command("back", cmd_main, "Return to the main menu"),
    Command("clear", cmd_clear, "Clear all queued commands"),
    Command("c", cmd_clear, alias=True),
    Command("exit", cmd_exit, "Instruct the agent to die or quit", "-y"),
    Command("help", cmd_help, "Display this message"),
    Command("?", cmd_help, alias=True),
    Command("info", cmd_info, "Display all information about the agent"),
    Command("interact", cmd_interact, "Interact with an agent", "interact <agent_id>"),
    Command("jobs", cmd_jobs, "List queued commands"),
    Command("main", cmd_main, "Return to the main menu"),
    Command("note", cmd_note, "Set a custom note for this agent", "note Help This callback dead"),
    Command("quit", cmd_quit, "Shutdown and close the server", "-y"),
    Command("sessions", cmd_sessions, "List all agents session information"),
    Command("status", cmd_status, "Print the current status of the agent"),
    *(
        Command(name, cmd_task, description, usage)
        for name, (description, usage) in TASKING.items()
    ),
)
