"""
Listener menus: the listeners root menu, listener setup, and a single listener.
"""

from typing import List

from merlin_console import messages
from merlin_console.console.commands.common import (
    cmd_listeners,
    cmd_main,
    cmd_quit,
    enter_listener,
    help_message,
    options_message,
)
from merlin_console.console.context import ListenerDraft, ListenerRef, MenuContext
from merlin_console.console.dispatcher import (
    Command,
    CommandContext,
    CommandTable,
    command_table,
)

LISTENER_LIST_HEADERS = ("Name", "Interface", "Port", "Protocol", "Status", "Description")


def _name_arg(cmd: List[str]) -> str:
    """Listener names may contain spaces; everything after the command is the name."""
    if len(cmd) < 2:
        raise ValueError(f"Usage: {cmd[0].lower()} <listener_name>")
    return " ".join(cmd[1:])


def _delete_question(name: str) -> str:
    return f"Are you sure you want to delete the {name} listener?"


# Listeners root menu


async def listeners_delete(ctx: CommandContext, cmd: List[str]) -> None:
    name = _name_arg(cmd)
    listeners = ctx.backend.listeners
    exists = await ctx.call(listeners.exists, name)
    if exists.is_error:
        ctx.publish(exists)
        return
    if not await ctx.confirm(_delete_question(name)):
        return
    ctx.publish(await ctx.call(listeners.remove, name))


async def listeners_help(ctx: CommandContext, cmd: List[str]) -> None:
    ctx.publish(help_message(LISTENERS_MAIN_COMMANDS, "Listeners Help Menu"))


async def listeners_info(ctx: CommandContext, cmd: List[str]) -> None:
    name = _name_arg(cmd)
    listeners = ctx.backend.listeners
    exists = await ctx.call(listeners.exists, name)
    if exists.is_error:
        ctx.publish(exists)
        return
    listener_id = await ctx.call(listeners.get_by_name, name)
    options = await ctx.call(listeners.configured_options, listener_id)
    ctx.publish(options_message(options))


async def listeners_interact(ctx: CommandContext, cmd: List[str]) -> None:
    if len(cmd) < 2:
        ctx.publish(messages.note("you must select a listener to interact with"))
        return
    await enter_listener(ctx, " ".join(cmd[1:]))


async def listeners_list(ctx: CommandContext, cmd: List[str]) -> None:
    found = await ctx.call(ctx.backend.listeners.list)
    rows = [
        (
            listener.name,
            listener.interface,
            str(listener.port),
            listener.protocol,
            listener.status,
            listener.description,
        )
        for listener in found
    ]
    ctx.publish(messages.table(LISTENER_LIST_HEADERS, rows))


async def listeners_start(ctx: CommandContext, cmd: List[str]) -> None:
    ctx.publish(await ctx.call(ctx.backend.listeners.start, _name_arg(cmd)))


async def listeners_stop(ctx: CommandContext, cmd: List[str]) -> None:
    ctx.publish(await ctx.call(ctx.backend.listeners.stop, _name_arg(cmd)))


async def listeners_use(ctx: CommandContext, cmd: List[str]) -> None:
    if len(cmd) < 2:
        ctx.publish(messages.warn("Usage: use <listener_type>"))
        return
    protocol = cmd[1].lower()
    listeners = ctx.backend.listeners
    if protocol not in await ctx.call(listeners.list_types):
        ctx.publish(messages.warn(f"invalid listener type: {cmd[1]}"))
        return
    options = await ctx.call(listeners.default_options, protocol)
    options["Protocol"] = protocol
    ctx.session.transition(MenuContext.LISTENER_SETUP, ListenerDraft(options))


LISTENERS_MAIN_COMMANDS: CommandTable = command_table(
    Command("back", cmd_main, "Return to the main menu"),
    Command("delete", listeners_delete, "Delete a named listener", "delete <listener_name>"),
    Command("help", listeners_help, "Display this message"),
    Command("info", listeners_info, "Display all information about a listener", "info <listener_name>"),
    Command("interact", listeners_interact, "Interact with a named listener to modify it", "interact <listener_name>"),
    Command("list", listeners_list, "List all created listeners"),
    Command("main", cmd_main, "Return to the main menu"),
    Command("quit", cmd_quit, "Exit and close the Merlin server", "-y"),
    Command("start", listeners_start, "Start a named listener", "start <listener_name>"),
    Command("stop", listeners_stop, "Stop a named listener", "stop <listener_name>"),
    Command("use", listeners_use, "Create a new listener by protocol type", "use [http,https,http2,http3,h2c]"),
)


# Listener setup menu


def _draft(ctx: CommandContext) -> ListenerDraft:
    draft = ctx.session.listener_draft
    if draft is None:
        raise ValueError("no listener is being configured")
    return draft


async def setup_help(ctx: CommandContext, cmd: List[str]) -> None:
    ctx.publish(help_message(LISTENER_SETUP_COMMANDS, "Listener Setup Help Menu"))


async def setup_info(ctx: CommandContext, cmd: List[str]) -> None:
    ctx.publish(options_message(_draft(ctx).options))


async def setup_set(ctx: CommandContext, cmd: List[str]) -> None:
    if len(cmd) < 2:
        ctx.publish(messages.warn("Usage: set <option_name> <value>"))
        return
    draft = _draft(ctx)
    if cmd[1] not in draft.options or cmd[1] == "Protocol":
        ctx.publish(messages.warn(f"invalid listener option: {cmd[1]}"))
        return
    value = " ".join(cmd[2:])
    draft.options[cmd[1]] = value
    ctx.publish(messages.success(f"set {cmd[1]} to: {value}"))


async def setup_start(ctx: CommandContext, cmd: List[str]) -> None:
    options = dict(_draft(ctx).options)
    listeners = ctx.backend.listeners
    listener_id = await ctx.call(listeners.create, options)
    name = options["Name"]
    ctx.publish(
        messages.success(f"Created {options['Protocol'].upper()} listener {name}")
    )
    ctx.publish(await ctx.call(listeners.start, name))
    configured = await ctx.call(listeners.configured_options, listener_id)
    status = await ctx.call(listeners.status, listener_id)
    ref = ListenerRef(id=listener_id, name=configured.get("Name", name), status=status.text)
    ctx.session.transition(MenuContext.LISTENER, ref)


async def setup_stop(ctx: CommandContext, cmd: List[str]) -> None:
    name = _draft(ctx).options.get("Name", "")
    ctx.publish(await ctx.call(ctx.backend.listeners.stop, name))


LISTENER_SETUP_COMMANDS: CommandTable = command_table(
    Command("back", cmd_listeners, "Return to the listeners menu"),
    Command("execute", setup_start, "Create and start the listener (alias)"),
    Command("help", setup_help, "Display this message"),
    Command("info", setup_info, "Display all configurable information about a listener"),
    Command("main", cmd_main, "Return to the main menu"),
    Command("quit", cmd_quit, "Exit and close the Merlin server", "-y"),
    Command("run", setup_start, "Create and start the listener (alias)"),
    Command("set", setup_set, "Set a configurable option", "set <option_name> <value>"),
    Command("show", setup_info, "Display all configurable information about a listener"),
    Command("start", setup_start, "Create and start the listener"),
    Command("stop", setup_stop, "Stop the listener"),
)


# Single listener menu


def _listener(ctx: CommandContext) -> ListenerRef:
    listener = ctx.session.listener
    if listener is None:
        raise ValueError("no listener selected")
    return listener


async def listener_delete(ctx: CommandContext, cmd: List[str]) -> None:
    listener = _listener(ctx)
    if not await ctx.confirm(_delete_question(listener.name)):
        return
    removed = await ctx.call(ctx.backend.listeners.remove, listener.name)
    ctx.publish(removed)
    if not removed.is_error:
        ctx.session.transition(MenuContext.LISTENERS_MAIN)


async def listener_help(ctx: CommandContext, cmd: List[str]) -> None:
    ctx.publish(help_message(LISTENER_COMMANDS, "Listener Help Menu"))


async def listener_info(ctx: CommandContext, cmd: List[str]) -> None:
    listener = _listener(ctx)
    listeners = ctx.backend.listeners
    options = await ctx.call(listeners.configured_options, listener.id)
    status = await ctx.call(listeners.status, listener.id)
    if status.is_error:
        ctx.publish(status)
        return
    ctx.publish(options_message(options, {"Status": status.text}))


async def listener_restart(ctx: CommandContext, cmd: List[str]) -> None:
    listener = _listener(ctx)
    listeners = ctx.backend.listeners
    ctx.publish(await ctx.call(listeners.restart, listener.id))
    await _refresh(ctx, listener)


async def listener_set(ctx: CommandContext, cmd: List[str]) -> None:
    listener = _listener(ctx)
    result = await ctx.call(ctx.backend.listeners.set_option, listener.id, cmd)
    ctx.publish(result)
    if not result.is_error:
        await _refresh(ctx, listener)


async def _refresh(ctx: CommandContext, listener: ListenerRef) -> None:
    """Re-snapshot the selected listener (its name or status may have changed)."""
    listeners = ctx.backend.listeners
    options = await ctx.call(listeners.configured_options, listener.id)
    status = await ctx.call(listeners.status, listener.id)
    ref = ListenerRef(
        id=listener.id,
        name=options.get("Name", listener.name),
        status=status.text,
    )
    ctx.session.transition(MenuContext.LISTENER, ref)


async def listener_start(ctx: CommandContext, cmd: List[str]) -> None:
    listener = _listener(ctx)
    ctx.publish(await ctx.call(ctx.backend.listeners.start, listener.name))


async def listener_status(ctx: CommandContext, cmd: List[str]) -> None:
    ctx.publish(await ctx.call(ctx.backend.listeners.status, _listener(ctx).id))


async def listener_stop(ctx: CommandContext, cmd: List[str]) -> None:
    listener = _listener(ctx)
    ctx.publish(await ctx.call(ctx.backend.listeners.stop, listener.name))


LISTENER_COMMANDS: CommandTable = command_table(
    Command("back", cmd_listeners, "Return to the listeners menu"),
    Command("delete", listener_delete, "Delete this listener"),
    Command("remove", listener_delete, alias=True),
    Command("help", listener_help, "Display this message"),
    Command("info", listener_info, "Display all configurable information the current listener"),
    Command("main", cmd_main, "Return to the main menu"),
    Command("quit", cmd_quit, "Exit and close the Merlin server", "-y"),
    Command("restart", listener_restart, "Restart this listener"),
    Command("set", listener_set, "Set a configurable option", "set <option_name> <value>"),
    Command("show", listener_info, "Display all configurable information about a listener"),
    Command("start", listener_start, "Start this listener"),
    Command("status", listener_status, "Get the server's current status"),
    Command("stop", listener_stop, "Stop the listener"),
)
