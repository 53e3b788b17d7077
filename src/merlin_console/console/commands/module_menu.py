"""
Module menu commands.
"""

from typing import List

from merlin_console import messages
from merlin_console.backend import ModuleRef
from merlin_console.console.commands.common import (
    cmd_main,
    cmd_quit,
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


def _module(ctx: CommandContext) -> ModuleRef:
    module = ctx.session.module
    if module is None:
        raise ValueError("no module selected")
    return module


def _info_message(module: ModuleRef) -> messages.UserMessage:
    rows = [
        ("Name", module.name),
        ("Path", str(module.path)),
        ("Description", module.description),
    ]
    return messages.table(("Name", "Value"), rows, title="Module Information")


async def cmd_info(ctx: CommandContext, cmd: List[str]) -> None:
    ctx.publish(_info_message(_module(ctx)))


async def cmd_show(ctx: CommandContext, cmd: List[str]) -> None:
    if len(cmd) < 2:
        ctx.publish(messages.warn("Usage: show info|options"))
        return
    module = _module(ctx)
    what = cmd[1].lower()
    if what == "info":
        ctx.publish(_info_message(module))
    elif what == "options":
        ctx.publish(options_message(module.options))
    else:
        ctx.publish(messages.warn(f"Invalid show command: {cmd[1]}"))


async def cmd_set(ctx: CommandContext, cmd: List[str]) -> None:
    if len(cmd) < 3:
        ctx.publish(messages.warn("Usage: set <option name> <option value>"))
        return
    module = _module(ctx)
    if cmd[1] == "Agent":
        result = module.set_agent(cmd[2])
    else:
        result = module.set_option(cmd[1], cmd[2:])
    ctx.publish(messages.success(result))


async def cmd_unset(ctx: CommandContext, cmd: List[str]) -> None:
    if len(cmd) < 2:
        ctx.publish(messages.warn("Usage: unset <option name>"))
        return
    ctx.publish(messages.success(_module(ctx).set_option(cmd[1], None)))


async def cmd_reload(ctx: CommandContext, cmd: List[str]) -> None:
    module = await ctx.call(ctx.backend.modules.load, _module(ctx).path)
    ctx.session.transition(MenuContext.MODULE, module)


async def cmd_run(ctx: CommandContext, cmd: List[str]) -> None:
    module = _module(ctx)
    results = await ctx.call(lambda: list(ctx.backend.modules.run(module)))
    for message in results:
        ctx.publish(message)


async def cmd_help(ctx: CommandContext, cmd: List[str]) -> None:
    ctx.publish(help_message(MODULE_COMMANDS, "Module Menu Help"))


MODULE_COMMANDS: CommandTable = command_table(
    Command("back", cmd_main, "Return to the main menu"),
    Command("help", cmd_help, "Display this message"),
    Command("?", cmd_help, alias=True),
    Command("info", cmd_info, "Show information about a module"),
    Command("main", cmd_main, "Return to the main menu"),
    Command("quit", cmd_quit, "Exit and close the Merlin server", "-y"),
    Command("reload", cmd_reload, "Reloads the module to a fresh clean state"),
    Command("run", cmd_run, "Run or execute the module"),
    Command("set", cmd_set, "Set the value for one of the module's options", "<option name> <option value>"),
    Command("show", cmd_show, "Show information about a module or its options", "info, options"),
    Command("unset", cmd_unset, "Clear a module option to empty", "<option name>"),
)
