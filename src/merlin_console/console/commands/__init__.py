"""
Per-context command tables.
"""

from typing import Dict

from merlin_console.console.commands.agent_menu import AGENT_COMMANDS
from merlin_console.console.commands.listener_menus import (
    LISTENER_COMMANDS,
    LISTENER_SETUP_COMMANDS,
    LISTENERS_MAIN_COMMANDS,
)
from merlin_console.console.commands.main_menu import MAIN_COMMANDS
from merlin_console.console.commands.module_menu import MODULE_COMMANDS
from merlin_console.console.context import MenuContext
from merlin_console.console.dispatcher import CommandTable

__all__ = ["build_command_tables"]


def build_command_tables() -> Dict[MenuContext, CommandTable]:
    """Return the command table for every menu context."""
    return {
        MenuContext.MAIN: MAIN_COMMANDS,
        MenuContext.MODULE: MODULE_COMMANDS,
        MenuContext.AGENT: AGENT_COMMANDS,
        MenuContext.LISTENERS_MAIN: LISTENERS_MAIN_COMMANDS,
        MenuContext.LISTENER_SETUP: LISTENER_SETUP_COMMANDS,
        MenuContext.LISTENER: LISTENER_COMMANDS,
    }
