"""
Menu contexts and the selections they own.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Union

from merlin_console.backend import ModuleRef


class MenuContext(str, Enum):
    """The active menu; decides which commands are recognized."""

    MAIN = "main"
    MODULE = "module"
    AGENT = "agent"
    LISTENER = "listener"
    LISTENERS_MAIN = "listenersmain"
    LISTENER_SETUP = "listenersetup"


@dataclass(frozen=True)
class AgentRef:
    id: uuid.UUID


@dataclass(frozen=True)
class ListenerRef:
    """Snapshot of an instantiated listener taken when it was selected."""

    id: uuid.UUID
    name: str
    status: str = ""


@dataclass
class ListenerDraft:
    """Options of a listener being configured, before it is created."""

    options: Dict[str, str] = field(default_factory=dict)

    @property
    def protocol(self) -> str:
        return self.options.get("Protocol", "")


Selection = Optional[Union[ModuleRef, AgentRef, ListenerRef, ListenerDraft]]

# Selection type each context requires; contexts not listed take none
REQUIRED_SELECTION = {
    MenuContext.MODULE: ModuleRef,
    MenuContext.AGENT: AgentRef,
    MenuContext.LISTENER: ListenerRef,
    MenuContext.LISTENER_SETUP: ListenerDraft,
}

PROMPT_BASE = "merlin"


def prompt_text(context: MenuContext, selection: Selection) -> str:
    """Plain prompt text for a context; styling is added by the renderer."""
    match context, selection:
        case MenuContext.MODULE, ModuleRef(name=name):
            return f"{PROMPT_BASE}[module][{name}]» "
        case MenuContext.AGENT, AgentRef(id=agent_id):
            return f"{PROMPT_BASE}[agent][{agent_id}]» "
        case MenuContext.LISTENER, ListenerRef(name=name):
            return f"{PROMPT_BASE}[listeners][{name}]» "
        case MenuContext.LISTENER_SETUP, ListenerDraft() as draft:
            return f"{PROMPT_BASE}[listeners][{draft.protocol}]» "
        case MenuContext.LISTENERS_MAIN, _:
            return f"{PROMPT_BASE}[listeners]» "
        case _:
            return f"{PROMPT_BASE}» "
