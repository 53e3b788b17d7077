"""
Collaborator contracts the console talks to.

The agent registry, agent tasking, listeners, modules and the job queue live
outside the console. Action calls return a UserMessage (``is_error`` set on
failure); query calls raise BackendError carrying the message to show.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, runtime_checkable

from merlin_console.message_bus import MessageBus
from merlin_console.messages import UserMessage

__all__ = [
    "BROADCAST_ID",
    "AgentInfo",
    "AgentRegistry",
    "AgentTasking",
    "Backend",
    "JobQueue",
    "ListenerAPI",
    "ListenerInfo",
    "ModuleAPI",
    "ModuleRef",
]

# Reserved agent id meaning "every agent"
BROADCAST_ID = uuid.UUID("ffffffff-ffff-ffff-ffff-ffffffffffff")


@dataclass
class AgentInfo:
    """Registry snapshot of one agent."""

    id: uuid.UUID
    platform: str = ""
    architecture: str = ""
    hostname: str = ""
    username: str = ""
    process: str = ""
    pid: int = 0
    proto: str = ""
    note: str = ""
    status_checkin: Optional[datetime] = None


@dataclass
class ListenerInfo:
    """Registry snapshot of one listener."""

    id: uuid.UUID
    name: str
    interface: str
    port: int
    protocol: str
    status: str
    description: str = ""


@dataclass
class ModuleRef:
    """A loaded module with its mutable option map."""

    name: str
    path: Path
    description: str = ""
    options: Dict[str, str] = field(default_factory=dict)

    def option_names(self) -> List[str]:
        return sorted(self.options)

    def _resolve(self, name: str) -> str:
        for key in self.options:
            if key.lower() == name.lower():
                return key
        raise ValueError(f"invalid module option: {name}")

    def set_option(self, name: str, values: Optional[Sequence[str]]) -> str:
        """Set (or clear, when ``values`` is None) a module option."""
        key = self._resolve(name)
        self.options[key] = " ".join(values) if values else ""
        return f"{key} set to {self.options[key]}"

    def set_agent(self, value: str) -> str:
        """Set the Agent option; ``all`` targets every agent."""
        if value.lower() == "all":
            agent_id = BROADCAST_ID
        else:
            try:
                agent_id = uuid.UUID(value)
            except ValueError:
                raise ValueError(f"invalid uuid: {value}") from None
        self.options["Agent"] = str(agent_id)
        return f"Agent set to {agent_id}"


@runtime_checkable
class AgentRegistry(Protocol):
    def get(self, agent_id: uuid.UUID) -> Optional[AgentInfo]: ...

    def list(self) -> List[AgentInfo]: ...

    def remove(self, agent_id: uuid.UUID) -> None: ...

    def status(self, agent_id: uuid.UUID) -> str: ...

    def set_note(self, agent_id: uuid.UUID, note: str) -> None: ...

    def info(self, agent_id: uuid.UUID) -> Dict[str, str]: ...


@runtime_checkable
class AgentTasking(Protocol):
    def task(self, agent_id: uuid.UUID, command: Sequence[str]) -> UserMessage: ...


@runtime_checkable
class ListenerAPI(Protocol):
    def create(self, options: Dict[str, str]) -> uuid.UUID: ...

    def start(self, name: str) -> UserMessage: ...

    def stop(self, name: str) -> UserMessage: ...

    def restart(self, listener_id: uuid.UUID) -> UserMessage: ...

    def remove(self, name: str) -> UserMessage: ...

    def exists(self, name: str) -> UserMessage: ...

    def status(self, listener_id: uuid.UUID) -> UserMessage: ...

    def configured_options(self, listener_id: uuid.UUID) -> Dict[str, str]: ...

    def set_option(
        self, listener_id: uuid.UUID, command: Sequence[str]
    ) -> UserMessage: ...

    def get_by_name(self, name: str) -> uuid.UUID: ...

    def default_options(self, protocol: str) -> Dict[str, str]: ...

    def list(self) -> List[ListenerInfo]: ...

    def list_types(self) -> List[str]: ...

    def list_names(self) -> List[str]: ...


@runtime_checkable
class ModuleAPI(Protocol):
    def load(self, path: Path) -> ModuleRef: ...

    def run(self, module: ModuleRef) -> List[UserMessage]: ...

    def list(self) -> List[str]: ...

    def path_for(self, name: str) -> Path: ...


@runtime_checkable
class JobQueue(Protocol):
    def list_unassigned(self) -> str: ...

    def clear_unassigned(self) -> None: ...

    def list_jobs(self, agent_id: uuid.UUID) -> List[str]: ...

    def clear_jobs(self, agent_id: uuid.UUID) -> None: ...


@dataclass
class Backend:
    """Bundle of collaborators handed to the console."""

    agents: AgentRegistry
    tasking: AgentTasking
    listeners: ListenerAPI
    modules: ModuleAPI
    jobs: JobQueue
    bus: MessageBus
