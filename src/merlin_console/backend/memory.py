"""
In-memory reference backend.

Implements every collaborator contract with plain dictionaries behind a lock,
so the console can run standalone and tests can drive it end to end. Nothing
here touches the network.
"""

import json
import logging
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from merlin_console import messages
from merlin_console.backend import (
    BROADCAST_ID,
    AgentInfo,
    Backend,
    ListenerInfo,
    ModuleRef,
)
from merlin_console.exceptions import BackendError
from merlin_console.message_bus import MessageBus
from merlin_console.messages import UserMessage

logger = logging.getLogger(__name__)

LISTENER_TYPES = ["http", "https", "h2c", "http2", "http3"]

# Minimum number of arguments (after the command name) for each tasking command
TASK_ARITY: Dict[str, int] = {
    "batchcommands": 1,
    "cd": 1,
    "download": 1,
    "exec": 1,
    "exit": 0,
    "ifconfig": 0,
    "ipconfig": 0,
    "inactivemultiplier": 1,
    "inactivethreshold": 1,
    "ja3": 1,
    "kill": 1,
    "killdate": 1,
    "ls": 0,
    "maxretry": 1,
    "module": 1,
    "padding": 1,
    "ps": 0,
    "pwd": 0,
    "sdelete": 1,
    "shinject": 1,
    "sleep": 1,
    "timestomp": 2,
    "touch": 2,
    "upload": 2,
    "winexec": 1,
}


class InMemoryJobQueue:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._unassigned: List[Tuple[uuid.UUID, str]] = []
        self._jobs: Dict[uuid.UUID, List[str]] = {}

    def add(self, agent_id: uuid.UUID, command: str, assigned: bool = True) -> None:
        with self._lock:
            if assigned:
                self._jobs.setdefault(agent_id, []).append(command)
            else:
                self._unassigned.append((agent_id, command))

    def list_unassigned(self) -> str:
        with self._lock:
            return "\n".join(f"{agent}: {cmd}" for agent, cmd in self._unassigned)

    def clear_unassigned(self) -> None:
        with self._lock:
            self._unassigned.clear()

    def list_jobs(self, agent_id: uuid.UUID) -> List[str]:
        with self._lock:
            return list(self._jobs.get(agent_id, []))

    def clear_jobs(self, agent_id: uuid.UUID) -> None:
        with self._lock:
            self._jobs.pop(agent_id, None)


class InMemoryAgentRegistry:
    """Agent registry; status is derived from the last check-in time."""

    def __init__(self, sleep: timedelta = timedelta(seconds=30)) -> None:
        self._lock = threading.Lock()
        self._agents: Dict[uuid.UUID, AgentInfo] = {}
        self._sleep = sleep

    def add(self, agent: AgentInfo) -> None:
        with self._lock:
            self._agents[agent.id] = agent

    def get(self, agent_id: uuid.UUID) -> Optional[AgentInfo]:
        with self._lock:
            agent = self._agents.get(agent_id)
            return replace(agent) if agent else None

    def list(self) -> List[AgentInfo]:
        with self._lock:
            return [replace(agent) for agent in self._agents.values()]

    def remove(self, agent_id: uuid.UUID) -> None:
        with self._lock:
            if agent_id not in self._agents:
                raise BackendError(
                    messages.warn(f"{agent_id} is not a known agent", is_error=True)
                )
            del self._agents[agent_id]
        logger.info("Removed agent %s", agent_id)

    def status(self, agent_id: uuid.UUID) -> str:
        agent = self.get(agent_id)
        if agent is None:
            return "Unknown"
        if agent.status_checkin is None:
            return "Init"
        elapsed = datetime.now(timezone.utc) - agent.status_checkin
        if elapsed <= self._sleep:
            return "Active"
        if elapsed <= self._sleep * 3:
            return "Delayed"
        return "Dead"

    def set_note(self, agent_id: uuid.UUID, note: str) -> None:
        with self._lock:
            agent = self._agents.get(agent_id)
            if agent is None:
                raise BackendError(
                    messages.warn(f"{agent_id} is not a known agent", is_error=True)
                )
            agent.note = note

    def info(self, agent_id: uuid.UUID) -> Dict[str, str]:
        agent = self.get(agent_id)
        if agent is None:
            raise BackendError(
                messages.warn(f"{agent_id} is not a known agent", is_error=True)
            )
        checkin = agent.status_checkin.isoformat() if agent.status_checkin else ""
        return {
            "ID": str(agent.id),
            "Status": self.status(agent_id),
            "Platform": f"{agent.platform}/{agent.architecture}",
            "Host Name": agent.hostname,
            "User Name": agent.username,
            "Process": f"{agent.process}({agent.pid})",
            "Protocol": agent.proto,
            "Note": agent.note,
            "Last Check In": checkin,
        }


class InMemoryTasking:
    """Turns tasking commands into queued jobs."""

    def __init__(self, registry: InMemoryAgentRegistry, jobs: InMemoryJobQueue) -> None:
        self._registry = registry
        self._jobs = jobs

    def task(self, agent_id: uuid.UUID, command: Sequence[str]) -> UserMessage:
        if not command:
            return messages.warn("no command provided", is_error=True)
        name = command[0].lower()
        if name not in TASK_ARITY:
            return messages.warn(f"unknown tasking command: {name}", is_error=True)
        if len(command) - 1 < TASK_ARITY[name]:
            return messages.warn(
                f"not enough arguments provided for the {name} command",
                is_error=True,
            )

        line = " ".join(command)
        if agent_id == BROADCAST_ID:
            agents = self._registry.list()
            for agent in agents:
                self._jobs.add(agent.id, line)
            return messages.note(f"Created job '{line}' for {len(agents)} agent(s)")
        if self._registry.get(agent_id) is None:
            self._jobs.add(agent_id, line, assigned=False)
            return messages.note(
                f"Created job '{line}' for unregistered agent {agent_id}"
            )
        self._jobs.add(agent_id, line)
        return messages.note(f"Created job '{line}' for agent {agent_id}")


class InMemoryListenerAPI:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: Dict[uuid.UUID, Dict[str, str]] = {}
        self._status: Dict[uuid.UUID, str] = {}

    def _find(self, name: str) -> Optional[uuid.UUID]:
        for listener_id, options in self._listeners.items():
            if options["Name"] == name:
                return listener_id
        return None

    def _not_found(self, name: str) -> UserMessage:
        return messages.warn(f"{name} is not a valid listener", is_error=True)

    def default_options(self, protocol: str) -> Dict[str, str]:
        protocol = protocol.lower()
        if protocol not in LISTENER_TYPES:
            raise BackendError(
                messages.warn(f"invalid listener type: {protocol}", is_error=True)
            )
        port = "80" if protocol in ("http", "h2c") else "443"
        return {
            "Name": "Default",
            "Description": "Default listener",
            "Interface": "127.0.0.1",
            "Port": port,
            "Protocol": protocol,
            "PSK": "merlin",
            "URLS": "/",
        }

    def create(self, options: Dict[str, str]) -> uuid.UUID:
        name = options.get("Name", "").strip()
        if not name:
            raise BackendError(messages.warn("a listener name is required", is_error=True))
        if not options.get("Port", "").isdigit():
            raise BackendError(
                messages.warn(f"invalid port: {options.get('Port')}", is_error=True)
            )
        with self._lock:
            if self._find(name) is not None:
                raise BackendError(
                    messages.warn(f"a {name} listener already exists", is_error=True)
                )
            listener_id = uuid.uuid4()
            self._listeners[listener_id] = dict(options)
            self._status[listener_id] = "Created"
        logger.info("Created listener %s (%s)", name, listener_id)
        return listener_id

    def start(self, name: str) -> UserMessage:
        with self._lock:
            listener_id = self._find(name)
            if listener_id is None:
                return self._not_found(name)
            self._status[listener_id] = "Running"
            options = self._listeners[listener_id]
        return messages.success(
            f"Started {options['Protocol'].upper()} listener on "
            f"{options['Interface']}:{options['Port']}"
        )

    def stop(self, name: str) -> UserMessage:
        with self._lock:
            listener_id = self._find(name)
            if listener_id is None:
                return self._not_found(name)
            self._status[listener_id] = "Stopped"
        return messages.success(f"{name} listener was stopped")

    def restart(self, listener_id: uuid.UUID) -> UserMessage:
        with self._lock:
            if listener_id not in self._listeners:
                return messages.warn(f"{listener_id} is not a valid listener", is_error=True)
            self._status[listener_id] = "Running"
            name = self._listeners[listener_id]["Name"]
        return messages.success(f"{name} listener was restarted")

    def remove(self, name: str) -> UserMessage:
        with self._lock:
            listener_id = self._find(name)
            if listener_id is None:
                return self._not_found(name)
            del self._listeners[listener_id]
            del self._status[listener_id]
        logger.info("Removed listener %s", name)
        return messages.success(f"deleted listener {name}")

    def exists(self, name: str) -> UserMessage:
        with self._lock:
            if self._find(name) is None:
                return self._not_found(name)
        return messages.debug(f"{name} listener exists")

    def status(self, listener_id: uuid.UUID) -> UserMessage:
        with self._lock:
            status = self._status.get(listener_id)
        if status is None:
            return messages.warn(f"{listener_id} is not a valid listener", is_error=True)
        return messages.plain(status)

    def configured_options(self, listener_id: uuid.UUID) -> Dict[str, str]:
        with self._lock:
            options = self._listeners.get(listener_id)
            if options is None:
                raise BackendError(
                    messages.warn(f"{listener_id} is not a valid listener", is_error=True)
                )
            return dict(options)

    def set_option(self, listener_id: uuid.UUID, command: Sequence[str]) -> UserMessage:
        if len(command) < 3:
            return messages.warn("not enough arguments provided", is_error=True)
        key, value = command[1], " ".join(command[2:])
        with self._lock:
            options = self._listeners.get(listener_id)
            if options is None:
                return messages.warn(f"{listener_id} is not a valid listener", is_error=True)
            if key not in options or key == "Protocol":
                return messages.warn(f"invalid listener option: {key}", is_error=True)
            if key == "Name" and self._find(value) not in (None, listener_id):
                return messages.warn(f"a {value} listener already exists", is_error=True)
            options[key] = value
        return messages.success(f"set {key} to: {value}")

    def get_by_name(self, name: str) -> uuid.UUID:
        with self._lock:
            listener_id = self._find(name)
        if listener_id is None:
            raise BackendError(self._not_found(name))
        return listener_id

    def list(self) -> List[ListenerInfo]:
        with self._lock:
            return [
                ListenerInfo(
                    id=listener_id,
                    name=options["Name"],
                    interface=options.get("Interface", ""),
                    port=int(options.get("Port", "0") or 0),
                    protocol=options.get("Protocol", ""),
                    status=self._status[listener_id],
                    description=options.get("Description", ""),
                )
                for listener_id, options in self._listeners.items()
            ]

    def list_types(self) -> List[str]:
        return list(LISTENER_TYPES)

    def list_names(self) -> List[str]:
        with self._lock:
            return [options["Name"] for options in self._listeners.values()]


class InMemoryModuleAPI:
    """Loads JSON module definitions from a directory and runs them as jobs."""

    def __init__(self, modules_dir: Path, tasking: InMemoryTasking) -> None:
        self._modules_dir = modules_dir
        self._tasking = tasking

    def path_for(self, name: str) -> Path:
        return self._modules_dir / f"{name}.json"

    def list(self) -> List[str]:
        if not self._modules_dir.is_dir():
            return []
        return sorted(
            path.relative_to(self._modules_dir).with_suffix("").as_posix()
            for path in self._modules_dir.rglob("*.json")
        )

    def load(self, path: Path) -> ModuleRef:
        try:
            data = json.loads(path.read_text())
        except FileNotFoundError:
            raise BackendError(
                messages.warn(f"module not found: {path}", is_error=True)
            ) from None
        except (OSError, json.JSONDecodeError) as e:
            raise BackendError(
                messages.warn(f"error loading module {path}: {e}", is_error=True)
            ) from e

        name = data.get("name", "")
        if not name:
            raise BackendError(
                messages.warn(f"module {path} does not declare a name", is_error=True)
            )
        options = {str(k): str(v) for k, v in data.get("options", {}).items()}
        options.setdefault("Agent", "")
        return ModuleRef(
            name=name,
            path=path,
            description=data.get("description", ""),
            options=options,
        )

    def run(self, module: ModuleRef) -> List[UserMessage]:
        target = module.options.get("Agent", "")
        try:
            agent_id = uuid.UUID(target)
        except ValueError:
            return [messages.warn("the Agent option must be set", is_error=True)]

        args = [
            f"{key}={value}"
            for key, value in sorted(module.options.items())
            if key != "Agent" and value
        ]
        return [self._tasking.task(agent_id, ["module", module.name, *args])]


def build_memory_backend(
    modules_dir: Path,
    bus: Optional[MessageBus] = None,
) -> Backend:
    """Wire the in-memory collaborators together."""
    jobs = InMemoryJobQueue()
    agents = InMemoryAgentRegistry()
    tasking = InMemoryTasking(agents, jobs)
    return Backend(
        agents=agents,
        tasking=tasking,
        listeners=InMemoryListenerAPI(),
        modules=InMemoryModuleAPI(modules_dir, tasking),
        jobs=jobs,
        bus=bus or MessageBus(),
    )
