import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List

import pytest
from rich.console import Console

import merlin_console.console.rendering as rendering
from merlin_console.backend import AgentInfo, Backend
from merlin_console.backend.memory import InMemoryAgentRegistry, build_memory_backend
from merlin_console.console.dispatcher import Dispatcher
from merlin_console.console.state import ShellSession
from merlin_console.message_bus import MessageBus
from merlin_console.messages import UserMessage
from merlin_console.runtime_config import RuntimeConfig

AGENT_ID = uuid.UUID("8b9d4a0e-1c3f-4e8e-9a57-2f6d1c0b7e11")


class Confirmer:
    """Scripted Yes/No answers; records every question asked."""

    def __init__(self, *answers: bool) -> None:
        self.answers = list(answers)
        self.questions: List[str] = []

    async def __call__(self, question: str) -> bool:
        self.questions.append(question)
        return self.answers.pop(0) if self.answers else False


class MockConsole:
    """Mock console for testing."""

    def __init__(self, session: ShellSession, config: RuntimeConfig):
        self.session = session
        self.config = config
        self.run_called = False

    async def run(self) -> None:
        self.run_called = True


def drain_messages(session: ShellSession) -> List[UserMessage]:
    """Read everything currently waiting in the session's inbox."""
    out: List[UserMessage] = []
    while True:
        message = session.backend.bus.get_message(session.client_id, timeout=0)
        if message is None:
            return out
        out.append(message)


def add_agent(backend: Backend, agent_id: uuid.UUID = AGENT_ID, **kwargs: object) -> AgentInfo:
    agent = AgentInfo(
        id=agent_id,
        platform="linux",
        architecture="amd64",
        hostname="web01",
        username="www-data",
        process="/usr/bin/merlin",
        pid=4242,
        proto="https",
        status_checkin=datetime.now(timezone.utc),
        **kwargs,  # type: ignore[arg-type]
    )
    registry = backend.agents
    assert isinstance(registry, InMemoryAgentRegistry)
    registry.add(agent)
    return agent


@pytest.fixture
def modules_dir(tmp_path: Path) -> Path:
    path = tmp_path / "modules"
    path.mkdir()
    return path


@pytest.fixture
def backend(modules_dir: Path) -> Backend:
    return build_memory_backend(modules_dir, MessageBus(publish_timeout=0.01))


@pytest.fixture
def session(backend: Backend) -> ShellSession:
    shell = ShellSession(backend)
    shell.register()
    return shell


@pytest.fixture
def confirmer() -> Confirmer:
    return Confirmer()


@pytest.fixture
def dispatcher(session: ShellSession, confirmer: Confirmer) -> Dispatcher:
    return Dispatcher(session, confirmer)


@pytest.fixture
def record_console(monkeypatch: pytest.MonkeyPatch) -> Console:
    """Replace rendering.console with a record-capable Console."""
    recorder = Console(record=True, width=120)
    monkeypatch.setattr(rendering, "console", recorder)
    return recorder


@pytest.fixture(autouse=True)
def restore_root_logger() -> Iterator[None]:
    """Drop handlers a test attached to the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)
