import uuid

import pytest
from conftest import AGENT_ID, Confirmer, add_agent, drain_messages

from merlin_console.backend import BROADCAST_ID, Backend
from merlin_console.backend.memory import InMemoryJobQueue
from merlin_console.console.commands.main_menu import AGENT_LIST_HEADERS
from merlin_console.console.context import MenuContext
from merlin_console.console.dispatcher import Dispatcher
from merlin_console.console.state import ShellSession
from merlin_console.exceptions import ShellExit
from merlin_console.messages import MessageLevel

OTHER_ID = uuid.UUID("0f0e0d0c-0b0a-4908-8706-050403020100")


@pytest.mark.asyncio
async def test_agent_list_empty_has_headers(
    session: ShellSession, dispatcher: Dispatcher
) -> None:
    await dispatcher.dispatch("agent list")

    (published,) = drain_messages(session)
    assert published.table is not None
    assert published.table.headers == AGENT_LIST_HEADERS
    assert published.table.rows == ()


@pytest.mark.asyncio
async def test_sessions_lists_agents(
    session: ShellSession, dispatcher: Dispatcher, backend: Backend
) -> None:
    add_agent(backend, note="dmz box")
    await dispatcher.dispatch("sessions")

    (published,) = drain_messages(session)
    assert published.table is not None
    (row,) = published.table.rows
    assert row[0] == str(AGENT_ID)
    assert row[1] == "dmz box"
    assert row[2] == "linux/amd64"
    assert row[4] == "HTTP/1.1 over TLS"
    assert row[5] == "Active"
    assert row[7] == "merlin(4242)"


@pytest.mark.asyncio
async def test_interact_enters_agent_menu(
    session: ShellSession, dispatcher: Dispatcher, backend: Backend
) -> None:
    add_agent(backend)
    await dispatcher.dispatch(f"interact {AGENT_ID}")

    assert session.context == MenuContext.AGENT
    assert session.agent_id == AGENT_ID
    assert session.prompt == f"merlin[agent][{AGENT_ID}]» "


@pytest.mark.asyncio
async def test_interact_with_bad_uuid_warns(
    session: ShellSession, dispatcher: Dispatcher
) -> None:
    await dispatcher.dispatch("interact not-a-uuid")

    (published,) = drain_messages(session)
    assert published.level == MessageLevel.WARN
    assert "not-a-uuid" in published.text
    assert session.context == MenuContext.MAIN


@pytest.mark.asyncio
async def test_interact_with_unknown_agent_stays_in_main(
    session: ShellSession, dispatcher: Dispatcher
) -> None:
    await dispatcher.dispatch(f"agent interact {OTHER_ID}")
    assert session.context == MenuContext.MAIN
    assert drain_messages(session)[0].level == MessageLevel.WARN


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "command,usage",
    [
        ("interact", "Usage: interact <agent_id>"),
        ("remove", "Usage: remove <agent_id>"),
    ],
)
async def test_missing_agent_id_warns_with_usage(
    session: ShellSession, dispatcher: Dispatcher, command: str, usage: str
) -> None:
    await dispatcher.dispatch(command)

    (published,) = drain_messages(session)
    assert published.level == MessageLevel.WARN
    assert published.text == usage
    assert session.context == MenuContext.MAIN


@pytest.mark.asyncio
async def test_queue_all_targets_broadcast(
    session: ShellSession, backend: Backend, confirmer: Confirmer
) -> None:
    add_agent(backend)
    add_agent(backend, OTHER_ID)
    seen = []
    original = backend.tasking.task

    def spy(agent_id: uuid.UUID, command):  # type: ignore[no-untyped-def]
        seen.append((agent_id, list(command)))
        return original(agent_id, command)

    backend.tasking.task = spy  # type: ignore[method-assign]
    dispatcher = Dispatcher(session, confirmer)

    await dispatcher.dispatch("queue all ps")

    assert seen == [(BROADCAST_ID, ["ps"])]
    assert backend.jobs.list_jobs(AGENT_ID) == ["ps"]
    assert backend.jobs.list_jobs(OTHER_ID) == ["ps"]
    assert session.context == MenuContext.MAIN


@pytest.mark.asyncio
async def test_queue_with_literal_broadcast_id(
    session: ShellSession, dispatcher: Dispatcher, backend: Backend
) -> None:
    add_agent(backend)
    await dispatcher.dispatch(f"queue {BROADCAST_ID} pwd")
    assert backend.jobs.list_jobs(AGENT_ID) == ["pwd"]


@pytest.mark.asyncio
async def test_queue_for_unregistered_agent_is_unassigned(
    session: ShellSession, dispatcher: Dispatcher, backend: Backend
) -> None:
    await dispatcher.dispatch(f"queue {OTHER_ID} sleep 10 20")

    (published,) = drain_messages(session)
    assert published.level == MessageLevel.NOTE
    assert "sleep 10 20" in backend.jobs.list_unassigned()


@pytest.mark.asyncio
async def test_queue_needs_a_command(
    session: ShellSession, dispatcher: Dispatcher
) -> None:
    await dispatcher.dispatch("queue all")
    (published,) = drain_messages(session)
    assert published.text == "Invalid syntax."


@pytest.mark.asyncio
async def test_queue_rejects_bad_uuid(
    session: ShellSession, dispatcher: Dispatcher
) -> None:
    await dispatcher.dispatch("queue nope ps")
    (published,) = drain_messages(session)
    assert published.level == MessageLevel.WARN
    assert published.text == "Invalid uuid: nope"


@pytest.mark.asyncio
async def test_declined_remove_keeps_agent(
    session: ShellSession, dispatcher: Dispatcher, backend: Backend, confirmer: Confirmer
) -> None:
    add_agent(backend)
    before = session.state

    await dispatcher.dispatch(f"remove {AGENT_ID}")

    assert confirmer.questions == [f"Are you sure you want to remove agent {AGENT_ID}?"]
    assert backend.agents.get(AGENT_ID) is not None
    assert drain_messages(session) == []
    assert session.state is before


@pytest.mark.asyncio
async def test_confirmed_remove_deletes_agent(
    session: ShellSession, backend: Backend
) -> None:
    add_agent(backend)
    dispatcher = Dispatcher(session, Confirmer(True))

    await dispatcher.dispatch(f"agent remove {AGENT_ID}")

    assert backend.agents.get(AGENT_ID) is None
    (published,) = drain_messages(session)
    assert published.level == MessageLevel.INFO
    assert f"Agent {AGENT_ID} was removed from the server at" in published.text


@pytest.mark.asyncio
async def test_remove_unknown_agent_reports_backend_error(
    session: ShellSession, backend: Backend
) -> None:
    dispatcher = Dispatcher(session, Confirmer(True))
    await dispatcher.dispatch(f"remove {OTHER_ID}")
    (published,) = drain_messages(session)
    assert published.is_error
    assert str(OTHER_ID) in published.text


@pytest.mark.asyncio
async def test_clearqueue_requires_confirmation(
    session: ShellSession, backend: Backend
) -> None:
    jobs = backend.jobs
    assert isinstance(jobs, InMemoryJobQueue)
    jobs.add(OTHER_ID, "ps", assigned=False)

    await Dispatcher(session, Confirmer(False)).dispatch("clearqueue")
    assert jobs.list_unassigned() != ""

    await Dispatcher(session, Confirmer(True)).dispatch("clearqueue")
    assert jobs.list_unassigned() == ""
    assert drain_messages(session)[-1].text == "Unassigned jobs removed"


@pytest.mark.asyncio
async def test_listqueue(
    session: ShellSession, dispatcher: Dispatcher, backend: Backend
) -> None:
    jobs = backend.jobs
    assert isinstance(jobs, InMemoryJobQueue)
    jobs.add(OTHER_ID, "pwd", assigned=False)

    await dispatcher.dispatch("listqueue")
    (published,) = drain_messages(session)
    assert published.text == f"Unassigned jobs: \n{OTHER_ID}: pwd"


@pytest.mark.asyncio
async def test_set_debug_toggles_flag(
    session: ShellSession, dispatcher: Dispatcher
) -> None:
    await dispatcher.dispatch("set debug true")
    assert session.settings.debug is True
    await dispatcher.dispatch("set verbose true")
    assert session.settings.verbose is True
    await dispatcher.dispatch("set debug false")
    assert session.settings.debug is False

    texts = [m.text for m in drain_messages(session)]
    assert texts == [
        "Debug output enabled",
        "Verbose output enabled",
        "Debug output disabled",
    ]


@pytest.mark.asyncio
async def test_set_rejects_unknown_flag(
    session: ShellSession, dispatcher: Dispatcher
) -> None:
    await dispatcher.dispatch("set colour true")
    assert drain_messages(session)[0].level == MessageLevel.WARN


@pytest.mark.asyncio
async def test_listeners_enters_listeners_menu(
    session: ShellSession, dispatcher: Dispatcher
) -> None:
    await dispatcher.dispatch("listeners")
    assert session.context == MenuContext.LISTENERS_MAIN
    assert session.prompt == "merlin[listeners]» "


@pytest.mark.asyncio
async def test_use_module_invalid_forms(
    session: ShellSession, dispatcher: Dispatcher
) -> None:
    await dispatcher.dispatch("use")
    await dispatcher.dispatch("use module")
    await dispatcher.dispatch("use module missing/thing")

    first, second, third = drain_messages(session)
    assert first.text == "Invalid 'use' command"
    assert second.text == "Invalid module"
    assert third.is_error
    assert session.context == MenuContext.MAIN


@pytest.mark.asyncio
async def test_help_and_banner(
    session: ShellSession, dispatcher: Dispatcher
) -> None:
    await dispatcher.dispatch("help")
    await dispatcher.dispatch("banner")
    await dispatcher.dispatch("version")

    version_line, help_table, banner, version = drain_messages(session)
    assert help_table.table is not None
    commands = [row[0] for row in help_table.table.rows]
    assert "queue" in commands
    assert "?" not in commands
    assert "Version:" in banner.text
    assert version.text.startswith("Merlin version:")


@pytest.mark.asyncio
async def test_quit_with_flag_skips_confirmation(
    dispatcher: Dispatcher, confirmer: Confirmer
) -> None:
    with pytest.raises(ShellExit):
        await dispatcher.dispatch("quit -y")
    assert confirmer.questions == []


@pytest.mark.asyncio
async def test_declined_quit_stays(
    session: ShellSession, dispatcher: Dispatcher, confirmer: Confirmer
) -> None:
    await dispatcher.dispatch("quit")
    assert confirmer.questions == ["Are you sure you want to exit the server?"]
    assert session.context == MenuContext.MAIN


@pytest.mark.asyncio
async def test_confirmed_quit_exits(session: ShellSession) -> None:
    with pytest.raises(ShellExit):
        await Dispatcher(session, Confirmer(True)).dispatch("quit")
