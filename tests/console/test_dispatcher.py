import threading
from typing import List

import pytest
from conftest import Confirmer, drain_messages

from merlin_console import messages
from merlin_console.console.context import MenuContext
from merlin_console.console.dispatcher import (
    Command,
    CommandContext,
    Dispatcher,
    command_table,
)
from merlin_console.console.state import ShellSession
from merlin_console.exceptions import BackendError, ShellExit
from merlin_console.messages import MessageLevel


def tables_with(*commands: Command):  # type: ignore[no-untyped-def]
    return {context: command_table(*commands) for context in MenuContext}


@pytest.mark.asyncio
@pytest.mark.parametrize("context", [MenuContext.MAIN, MenuContext.LISTENERS_MAIN])
async def test_unknown_command_publishes_once_and_keeps_state(
    session: ShellSession, dispatcher: Dispatcher, context: MenuContext
) -> None:
    session.transition(context)
    before = session.state

    await dispatcher.dispatch("frobnicate now")

    published = drain_messages(session)
    assert len(published) == 1
    assert published[0].level == MessageLevel.INFO
    assert published[0].text == "Unknown command"
    assert session.state is before


@pytest.mark.asyncio
async def test_empty_line_is_ignored(
    session: ShellSession, dispatcher: Dispatcher
) -> None:
    before = session.state
    await dispatcher.dispatch("")
    await dispatcher.dispatch("   ")
    assert drain_messages(session) == []
    assert session.state is before


@pytest.mark.asyncio
async def test_command_names_are_case_insensitive(
    session: ShellSession, dispatcher: Dispatcher
) -> None:
    await dispatcher.dispatch("LISTENERS")
    assert session.context == MenuContext.LISTENERS_MAIN


@pytest.mark.asyncio
async def test_backend_error_published_verbatim(
    session: ShellSession, confirmer: Confirmer
) -> None:
    failure = messages.warn("listener exploded", is_error=True)

    async def explode(ctx: CommandContext, cmd: List[str]) -> None:
        raise BackendError(failure)

    dispatcher = Dispatcher(session, confirmer, tables_with(Command("boom", explode)))
    await dispatcher.dispatch("boom")

    assert drain_messages(session) == [failure]


@pytest.mark.asyncio
async def test_value_error_becomes_warning(
    session: ShellSession, confirmer: Confirmer
) -> None:
    async def bad_input(ctx: CommandContext, cmd: List[str]) -> None:
        raise ValueError("Invalid uuid: nope")

    dispatcher = Dispatcher(session, confirmer, tables_with(Command("bad", bad_input)))
    await dispatcher.dispatch("bad")

    (published,) = drain_messages(session)
    assert published.level == MessageLevel.WARN
    assert published.text == "Invalid uuid: nope"


@pytest.mark.asyncio
async def test_unexpected_error_is_reported(
    session: ShellSession, confirmer: Confirmer
) -> None:
    async def crash(ctx: CommandContext, cmd: List[str]) -> None:
        raise RuntimeError("disk on fire")

    dispatcher = Dispatcher(session, confirmer, tables_with(Command("crash", crash)))
    await dispatcher.dispatch("crash")

    (published,) = drain_messages(session)
    assert published.level == MessageLevel.WARN
    assert published.text == "Error executing crash: disk on fire"
    assert published.is_error


@pytest.mark.asyncio
async def test_shell_exit_propagates(
    session: ShellSession, confirmer: Confirmer
) -> None:
    async def leave(ctx: CommandContext, cmd: List[str]) -> None:
        raise ShellExit()

    dispatcher = Dispatcher(session, confirmer, tables_with(Command("leave", leave)))
    with pytest.raises(ShellExit):
        await dispatcher.dispatch("leave")


@pytest.mark.asyncio
async def test_messages_keep_publish_order(
    session: ShellSession, confirmer: Confirmer
) -> None:
    async def chatty(ctx: CommandContext, cmd: List[str]) -> None:
        for i in range(5):
            ctx.publish(messages.info(f"step {i}"))

    dispatcher = Dispatcher(session, confirmer, tables_with(Command("chatty", chatty)))
    await dispatcher.dispatch("chatty")

    assert [m.text for m in drain_messages(session)] == [f"step {i}" for i in range(5)]


@pytest.mark.asyncio
@pytest.mark.parametrize("context", list(MenuContext))
async def test_every_context_has_a_quit(
    session: ShellSession, dispatcher: Dispatcher, context: MenuContext
) -> None:
    assert "quit" in dispatcher.table_for(context)
    assert "help" in dispatcher.table_for(context)


@pytest.mark.asyncio
async def test_collaborator_calls_run_off_the_loop_thread(
    session: ShellSession, confirmer: Confirmer
) -> None:
    threads: List[int] = []

    async def handler(ctx: CommandContext, cmd: List[str]) -> None:
        threads.append(await ctx.call(threading.get_ident))

    dispatcher = Dispatcher(session, confirmer, tables_with(Command("work", handler)))
    await dispatcher.dispatch("work")

    assert threads and threads[0] != threading.get_ident()
