"""
Tab completion.

Each menu context has a static tree of command names. Some branches are
``Dynamic`` nodes whose values come from a provider called at completion time
(agent ids, listener names, module options...), so suggestions always reflect
the registries as they are when Tab is pressed.
"""

import logging
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Callable,
    Generator,
    Iterable,
    List,
    Sequence,
    Tuple,
    Union,
)

from prompt_toolkit.completion import CompleteEvent, Completer, Completion
from prompt_toolkit.document import Document

from merlin_console.console.context import MenuContext

if TYPE_CHECKING:
    from merlin_console.console.state import ShellSession

logger = logging.getLogger(__name__)

Provider = Callable[[], Iterable[str]]


@dataclass(frozen=True)
class Item:
    """A literal word."""

    name: str
    children: Tuple["Node", ...] = ()


@dataclass(frozen=True)
class Dynamic:
    """Words supplied by ``provider`` each time completion runs."""

    provider: Provider
    children: Tuple["Node", ...] = ()


Node = Union[Item, Dynamic]


@dataclass(frozen=True)
class CompletionTree:
    context: MenuContext
    children: Tuple[Node, ...]


def item(name: str, *children: Node) -> Item:
    return Item(name, tuple(children))


def dynamic(provider: Provider, *children: Node) -> Dynamic:
    return Dynamic(provider, tuple(children))


def node_words(node: Node) -> List[str]:
    """Words a node offers; a failing provider offers none."""
    if isinstance(node, Item):
        return [node.name]
    try:
        return [str(word) for word in node.provider() or ()]
    except Exception:
        logger.debug("Completion provider failed", exc_info=True)
        return []


def suggest(tree: CompletionTree, typed: Sequence[str], current: str) -> List[str]:
    """Return the words that may follow ``typed`` and start with ``current``."""
    nodes: Tuple[Node, ...] = tree.children
    for token in typed:
        lowered = token.lower()
        for node in nodes:
            if lowered in (word.lower() for word in node_words(node)):
                nodes = node.children
                break
        else:
            return []

    prefix = current.lower()
    literals: List[str] = []
    values: List[str] = []
    for node in nodes:
        bucket = literals if isinstance(node, Item) else values
        for word in node_words(node):
            if word.lower().startswith(prefix) and word not in bucket:
                bucket.append(word)
    return sorted(literals) + sorted(v for v in values if v not in literals)


class ContextCompleter(Completer):
    """prompt_toolkit completer bound to whichever tree is active right now."""

    def __init__(self, session: "ShellSession") -> None:
        self._session = session

    def get_completions(
        self, document: Document, complete_event: CompleteEvent
    ) -> Generator[Completion, None, None]:
        text = document.text_before_cursor
        tokens = text.split()
        current = ""
        if tokens and not text[-1].isspace():
            current = tokens.pop()
        for word in suggest(self._session.completion_tree, tokens, current):
            yield Completion(word, start_position=-len(current))


def build_completion_tree(
    context: MenuContext, session: "ShellSession"
) -> CompletionTree:
    """Build the completion tree for ``context``; providers read ``session`` lazily."""
    backend = session.backend

    def agent_ids() -> List[str]:
        return [str(agent.id) for agent in backend.agents.list()]

    def module_options() -> List[str]:
        module = session.module
        return module.option_names() if module else []

    def listener_options() -> List[str]:
        draft = session.listener_draft
        if draft is not None:
            return sorted(draft.options)
        listener = session.listener
        if listener is not None:
            return sorted(backend.listeners.configured_options(listener.id))
        return []

    listener_names = backend.listeners.list_names

    if context == MenuContext.MODULE:
        children: Tuple[Node, ...] = (
            item("back"),
            item("help"),
            item("info"),
            item("main"),
            item("quit"),
            item("reload"),
            item("run"),
            item("show", item("options"), item("info")),
            item(
                "set",
                item("Agent", item("all"), dynamic(agent_ids)),
                dynamic(module_options),
            ),
            item("unset", dynamic(module_options)),
        )
    elif context == MenuContext.AGENT:
        children = (
            item("back"),
            item("batchcommands"),
            item("cd"),
            item("clear"),
            item("download"),
            item("exec"),
            item("exit"),
            item("help"),
            item("ifconfig"),
            item("inactivemultiplier"),
            item("inactivethreshold"),
            item("info"),
            item("interact", dynamic(agent_ids)),
            item("ipconfig"),
            item("ja3"),
            item("jobs"),
            item("kill"),
            item("killdate"),
            item("ls"),
            item("main"),
            item("maxretry"),
            item("note"),
            item("padding"),
            item("ps"),
            item("pwd"),
            item("quit"),
            item("sdelete"),
            item("sessions"),
            item(
                "shinject",
                item("self"),
                item("remote"),
                item("RtlCreateUserThread"),
            ),
            item("sleep"),
            item("status"),
            item("timestomp"),
            item("touch"),
            item("upload"),
            item("winexec"),
        )
    elif context == MenuContext.LISTENER:
        children = (
            item("back"),
            item("delete"),
            item("help"),
            item("info"),
            item("main"),
            item("quit"),
            item("remove"),
            item("restart"),
            item("set", dynamic(listener_options)),
            item("show"),
            item("start"),
            item("status"),
            item("stop"),
        )
    elif context == MenuContext.LISTENERS_MAIN:
        children = (
            item("back"),
            item("delete", dynamic(listener_names)),
            item("help"),
            item("info", dynamic(listener_names)),
            item("interact", dynamic(listener_names)),
            item("list"),
            item("main"),
            item("quit"),
            item("start", dynamic(listener_names)),
            item("stop", dynamic(listener_names)),
            item("use", dynamic(backend.listeners.list_types)),
        )
    elif context == MenuContext.LISTENER_SETUP:
        children = (
            item("back"),
            item("execute"),
            item("help"),
            item("info"),
            item("main"),
            item("quit"),
            item("run"),
            item("set", dynamic(listener_options)),
            item("show"),
            item("start"),
            item("stop"),
        )
    else:
        children = (
            item(
                "agent",
                item("list"),
                item("interact", dynamic(agent_ids)),
                item("remove", dynamic(agent_ids)),
            ),
            item("banner"),
            item("clearqueue"),
            item("help"),
            item("interact", dynamic(agent_ids)),
            item("listeners"),
            item("listqueue"),
            item("queue", item("all"), dynamic(agent_ids)),
            item("quit"),
            item("remove", dynamic(agent_ids)),
            item("sessions"),
            item(
                "set",
                item("debug", item("true"), item("false")),
                item("verbose", item("true"), item("false")),
            ),
            item("use", item("module", dynamic(backend.modules.list))),
            item("version"),
        )
        context = MenuContext.MAIN
    return CompletionTree(context, children)
