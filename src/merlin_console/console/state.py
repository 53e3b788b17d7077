"""
Session state for the interactive shell (replaces module-level menu globals).

The active context, its selection, the prompt text and the completion tree are
held in one immutable ContextState and replaced as a unit on every transition.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from merlin_console.backend import Backend, ModuleRef
from merlin_console.console.completion import CompletionTree, build_completion_tree
from merlin_console.console.context import (
    REQUIRED_SELECTION,
    AgentRef,
    ListenerDraft,
    ListenerRef,
    MenuContext,
    Selection,
    prompt_text,
)
from merlin_console.messages import UserMessage

logger = logging.getLogger(__name__)

TreeBuilder = Callable[[MenuContext, "ShellSession"], CompletionTree]


@dataclass
class ShellSettings:
    """Operator-toggled output flags (``set debug|verbose true|false``)."""

    debug: bool = False
    verbose: bool = False


@dataclass(frozen=True)
class ContextState:
    context: MenuContext
    selection: Selection
    prompt: str
    completion_tree: CompletionTree


class ShellSession:
    """Holds the active menu context, its selection, and the bus client id."""

    def __init__(
        self,
        backend: Backend,
        client_id: Optional[uuid.UUID] = None,
        settings: Optional[ShellSettings] = None,
        tree_builder: TreeBuilder = build_completion_tree,
    ) -> None:
        self.backend = backend
        self.client_id = client_id or uuid.uuid4()
        self.settings = settings or ShellSettings()
        self._tree_builder = tree_builder
        self._state = self._make_state(MenuContext.MAIN, None)

    def _make_state(self, context: MenuContext, selection: Selection) -> ContextState:
        return ContextState(
            context=context,
            selection=selection,
            prompt=prompt_text(context, selection),
            completion_tree=self._tree_builder(context, self),
        )

    def transition(self, context: MenuContext, selection: Selection = None) -> None:
        """Switch to ``context``; the previous selection is always dropped.

        Raises:
            ValueError: if ``context`` needs a selection of another type.
        """
        required = REQUIRED_SELECTION.get(context)
        if required is None:
            selection = None
        elif not isinstance(selection, required):
            raise ValueError(
                f"the {context.value} menu requires a {required.__name__} selection"
            )
        logger.debug("Menu transition %s -> %s", self.context.value, context.value)
        self._state = self._make_state(context, selection)

    @property
    def state(self) -> ContextState:
        return self._state

    @property
    def context(self) -> MenuContext:
        return self._state.context

    @property
    def selection(self) -> Selection:
        return self._state.selection

    @property
    def prompt(self) -> str:
        return self._state.prompt

    @property
    def completion_tree(self) -> CompletionTree:
        return self._state.completion_tree

    @property
    def module(self) -> Optional[ModuleRef]:
        selection = self._state.selection
        return selection if isinstance(selection, ModuleRef) else None

    @property
    def agent_id(self) -> Optional[uuid.UUID]:
        selection = self._state.selection
        return selection.id if isinstance(selection, AgentRef) else None

    @property
    def listener(self) -> Optional[ListenerRef]:
        selection = self._state.selection
        return selection if isinstance(selection, ListenerRef) else None

    @property
    def listener_draft(self) -> Optional[ListenerDraft]:
        selection = self._state.selection
        return selection if isinstance(selection, ListenerDraft) else None

    def publish(self, message: UserMessage) -> bool:
        """Publish a message to this session's console."""
        return self.backend.bus.publish(message, self.client_id)

    def register(self) -> UserMessage:
        """Register this session's client id with the bus (once per process)."""
        return self.backend.bus.register(self.client_id)
