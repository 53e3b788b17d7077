from prompt_toolkit.key_binding import KeyBindings, KeyPressEvent
from prompt_toolkit.keys import Keys


def get_key_bindings() -> KeyBindings:
    """Return the custom KeyBindings (Tab completion, Ctrl+Z blocked)."""
    kb = KeyBindings()

    @kb.add(Keys.Tab)
    def _(event: KeyPressEvent) -> None:
        """Complete the current word; a single match is applied directly."""
        buffer = event.current_buffer
        state = buffer.complete_state
        if state is None:
            buffer.start_completion(select_first=False)
            return
        if len(state.completions) == 1:
            buffer.apply_completion(state.completions[0])
            buffer.cancel_completion()
        else:
            buffer.complete_next()

    # Block Ctrl+Z so the console cannot be suspended by accident.
    @kb.add("c-z", eager=True)
    def _(event: KeyPressEvent) -> None:
        pass

    return kb
