"""
Console subpackage: holds the REPL loop, rendering, key bindings, completion, command menus and state.
"""
