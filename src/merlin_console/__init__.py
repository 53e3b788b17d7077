"""
Operator console for a remote-orchestration backend.
"""

__version__ = "0.1.0"
