"""Core of a small POSIX-style shell: ordered environment, builtins, here-documents and command execution."""

__version__ = "0.1.0"
__all__ = ["state", "environment", "builtins", "executor"]