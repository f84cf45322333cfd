"""codex-status: a one-line status view of the latest Codex session."""

__version__ = "0.1.0"
