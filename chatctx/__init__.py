"""chatctx - per-session conversation entity state and context window budgeting."""

__version__ = "0.1.0"
