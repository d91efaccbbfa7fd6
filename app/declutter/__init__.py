"""declutter - find and safely remove caches, logs and build leftovers."""

__version__ = "0.4.0"
