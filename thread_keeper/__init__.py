"""ThreadKeeper: capture the working context of a desktop and restore it later."""

__version__ = "0.1.0"
