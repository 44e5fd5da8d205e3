"""namereg — a time-bounded naming registry."""

__version__ = "0.1.0"
