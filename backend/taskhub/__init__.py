"""TaskHub backend: recurring workspace tasks and dependency analysis."""

__version__ = "0.1.0"
