"""ChatPop order attribution and proactive engagement engine."""

__version__ = "0.1.0"
