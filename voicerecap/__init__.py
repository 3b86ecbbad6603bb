"""Discord voice recorder that transcribes and summarizes a call."""

__version__ = "0.1.0"
