"""Campaign runtime: queued tasks stepped through an LLM decision oracle."""

__version__ = "0.1.0"
