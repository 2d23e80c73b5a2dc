"""Resumable, checkpointed bulk synchronization of beneficiary records into a search index."""

__version__ = "0.1.0"
