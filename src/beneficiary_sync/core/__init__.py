"""Core infrastructure: configuration, logging, database, errors and the worker pool."""
