"""Core sync engine, configuration and message helpers."""
