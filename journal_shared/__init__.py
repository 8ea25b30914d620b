"""
Shared infrastructure for the Journal Portal client.

Structured exceptions and logging configuration used by every client module.
"""
