"""
Journal Portal client.

Session-aware HTTP client for the Journal Portal API, with credential storage,
automatic token renewal and a command-line interface.
"""
