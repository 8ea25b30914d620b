"""
Authentication package for the Journal Portal client.

This package contains session-related functionality including credential
storage, request augmentation, failure classification and token renewal.
"""
