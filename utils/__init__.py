"""
Shared helpers for the tuning harness: exception hierarchy, error-handling
decorators, table/JSON persistence, parameter fingerprints and constants.
"""
