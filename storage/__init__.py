"""
Storage package: retry/backoff state machine for the GitHub statistics endpoints.
"""
