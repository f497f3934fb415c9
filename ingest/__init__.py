"""
Ingest package: GitHub statistics client and its error types.
"""
