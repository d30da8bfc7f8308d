"""
REST API Unit Tests

Router and authentication tests through the FastAPI test client, backed by
the in-memory database and local storage.
"""
