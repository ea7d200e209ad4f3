"""Core presentation primitives (geometry, interaction events, and timers).

Kept free of FastAPI concerns so it can be reused by the HTTP service, simulations, and tests.
"""
