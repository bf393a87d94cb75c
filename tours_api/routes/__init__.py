"""
FastAPI routers for all API endpoints.

Each module defines a router for one resource (tours, users) plus the
root-level health check. Handlers validate, call one service function and
wrap the result in the success envelope.
"""
