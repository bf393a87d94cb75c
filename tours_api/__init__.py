"""
Tours API: a FastAPI service for a tours catalogue backed by MongoDB.
"""
