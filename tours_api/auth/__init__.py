"""
Authentication dependencies (JWT bearer tokens, role checks).
"""
