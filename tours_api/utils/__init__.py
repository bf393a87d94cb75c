"""
Shared utilities (logging, email).
"""
