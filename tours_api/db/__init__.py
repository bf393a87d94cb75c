"""
MongoDB access: client lifecycle, document rules and repositories.
"""
