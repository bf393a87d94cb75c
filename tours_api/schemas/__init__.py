"""
Pydantic response models and success envelope helpers.
"""
