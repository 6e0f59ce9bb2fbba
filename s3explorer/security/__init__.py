"""
Security module - Shared security constants.
"""
