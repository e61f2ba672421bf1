"""
Shared utilities for the docconvert service.
"""
