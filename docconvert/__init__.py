"""
docconvert: converts office documents and HTML into HTML or plain text.
"""

__version__ = "1.0.0"
