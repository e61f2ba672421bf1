"""
Format-specific payload validators.
"""

from . import doc, docx, html, pdf, rtf

__all__ = ['doc', 'docx', 'html', 'pdf', 'rtf']
