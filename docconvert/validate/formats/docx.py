"""
DOCX payload validation.

Validates Microsoft Word DOCX bodies using their ZIP structure.
"""

from ..base_validator import ArchiveBasedValidator


class DOCXValidator(ArchiveBasedValidator):
    """DOCX validator checking the members every Word document carries."""

    def __init__(self):
        required_files = [
            '[Content_Types].xml',
            'word/document.xml'
        ]
        super().__init__("docx", required_files)
