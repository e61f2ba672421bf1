"""
Legacy Word (DOC) payload validation.
"""

from ..base_validator import BinaryBasedValidator

# OLE2 compound document header
OLE2_SIGNATURE = b'\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1'


class DOCValidator(BinaryBasedValidator):
    signatures = (OLE2_SIGNATURE,)

    def __init__(self):
        super().__init__("doc")
