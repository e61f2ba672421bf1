"""
HTML payload validation.
"""

from ..base_validator import TextBasedValidator, ValidationError
from ...utils.html_utils import is_html


class HTMLValidator(TextBasedValidator):
    """Accepts any text containing HTML markup, fragments included."""

    def __init__(self):
        super().__init__("html")

    def _validate_content(self, content: str, **options) -> bool:
        self._validate_basic_text_content(content)

        if not is_html(content):
            raise ValidationError(
                "Payload contains no HTML markup",
                format_type=self.format_name,
                details={"content_length": len(content)}
            )
        return True
