import logging
from typing import Optional

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class SuspiciousInputError(ValueError):
    pass


class InputValidator:
    """
    Validates free text that is stored or forwarded into the quiz-generation prompt.

    Protection mechanisms:
    - Length limits per field type
    - Control character restrictions
    - Excessive markdown header limits
    - Character composition checks
    """

    MAX_LENGTHS = {
        "title": 200,
        "section": 200,
        "description": 2000,
        "topic": 200,
        "feedback": 2000,
    }

    # Maximum number of markdown headers (prevents prompt section injection)
    MAX_MARKDOWN_HEADERS = 3

    MAX_CONTROL_CHAR_PERCENTAGE = 5

    MAX_CONSECUTIVE_SPECIAL_CHARS = 10

    MAX_TOPICS = 20

    @classmethod
    def validate_module_content(
        cls,
        title: str,
        section: str,
        description: str,
        topics: Optional[list[str]] = None,
    ) -> None:
        """
        Validate the module fields that end up in the quiz-generation prompt.

        :raises SuspiciousInputError: If input validation fails
        """
        cls.validate_field(title, "title")
        cls.validate_field(section, "section")
        cls.validate_field(description, "description")

        topics = topics or []
        if len(topics) > cls.MAX_TOPICS:
            raise SuspiciousInputError(f"topics exceeds maximum count of {cls.MAX_TOPICS}")
        for topic in topics:
            cls.validate_field(topic, "topic")

    @classmethod
    def validate_field(cls, text: str, field_name: str) -> None:
        """
        Validate a single input field using objective criteria.

        :raises SuspiciousInputError: If input validation fails
        """
        if not isinstance(text, str):
            raise SuspiciousInputError(f"{field_name} must be a string")

        max_length = cls.MAX_LENGTHS.get(field_name, 2000)
        if len(text) > max_length:
            _LOGGER.warning(f"Length violation: {field_name} is {len(text)} chars (max {max_length})")
            raise SuspiciousInputError(f"{field_name} exceeds maximum length of {max_length} characters")

        # Required-ness is left to the pydantic models
        if not text:
            return

        control_chars = sum(1 for c in text if ord(c) < 32 and c not in "\n\r\t")
        if control_chars > 0:
            control_percentage = (control_chars / len(text)) * 100
            if control_percentage > cls.MAX_CONTROL_CHAR_PERCENTAGE:
                _LOGGER.warning(f"Excessive control characters in {field_name}: {control_percentage:.1f}%")
                raise SuspiciousInputError(f"{field_name} contains too many control characters")

        header_count = text.count("###")
        if header_count > cls.MAX_MARKDOWN_HEADERS:
            _LOGGER.warning(f"Excessive headers in {field_name}: {header_count} (max {cls.MAX_MARKDOWN_HEADERS})")
            raise SuspiciousInputError(f"{field_name} contains too many section headers")

        max_consecutive = 0
        current_consecutive = 0
        for char in text:
            if not char.isalnum() and not char.isspace():
                current_consecutive += 1
                max_consecutive = max(max_consecutive, current_consecutive)
            else:
                current_consecutive = 0

        if max_consecutive > cls.MAX_CONSECUTIVE_SPECIAL_CHARS:
            _LOGGER.warning(f"Excessive consecutive special chars in {field_name}: {max_consecutive}")
            raise SuspiciousInputError(f"{field_name} contains unusual character sequences")

    @classmethod
    def sanitize_for_logging(cls, text: str, max_length: int = 100) -> str:
        if len(text) > max_length:
            return text[:max_length] + "..."
        return text
