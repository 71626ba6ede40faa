# core/validators.py

import regex as re

UNSAFE_PATTERNS = [
    re.compile(r"\b(hack|exploit|malware|virus)\b", re.IGNORECASE),
    re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
]


class InputError(ValueError):
    pass


def validate_input(text, min_length: int = 10, max_length: int = 50000) -> str:
    """
    Check text before it is sent for analysis.

    Returns the text unchanged, or raises InputError with a message that
    can be shown to the user.
    """
    if not isinstance(text, str):
        raise InputError("Invalid input: text must be a string")

    stripped = text.strip()
    if len(stripped) < min_length:
        raise InputError(f"Text must be at least {min_length} characters long")
    if len(stripped) > max_length:
        raise InputError(f"Text exceeds maximum length of {max_length} characters")

    for pattern in UNSAFE_PATTERNS:
        if pattern.search(stripped):
            raise InputError("Input contains potentially unsafe content")

    return text
