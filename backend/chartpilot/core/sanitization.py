"""
Sanitization helpers for user-provided text.

Prompts, file names and header names flow into logs and into AI prompts;
both are cleaned here first.
"""
import re

_CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f-\x9f]')
_INSTRUCTION_PATTERNS = ('SYSTEM:', 'USER:', 'ASSISTANT:', 'IGNORE', 'FORGET', 'NEW INSTRUCTION')


def sanitize_filename(filename: str, max_length: int = 255) -> str:
    """
    Sanitize filename to prevent path traversal and log injection.

    Args:
        filename: Original filename
        max_length: Maximum length of sanitized filename

    Returns:
        Sanitized filename safe for logging
    """
    if not filename:
        return "unknown"

    filename = filename.split('/')[-1].split('\\')[-1]
    filename = _CONTROL_CHARS.sub('', filename)
    filename = filename.strip('. ')

    if len(filename) > max_length:
        filename = filename[:max_length]

    return filename or "unknown"


def sanitize_for_logging(value: str, max_length: int = 500) -> str:
    """
    Sanitize value for safe logging (prevents log injection).

    Args:
        value: Value to sanitize
        max_length: Maximum length

    Returns:
        Sanitized value safe for logging
    """
    if not value:
        return ""

    value = re.sub(r'[\r\n]', ' ', value)
    value = _CONTROL_CHARS.sub('', value)

    if len(value) > max_length:
        value = value[:max_length] + "..."

    return value


def sanitize_for_prompt(text: str, max_length: int = 100) -> str:
    """
    Sanitize user-provided text before including it in AI prompts.

    Removes control characters and newlines, limits length and brackets
    patterns that look like role or override instructions.
    """
    if not text:
        return ""

    sanitized = ''.join(char for char in text if char.isprintable() and char not in '\n\r\t')

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length] + "..."

    for pattern in _INSTRUCTION_PATTERNS:
        sanitized = sanitized.replace(pattern, f'[{pattern}]')

    return sanitized


def clean_header(value) -> str:
    """Collapse whitespace and newlines in a header cell; None becomes ''."""
    if value is None:
        return ""
    text = str(value).replace('\n', ' ').replace('\r', ' ')
    return ' '.join(text.split())
