"""
Reply splitting for the chat platform's 2000-character message limit
"""
from typing import List

CHAT_MAX_LENGTH = 2000


def _find_split_point(chunk_text: str, max_length: int) -> int:
    """Best split offset inside chunk_text, preferring the most natural boundary."""
    # Paragraph break, then single newline, only if at least halfway through
    paragraph_break = chunk_text.rfind('\n\n')
    if paragraph_break > max_length * 0.5:
        return paragraph_break + 2

    newline = chunk_text.rfind('\n')
    if newline > max_length * 0.5:
        return newline + 1

    sentence_end = max(
        chunk_text.rfind('. '),
        chunk_text.rfind('! '),
        chunk_text.rfind('? ')
    )
    if sentence_end > max_length * 0.5:
        return sentence_end + 2

    comma = max(chunk_text.rfind(', '), chunk_text.rfind('; '))
    if comma > max_length * 0.5:
        return comma + 2

    space = chunk_text.rfind(' ')
    if space > max_length * 0.7:
        return space + 1

    return max_length


def split_message(message: str, max_length: int = CHAT_MAX_LENGTH) -> List[str]:
    """
    Split a long reply into parts that fit the chat platform's character limit.

    Tries to split at natural boundaries (paragraphs, sentences, etc.) to maintain readability.

    Returns:
        List of message parts, each at most max_length characters
    """
    if len(message) <= max_length:
        return [message]

    parts = []
    remaining = message

    while len(remaining) > max_length:
        split_point = _find_split_point(remaining[:max_length], max_length)
        part = remaining[:split_point].strip()
        if part:
            parts.append(part)
        remaining = remaining[split_point:].strip()

    if remaining:
        parts.append(remaining)

    return parts


def needs_splitting(message: str, max_length: int = CHAT_MAX_LENGTH) -> bool:
    """Check if a message needs to be split"""
    return len(message) > max_length
