"""Splitting documents into token-bounded fragments."""

import logging

logger = logging.getLogger(__name__)

# Anything longer gets truncated by the embedding model
MAX_TOKENS = 256


def tokenize(text: str) -> list[str]:
    """Split text on whitespace. A token is a maximal run of non-space characters."""
    return text.split()


def effective_max_tokens(max_tokens: int | None) -> int:
    """Clamp a requested fragment size to (0, MAX_TOKENS]; 0 or None means MAX_TOKENS."""
    if not max_tokens or max_tokens <= 0 or max_tokens > MAX_TOKENS:
        return MAX_TOKENS
    return max_tokens


def create_fragments(text: str, max_tokens: int | None = None) -> list[str]:
    """
    Split text into fragments of at most max_tokens tokens.

    Rules:
    1. Tokens are accumulated greedily in document order
    2. A fragment closes when it holds max_tokens tokens or the text runs out
    3. Tokens inside a fragment are joined with a single space

    Joining the result with single spaces gives back the tokenized text.
    """
    tokens = tokenize(text)
    limit = effective_max_tokens(max_tokens)
    token_total = len(tokens)

    logger.debug("Token total: %d, max tokens: %d", token_total, limit)

    fragments: list[str] = []
    current: list[str] = []

    for position, token in enumerate(tokens, start=1):
        current.append(token)
        if len(current) == limit or position == token_total:
            fragments.append(" ".join(current))
            current = []

    return fragments
