"""Helpers for rendering untrusted text as string literals."""

import re

_QUOTE_PATTERN = re.compile(r'([\\"])')
# Control characters and lone surrogates, which a source literal cannot carry raw
_UNPRINTABLE_PATTERN = re.compile(r"[\x00-\x1f\x7f\ud800-\udfff]")


def esc(text: str, metas: str | None = None) -> str:
    """Backslash-escape backslashes and double quotes in ``text``.

    Args:
        text: Text to escape
        metas: Optional extra characters to escape. Each one is taken
            literally, so ``]``, ``^``, ``-`` and ``\\`` need no special care.

    Returns:
        Escaped text
    """
    text = _QUOTE_PATTERN.sub(r"\\\1", text)

    if metas:
        text = re.sub(f"([{re.escape(metas)}])", r"\\\1", text)

    return text


def _escape_code_point(match: re.Match[str]) -> str:
    code = ord(match.group())
    return f"\\x{code:02x}" if code <= 0xFF else f"\\u{code:04x}"


def quote(text: str) -> str:
    """Render ``text`` as a double-quoted literal that parses back to itself."""
    escaped = _UNPRINTABLE_PATTERN.sub(_escape_code_point, esc(text))
    return f'"{escaped}"'
