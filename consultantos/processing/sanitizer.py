"""Text sanitization before persistence.

PostgreSQL text columns reject NUL bytes, and stray C0 control characters
from PDF/DOCX extraction break downstream JSON encoding. Lone UTF-16
surrogates cannot be encoded for the database at all. Tab, newline and
carriage return are kept since chunk boundaries depend on them.
"""

import re
from typing import Optional

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\ud800-\udfff]")


def sanitize(text: Optional[str]) -> str:
    """Strip NUL bytes, C0 control characters (except \\t, \\n, \\r) and lone surrogates."""
    if not text:
        return ""
    return _CONTROL_CHARS_RE.sub("", text)
