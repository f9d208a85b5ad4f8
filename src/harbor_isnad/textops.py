"""Named text operations used by ``text_transformation`` tasks.

Each operation is a pure ``str -> str`` function identified on the wire by
its enum value.  The challenge generator picks operations from here and the
solver applies them in order, so both sides share this table.
"""

from __future__ import annotations

import codecs
from enum import Enum
from typing import Callable


class TextOp(str, Enum):
    REVERSE = "reverse"
    UPPERCASE = "uppercase"
    LOWERCASE = "lowercase"
    ROT13 = "rot13"
    REMOVE_VOWELS = "remove_vowels"
    REVERSE_WORDS = "reverse_words"
    SORT_WORDS = "sort_words"


_VOWELS = frozenset("aeiouAEIOU")


def _remove_vowels(text: str) -> str:
    return "".join(ch for ch in text if ch not in _VOWELS)


_OPERATIONS: dict[TextOp, Callable[[str], str]] = {
    TextOp.REVERSE: lambda s: s[::-1],
    TextOp.UPPERCASE: str.upper,
    TextOp.LOWERCASE: str.lower,
    TextOp.ROT13: lambda s: codecs.encode(s, "rot13"),
    TextOp.REMOVE_VOWELS: _remove_vowels,
    TextOp.REVERSE_WORDS: lambda s: " ".join(reversed(s.split(" "))),
    TextOp.SORT_WORDS: lambda s: " ".join(sorted(s.split(" "))),
}


def apply_text_op(text: str, op: TextOp | str) -> str:
    """Apply a single named operation.  Raises ``ValueError`` for unknown names."""
    return _OPERATIONS[TextOp(op)](text)


def apply_text_ops(text: str, ops: list[TextOp]) -> str:
    for op in ops:
        text = apply_text_op(text, op)
    return text
