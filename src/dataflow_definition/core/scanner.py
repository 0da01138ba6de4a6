"""Character scanners for mashup documents.

There is no tokenizer for the mashup language here; these helpers walk raw
text while tracking bracket depth and whether the cursor sits inside a
double-quoted string literal.
"""

from bisect import bisect_right
from collections import Counter
from collections.abc import Sequence


def find_matching_open_bracket(text: str, close_index: int) -> int:
    """Return the index of the ``[`` that balances the ``]`` at ``close_index``.

    Walks backward counting ``[``/``]`` and ``{``/``}`` depth. Characters
    inside a double-quoted literal are not counted; a quote preceded by a
    backslash does not toggle the literal. Returns -1 when ``close_index``
    is not a ``]`` or no balancing bracket exists.
    """
    if close_index < 0 or close_index >= len(text) or text[close_index] != "]":
        return -1

    bracket_depth = 0
    brace_depth = 0
    in_string = False
    pos = close_index
    while pos >= 0:
        char = text[pos]
        if char == '"' and (pos == 0 or text[pos - 1] != "\\"):
            in_string = not in_string

        if not in_string:
            if char == "]":
                bracket_depth += 1
            elif char == "[":
                bracket_depth -= 1
            elif char == "}":
                brace_depth += 1
            elif char == "{":
                brace_depth -= 1

            if char == "[" and bracket_depth == 0 and brace_depth == 0:
                return pos
        pos -= 1

    return -1


def last_non_space_before(text: str, index: int) -> int:
    """Index of the last non-whitespace character before ``index``, or -1."""
    pos = min(index, len(text)) - 1
    while pos >= 0 and text[pos].isspace():
        pos -= 1
    return pos


def literal_spans(text: str) -> list[tuple[int, int]]:
    """Half-open ``(start, end)`` ranges of string literals and comments, in order.

    String literals use ``""`` as the escaped quote; comments are ``//`` to
    end of line and ``/* ... */``. An unterminated literal or block comment
    runs to the end of the text.
    """
    spans: list[tuple[int, int]] = []
    pos = 0
    length = len(text)
    while pos < length:
        if text[pos] == '"':
            start = pos
            pos += 1
            while pos < length:
                if text[pos] == '"':
                    if pos + 1 < length and text[pos + 1] == '"':
                        pos += 2
                        continue
                    break
                pos += 1
            pos = min(pos + 1, length)
            spans.append((start, pos))
        elif text.startswith("//", pos):
            newline = text.find("\n", pos)
            end = length if newline == -1 else newline
            spans.append((pos, end))
            pos = end
        elif text.startswith("/*", pos):
            close = text.find("*/", pos + 2)
            end = length if close == -1 else close + 2
            spans.append((pos, end))
            pos = end
        else:
            pos += 1
    return spans


def in_spans(spans: Sequence[tuple[int, int]], index: int) -> bool:
    """True when ``index`` falls inside one of the sorted, non-overlapping ``spans``."""
    i = bisect_right(spans, index, key=lambda span: span[0]) - 1
    return i >= 0 and spans[i][0] <= index < spans[i][1]


def count_outside_literals(text: str, chars: str) -> Counter[str]:
    """Count occurrences of ``chars`` that are not inside string literals or comments."""
    wanted = set(chars)
    counts: Counter[str] = Counter({char: 0 for char in wanted})
    pos = 0
    for start, end in [*literal_spans(text), (len(text), len(text))]:
        for char in text[pos:start]:
            if char in wanted:
                counts[char] += 1
        pos = end
    return counts
