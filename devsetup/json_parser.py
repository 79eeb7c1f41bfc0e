"""JSON-ish preprocessing.

Project files are edited by hand, so ``.devsetup.json`` may contain
``//`` and ``/* */`` comments and trailing commas. ``JsonPreprocessor``
turns such text into strict JSON.

Stripped characters are replaced with spaces (newlines are kept) so that
line/column positions in ``json.JSONDecodeError`` still point at the
original text.
"""

from enum import Enum


class _State(Enum):
    CODE = 0
    STRING = 1
    STRING_ESCAPE = 2
    LINE_COMMENT = 3
    BLOCK_COMMENT = 4


class JsonPreprocessor:
    """Single-pass scanner over JSON-ish text.

    Example:
        >>> import json
        >>> json.loads(JsonPreprocessor().preprocess('{"a": 1, /* x */ }'))
        {'a': 1}
    """

    def __init__(self) -> None:
        self.state = _State.CODE

    def preprocess(self, text: str) -> str:
        out = list(text)
        n = len(text)
        i = 0
        self.state = _State.CODE

        while i < n:
            char = text[i]
            nxt = text[i + 1] if i + 1 < n else ""

            if self.state == _State.STRING:
                if char == "\\":
                    self.state = _State.STRING_ESCAPE
                elif char == '"':
                    self.state = _State.CODE
            elif self.state == _State.STRING_ESCAPE:
                self.state = _State.STRING
            elif self.state == _State.LINE_COMMENT:
                if char == "\n":
                    self.state = _State.CODE
                else:
                    out[i] = " "
            elif self.state == _State.BLOCK_COMMENT:
                if char == "*" and nxt == "/":
                    out[i] = out[i + 1] = " "
                    self.state = _State.CODE
                    i += 1
                elif char != "\n":
                    out[i] = " "
            elif char == '"':
                self.state = _State.STRING
            elif char == "/" and nxt == "/":
                out[i] = out[i + 1] = " "
                self.state = _State.LINE_COMMENT
                i += 1
            elif char == "/" and nxt == "*":
                out[i] = out[i + 1] = " "
                self.state = _State.BLOCK_COMMENT
                i += 1
            elif char in "]}":
                self._drop_trailing_comma(out, i)
            i += 1

        return "".join(out)

    def _drop_trailing_comma(self, out: list[str], close_index: int) -> None:
        """Blank the last comma before ``close_index`` if only whitespace separates them.

        Comments were already blanked in ``out``, so whitespace is all that
        can legally sit between a trailing comma and the bracket.
        """
        j = close_index - 1
        while j >= 0 and out[j] in " \t\r\n":
            j -= 1
        if j >= 0 and out[j] == ",":
            out[j] = " "


def preprocess_jsonish(text: str) -> str:
    """Convert JSON-ish text to strict JSON.

    Examples:
        >>> import json
        >>> json.loads(preprocess_jsonish('{"a": [1, 2,], // done\\n}'))
        {'a': [1, 2]}

        >>> json.loads(preprocess_jsonish('{"url": "https://example.com//path"}'))
        {'url': 'https://example.com//path'}
    """
    return JsonPreprocessor().preprocess(text)


__all__ = ["preprocess_jsonish", "JsonPreprocessor"]
