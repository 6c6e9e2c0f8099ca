"""Text sanitizing for user-supplied card text.

Arguments are passed to ffmpeg as an argv list, so there is no shell to
escape. Card text still never carries characters that the ffmpeg
filtergraph mini-language treats as syntax (quotes and backslashes
change tokenizing, ':' separates filter options, ';' separates chains
and '[' ']' delimit stream labels):

  \\  -> removed
  '  -> ’ (U+2019)
  "  -> ” (U+201D)
  :  -> " -"
  ;  -> " "
  [  -> (
  ]  -> )

Control characters become spaces. The output contains none of the
replaced characters, so sanitize(sanitize(x)) == sanitize(x).
"""

import re

_REPLACEMENTS = str.maketrans({
    "\\": "",
    "'": "’",
    '"': "”",
    ":": " -",
    ";": " ",
    "[": "(",
    "]": ")",
})

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def sanitize(text: str | None) -> str:
    """Return text free of quoting and filtergraph syntax."""
    if text is None:
        return ""
    text = _CONTROL_CHARS.sub(" ", str(text))
    return text.translate(_REPLACEMENTS)
