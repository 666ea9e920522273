import re
from collections import namedtuple


EscapedChar = namedtuple('EscapedChar', ['escaped', 'value', 'raw'])

_ESCAPABLE_CHARS = ',;\\nN'

FOLD_WIDTH = 75
CRLF = '\r\n'

_continuation_pattern = re.compile(r'\r\n[ \t]')


def iter_escaped(string):
    """Yield an EscapedChar for every logical character of a raw vcard string.

    A backslash followed by one of ``, ; \\ n N`` is consumed together with
    that character as a single escaped unit. Any other backslash is yielded
    as an ordinary character.
    """
    index = 0
    end = len(string)

    while index < end:
        char = string[index]

        if char == '\\' and index + 1 < end and string[index + 1] in _ESCAPABLE_CHARS:
            next_char = string[index + 1]
            index += 2

            if next_char in 'nN':
                yield EscapedChar(True, '\n', char + next_char)
            else:
                yield EscapedChar(True, next_char, char + next_char)

            continue

        index += 1
        yield EscapedChar(False, char, char)


def escape(string):
    chars = []

    for char in string:
        if char == '\n':
            chars.append('\\n')
        elif char == '\\':
            chars.append('\\\\')
        elif char == ',':
            chars.append('\\,')
        elif char == ';':
            chars.append('\\;')
        else:
            chars.append(char)

    return ''.join(chars)


def unescape(string):
    return ''.join(c.value for c in iter_escaped(string))


def _check_separator(separator):
    if len(separator) != 1:
        raise ValueError(f'separator must be a single character, got: {separator!r}')


def split_structured_value(string, separator):
    """Split on unescaped separators, keeping escape sequences untouched."""
    _check_separator(separator)
    parts = ['']

    for c in iter_escaped(string):
        if not c.escaped and c.value == separator:
            parts.append('')
        else:
            parts[-1] += c.raw

    return parts


def includes_unescaped(string, char):
    return index_unescaped(string, char) >= 0


def index_unescaped(string, char):
    _check_separator(char)
    index = 0

    for c in iter_escaped(string):
        if not c.escaped and c.value == char:
            return index

        index += len(c.raw)

    return -1


def fold(string, width=FOLD_WIDTH, newline=CRLF):
    """Fold a line so that no physical line exceeds ``width`` characters.

    Continuation lines start with a single space, which counts toward the
    width. Escape sequences may be cut in two; unfolding restores them.
    """
    if width < 2:
        raise ValueError(f'fold width must be at least 2, got: {width}')

    if len(string) <= width:
        return string

    parts = [string[:width]]
    start = width
    end = len(string)

    while start < end:
        index = start + (width - 1)
        parts.append(' ' + string[start:index])
        start = index

    return newline.join(parts)


def unfold(string):
    return _continuation_pattern.sub('', string)
