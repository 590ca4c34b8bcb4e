"""
Scanner for directive comments

Walks the comment tokens of a source file and turns every comment whose
first content line starts with #if, #elseif, #else or #endif into a
DirectiveEvent.

Comments are located with a Pygments lexer (JavaScript by default, see
AppSettings.lexer_name), so comment-like text inside strings, template
literals and regular expressions is never mistaken for a directive.

Example:
    >>> events = list(Scanner("a();\\n// #if DEBUG\\nb();\\n// #endif").directives_scan())
    >>> [(e.tag.value, e.line, e.raw_expression) for e in events]
    [('if', 2, 'DEBUG'), ('endif', 4, '')]
"""

import re
from bisect import bisect_right
from typing import Iterator, List, Optional, Tuple

from pygments.lexer import Lexer
from pygments.lexers import get_lexer_by_name
from pygments.token import Comment

from ..config import appsettings
from ..models.directives import DirectiveEvent, DirectiveTag
from .log import LOG

# Line terminators of the scripting language
LINE_TERMINATOR = re.compile(r'\r\n|[\n\r\u2028\u2029]')

# Tag at the start of a content line, then end of line or whitespace + payload
_DIRECTIVE = re.compile(r'\s*#(if|elseif|else|endif)(?:\s*$|\s+(.*)$)', re.DOTALL)


class LineIndex:
    """
    Maps string offsets to (line, column) positions

    Lines are 1-based, columns 0-based; LF, CR, CRLF, U+2028 and U+2029
    all terminate a line.
    """

    def __init__(self, source: str) -> None:
        self.line_starts: List[int] = [0]
        for match in LINE_TERMINATOR.finditer(source):
            self.line_starts.append(match.end())

    def position_locate(self, offset: int) -> Tuple[int, int]:
        """Return (line, column) for a string offset"""
        index = bisect_right(self.line_starts, offset) - 1
        return index + 1, offset - self.line_starts[index]


def contentLine_find(text: str, block: bool) -> Optional[str]:
    """
    Return the comment line that may hold a directive

    For line comments that is the whole comment text. For block comments it
    is the first line with content once leading whitespace and one leading
    ``*`` are removed; lines like the opening ``/**`` are skipped, and no
    line after the first content line is ever considered.

    Args:
        text: Comment text without its ``//`` or ``/* */`` delimiters
        block: True for block comments

    Returns:
        The candidate line, or None if the comment has no content
    """
    if not block:
        return text
    for line in LINE_TERMINATOR.split(text):
        stripped = line.lstrip()
        if stripped.startswith('*'):
            stripped = stripped[1:]
        if stripped.strip():
            return stripped
    return None


def directive_match(text: str, block: bool) -> Optional[Tuple[DirectiveTag, str]]:
    """
    Recognise a directive in comment text

    Args:
        text: Comment text without delimiters
        block: True for block comments

    Returns:
        (tag, raw payload) or None when the comment is not a directive.
        The payload is everything after the tag on the same line, "" if
        there is nothing but whitespace.

    Example:
        >>> directive_match(" #if A && B", False)
        (<DirectiveTag.IF: 'if'>, 'A && B')
        >>> directive_match(" #endif FOO", False)
        (<DirectiveTag.ENDIF: 'endif'>, 'FOO')
        >>> directive_match(" #ifdef A", False) is None
        True
    """
    line = contentLine_find(text, block)
    if line is None:
        return None
    match = _DIRECTIVE.match(line)
    if match is None:
        return None
    return DirectiveTag(match.group(1)), match.group(2) or ''


class Scanner:
    """
    Produces DirectiveEvents from source text, in source order

    Every comment yields at most one event; comments that are not
    directives are ignored (and left untouched in the output).
    """

    def __init__(self, source: str, lexer: Optional[Lexer] = None) -> None:
        """
        Args:
            source: Raw source text
            lexer: Pygments lexer used to find comments; defaults to the
                   lexer named by AppSettings.lexer_name
        """
        self.source = source
        if lexer is None:
            lexer = get_lexer_by_name(appsettings.lexer_name)
        self.lexer = lexer
        self.lines = LineIndex(source)

    def comments_find(self) -> Iterator[Tuple[int, int, str, bool]]:
        """
        Yield (start, end, text, is_block) for every comment in the source

        ``text`` excludes the comment delimiters. Line comment spans stop
        before any line terminator the lexer kept (e.g. the CR of CRLF).
        """
        yield from self.comments_findIn(self.source, 0)

    def comments_findIn(self, text: str, offset: int) -> Iterator[Tuple[int, int, str, bool]]:
        for index, token, value in self.lexer.get_tokens_unprocessed(text):
            start = offset + index
            if token is Comment.Multiline and value.startswith('/*') and value.endswith('*/') and len(value) >= 4:
                yield start, start + len(value), value[2:-2], True
            elif token is Comment.Single and value.startswith('//'):
                terminator = LINE_TERMINATOR.search(value)
                if terminator is None:
                    yield start, start + len(value), value[2:], False
                    continue
                yield start, start + terminator.start(), value[2:terminator.start()], False
                # Lexers that only end line comments at LF swallow lines
                # ended by CR, U+2028 or U+2029; scan those lines again
                rest = value[terminator.end():]
                if rest:
                    yield from self.comments_findIn(rest, start + terminator.end())

    def directives_scan(self) -> Iterator[DirectiveEvent]:
        """
        Yield one DirectiveEvent per directive comment

        Positions refer to the whole comment, delimiters included.
        """
        count = 0
        for start, end, text, block in self.comments_find():
            found = directive_match(text, block)
            if found is None:
                continue
            tag, raw_expression = found
            line, column = self.lines.position_locate(start)
            LOG(f"#{tag.value} at {line}:{column}", level=3)
            count += 1
            yield DirectiveEvent(
                tag=tag,
                start=start,
                end=end,
                line=line,
                column=column,
                raw_expression=raw_expression,
            )
        LOG(f"Scanned {count} directive comments", level=2)
