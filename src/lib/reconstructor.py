"""
Text reconstruction from evaluated IfBlocks

Turns the ``taken_branch`` annotations into a list of cuts (ranges of the
original text to delete) and re-emits the text without them.

Around every cut the surrounding whitespace is slurped:
1. Horizontal whitespace immediately before the cut is removed (never past
   the start of the line)
2. If the cut then starts a line, one line terminator right after the cut
   is removed too, so a directive on a line of its own leaves no blank line

Example:
    >>> from condcomp.lib.parser import Parser
    >>> source = "1\\n// #if A\\n2\\n// #endif\\n3"
    >>> blocks = Parser(source).parse()
    >>> blocks[0].taken_branch = -1
    >>> Reconstructor(source).text_emit(blocks)
    '1\\n3'
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple, Union

from ..models.directives import IfBlock
from .log import LOG

# Horizontal whitespace of the scripting language (BOM included)
WHITESPACE = frozenset(
    "\u0020\u0009\u000b\u000c\u00a0\u1680"
    "\u2000\u2001\u2002\u2003\u2004\u2005\u2006\u2007\u2008\u2009\u200a"
    "\u202f\u205f\u3000\ufeff"
)

NEWLINE_CHARS = frozenset("\n\r\u2028\u2029")


@dataclass
class Cut:
    start: int
    end: int


@dataclass
class Cuts:
    """
    Ordered, coalesced ranges to delete

    Starts with a zero-length sentinel at offset 0 so that the first added
    range has something to merge with.
    """
    slices: List[Cut] = field(default_factory=lambda: [Cut(0, 0)])

    def add(self, start: int, end: int) -> None:
        prev = self.slices[-1]
        if start <= prev.end:
            prev.end = max(prev.end, end)
        else:
            self.slices.append(Cut(start, end))

    def isEmpty(self) -> bool:
        return len(self.slices) == 1 and self.slices[0].end == 0


def block_cuts(if_block: IfBlock) -> Tuple[Cut, Optional[List[IfBlock]], Optional[Cut]]:
    """
    Cuts around the body of the branch ``if_block`` took

    Returns:
        (cut before the body, nested blocks of the body, cut after the body);
        when no branch is kept the first cut spans the whole block
    """
    branch = if_block.taken_branch
    endif = if_block.endif
    if branch is not None and branch >= 0:
        branches = if_block.branches()
        taken = branches[branch]
        following = branches[branch + 1:]
        start = following[0].start if following else endif.start
        return Cut(if_block.start, taken.end), taken.children, Cut(start, endif.end)
    if if_block.else_ is not None:
        else_ = if_block.else_
        return Cut(if_block.start, else_.end), else_.children, Cut(endif.start, endif.end)
    return Cut(if_block.start, endif.end), None, None


def cuts_make(blocks: List[IfBlock], cuts: Cuts) -> None:
    """Add the cuts for ``blocks`` (and their taken subtrees) in document order"""
    pending: List[Union[Cut, Iterator[IfBlock]]] = [iter(blocks)]
    while pending:
        item = pending[-1]
        if isinstance(item, Cut):
            pending.pop()
            cuts.add(item.start, item.end)
            continue
        if_block = next(item, None)
        if if_block is None:
            pending.pop()
            continue
        head, body, tail = block_cuts(if_block)
        cuts.add(head.start, head.end)
        if tail is not None:
            pending.append(tail)
        if body:
            pending.append(iter(body))


def whitespace_slurpLeft(text: str, end: int, limit: int = 0) -> int:
    """Move ``end`` left over horizontal whitespace, not past ``limit``"""
    while end > limit and text[end - 1] in WHITESPACE:
        end -= 1
    return end


def line_isStart(text: str, pos: int) -> bool:
    """True when ``pos`` is at the start of the text or of a line"""
    return pos == 0 or text[pos - 1] in NEWLINE_CHARS


def newline_slurpRight(text: str, pos: int) -> int:
    """Move ``pos`` past one line terminator sequence, if one starts there"""
    if text.startswith('\r\n', pos):
        return pos + 2
    if pos < len(text) and text[pos] in NEWLINE_CHARS:
        return pos + 1
    return pos


class Reconstructor:
    """
    Re-emits source text with the untaken branches and all directives removed
    """

    def __init__(self, source: str) -> None:
        self.source = source

    def cuts_compute(self, blocks: List[IfBlock]) -> Cuts:
        cuts = Cuts()
        cuts_make(blocks, cuts)
        return cuts

    def text_emit(self, blocks: List[IfBlock]) -> str:
        """
        Build the output text for evaluated blocks

        Returns:
            The source unchanged when nothing is cut, else the source with
            every cut (and its slurped whitespace) removed
        """
        cuts = self.cuts_compute(blocks)
        if cuts.isEmpty():
            return self.source

        source = self.source
        parts: List[str] = []
        pos = 0
        for cut in cuts.slices:
            end = whitespace_slurpLeft(source, cut.start, pos)
            parts.append(source[pos:end])
            pos = cut.end
            if line_isStart(source, end):
                pos = newline_slurpRight(source, pos)
        parts.append(source[pos:])

        LOG(f"Removed {sum(1 for cut in cuts.slices if cut.end > cut.start)} ranges", level=2)
        return ''.join(parts)
