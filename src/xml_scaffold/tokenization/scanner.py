"""Position-based scanner that classifies the next lexical unit of markup.

The scanner looks at a single cursor position and decides which construct
starts there: a text run, a tag, a comment, a processing instruction, a CDATA
section or a doctype. It returns the raw span together with the cursor
position just past it. It never recurses and never raises; truncated
constructs simply extend to the end of the input.
"""

import re
from bisect import bisect_right
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from xml_scaffold.shared.config import ScannerConfig

PI_OPEN = "<?"
PI_CLOSE = "?>"
COMMENT_OPEN = "<!--"
COMMENT_CLOSE = "-->"
CDATA_OPEN = "<![CDATA["
CDATA_CLOSE = "]]>"
DOCTYPE_OPEN = "<!DOCTYPE"
DOCTYPE_SUBSET_CLOSE = "]>"

# name = "value" | name = 'value'; the value runs up to the matching quote
ATTRIBUTE_PATTERN = re.compile(
    r"""([^\s"'<>/=]+)\s*=\s*(?:"([^"]*)"|'([^']*)')"""
)

_TAG_SPECIAL = re.compile(r"[\"'>]")
_LEADING_NAME = re.compile(r"\s*(\S*)")
_UNTERMINATED_NAME = re.compile(r"\s*/?\s*([^\s/>\"'<=]*)")

_DEFAULT_CONFIG = ScannerConfig()


class NodeRole(Enum):
    """Role of a lexical unit and of the node built from it."""

    OPEN_TAG = "openTag"
    SELF_TAG = "selfTag"
    CLOSE_TAG = "closeTag"
    COMMENT = "comment"
    PROCESSING_INSTRUCTION = "processingInstruction"
    DOCTYPE = "doctype"
    TEXT_LEAF = "textLeaf"

    @property
    def is_tag(self) -> bool:
        """Whether the role names an element boundary."""
        return self in (NodeRole.OPEN_TAG, NodeRole.SELF_TAG, NodeRole.CLOSE_TAG)


@dataclass(frozen=True)
class XMLAttribute:
    """One name/value pair in source order."""

    name: str
    value: str


@dataclass
class TokenPosition:
    """Line/column position of an offset in the source."""

    line: int
    column: int
    offset: int

    def __post_init__(self) -> None:
        """Validate position values."""
        if self.line < 1:
            raise ValueError("Line number must be >= 1")
        if self.column < 1:
            raise ValueError("Column number must be >= 1")
        if self.offset < 0:
            raise ValueError("Offset must be >= 0")

    def to_dict(self) -> dict:
        return {"line": self.line, "column": self.column, "offset": self.offset}


@dataclass
class Token:
    """A classified span of source text.

    ``start``/``end`` delimit ``raw`` in the source; ``end`` is the cursor
    position for the next scan. ``malformed`` is only ever set for tags that
    have no terminating ``>``.
    """

    role: NodeRole
    raw: str
    start: int
    end: int
    tag: Optional[str] = None
    inner: Optional[str] = None
    attributes: Optional[List[XMLAttribute]] = None
    target: Optional[str] = None
    malformed: bool = False
    is_cdata: bool = False

    @property
    def is_whitespace(self) -> bool:
        """True for text runs that hold nothing but whitespace."""
        return self.role is NodeRole.TEXT_LEAF and not self.raw.strip()

    def to_dict(self) -> dict:
        result = {
            "role": self.role.value,
            "raw": self.raw,
            "start": self.start,
            "end": self.end,
        }
        if self.tag is not None:
            result["tag"] = self.tag
        if self.inner is not None:
            result["inner"] = self.inner
        if self.attributes is not None:
            result["attributes"] = [
                {"name": attr.name, "value": attr.value} for attr in self.attributes
            ]
        if self.target is not None:
            result["target"] = self.target
        if self.malformed:
            result["malformed"] = True
        if self.is_cdata:
            result["cdata"] = True
        return result


class SourceLocator:
    """Maps character offsets to 1-based line/column positions."""

    def __init__(self, source: str) -> None:
        self._line_starts = [0]
        self._line_starts.extend(match.end() for match in re.finditer("\n", source))

    def locate(self, offset: int) -> TokenPosition:
        line_index = bisect_right(self._line_starts, offset) - 1
        column = offset - self._line_starts[line_index] + 1
        return TokenPosition(line=line_index + 1, column=column, offset=offset)


def parse_attributes(text: str) -> List[XMLAttribute]:
    """Extract quoted name/value pairs from attribute-bearing tag text.

    Best effort: anything that does not look like ``name="value"`` or
    ``name='value'`` is skipped. Duplicate names are all kept.
    """
    if not text:
        return []
    attributes = []
    for match in ATTRIBUTE_PATTERN.finditer(text):
        value = match.group(2) if match.group(2) is not None else match.group(3)
        attributes.append(XMLAttribute(match.group(1), value))
    return attributes


def find_tag_end(source: str, start: int) -> int:
    """Return the index of the first ``>`` outside quotes, or -1.

    A quote that is never closed hides every ``>`` after it.
    """
    index = start
    while True:
        match = _TAG_SPECIAL.search(source, index)
        if match is None:
            return -1
        found = match.start()
        char = source[found]
        if char == ">":
            return found
        closing = source.find(char, found + 1)
        if closing == -1:
            return -1
        index = closing + 1


def _split_name(text: str):
    """Split ``text`` into its first whitespace-delimited token and the rest."""
    match = _LEADING_NAME.match(text)
    name = match.group(1)
    return name, text[match.end():]


def _remainder(source: str, position: int, role: NodeRole, **extra) -> Token:
    return Token(role=role, raw=source[position:], start=position, end=len(source), **extra)


def scan(source: str, position: int, config: Optional[ScannerConfig] = None) -> Token:
    """Classify the lexical unit starting at ``position``.

    Args:
        source: Complete input text
        position: Cursor offset into ``source``
        config: Optional scanner feature switches

    Returns:
        Token describing the span; ``token.end`` is the next cursor position.
        At or past the end of input an empty text token is returned.
    """
    config = config or _DEFAULT_CONFIG
    length = len(source)

    if position >= length:
        return Token(role=NodeRole.TEXT_LEAF, raw="", start=length, end=length)

    if source[position] != "<":
        end = source.find("<", position)
        if end == -1:
            end = length
        return Token(role=NodeRole.TEXT_LEAF, raw=source[position:end], start=position, end=end)

    if source.startswith(PI_OPEN, position):
        return _scan_processing_instruction(source, position, config)

    if source.startswith(COMMENT_OPEN, position):
        close = source.find(COMMENT_CLOSE, position + len(COMMENT_OPEN))
        if close == -1:
            return _remainder(source, position, NodeRole.COMMENT)
        end = close + len(COMMENT_CLOSE)
        return Token(role=NodeRole.COMMENT, raw=source[position:end], start=position, end=end)

    if source.startswith(CDATA_OPEN, position):
        close = source.find(CDATA_CLOSE, position + len(CDATA_OPEN))
        if close == -1:
            return _remainder(source, position, NodeRole.TEXT_LEAF, is_cdata=True)
        end = close + len(CDATA_CLOSE)
        return Token(
            role=NodeRole.TEXT_LEAF,
            raw=source[position:end],
            start=position,
            end=end,
            is_cdata=True,
        )

    if source[position:position + len(DOCTYPE_OPEN)].upper() == DOCTYPE_OPEN:
        return _scan_doctype(source, position)

    return _scan_tag(source, position, config)


def _scan_processing_instruction(
    source: str, position: int, config: ScannerConfig
) -> Token:
    body_start = position + len(PI_OPEN)
    close = source.find(PI_CLOSE, body_start)
    if close == -1:
        body = source[body_start:]
        end = len(source)
    else:
        body = source[body_start:close]
        end = close + len(PI_CLOSE)

    target, rest = _split_name(body)
    return Token(
        role=NodeRole.PROCESSING_INSTRUCTION,
        raw=source[position:end],
        start=position,
        end=end,
        target=target,
        inner=(rest or None) if config.capture_inner else None,
        attributes=parse_attributes(rest) if config.parse_attributes else [],
    )


def _scan_doctype(source: str, position: int) -> Token:
    first_gt = find_tag_end(source, position + len(DOCTYPE_OPEN))
    search_limit = first_gt if first_gt != -1 else len(source)
    bracket = source.find("[", position, search_limit)

    if bracket != -1:
        close_at = source.find(DOCTYPE_SUBSET_CLOSE, bracket + 1)
        end = close_at + len(DOCTYPE_SUBSET_CLOSE) if close_at != -1 else -1
    else:
        end = first_gt + 1 if first_gt != -1 else -1

    if end == -1:
        return _remainder(source, position, NodeRole.DOCTYPE)
    return Token(role=NodeRole.DOCTYPE, raw=source[position:end], start=position, end=end)


def _scan_tag(source: str, position: int, config: ScannerConfig) -> Token:
    close_at = find_tag_end(source, position + 1)
    if close_at == -1:
        name = _UNTERMINATED_NAME.match(source, position + 1).group(1)
        return _remainder(
            source, position, NodeRole.OPEN_TAG, tag=name, attributes=[], malformed=True
        )

    end = close_at + 1
    raw = source[position:end]
    body = source[position + 1:close_at]
    stripped = body.strip()

    if stripped.startswith("/"):
        name, _ = _split_name(stripped[1:])
        return Token(role=NodeRole.CLOSE_TAG, raw=raw, start=position, end=end, tag=name)

    if stripped.endswith("/"):
        role = NodeRole.SELF_TAG
        content = body.rstrip()[:-1]
    else:
        role = NodeRole.OPEN_TAG
        content = body

    name, rest = _split_name(content)
    return Token(
        role=role,
        raw=raw,
        start=position,
        end=end,
        tag=name,
        inner=(rest or None) if config.capture_inner else None,
        attributes=parse_attributes(rest) if config.parse_attributes else [],
    )
