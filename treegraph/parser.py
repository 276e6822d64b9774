"""Parser for the nested-table passive tree data format.

Tree data ships as one large Lua-style table literal::

    return {
        ["nodes"]= {
            [26725]= {
                ["skill"]= 26725,
                ["name"]= "Marauder",
                ["stats"]= { "+10 to maximum Life" },
                ["out"]= { "36634", "4502" },
                ["in"]= { },
            },
            ...
        },
    }

Node bodies contain nested sub-tables, so bodies are isolated by counting
brace depth (string-aware) rather than by pattern matching.  Each body is
then split into its top-level ``["key"]= value`` fields and every field is
read by its own small extractor, so one bad field only costs its own node.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import MalformedNodeError, TreeParseError
from .models import Node, TreeGraph

logger = logging.getLogger(__name__)

NODE_START = re.compile(r"\[(\d+)\]=\s*\{", re.ASCII)
NODES_SECTION = re.compile(r'\["nodes"\]=\s*\{')
FIELD_KEY = re.compile(r'\[\s*(?:"([^"\\]*)"|(\d+))\s*\]\s*=\s*')
ENTRY_KEY = re.compile(r"^\[\s*\d+\s*\]\s*=\s*")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}

FLAG_FIELDS: Dict[str, str] = {
    "isKeystone": "is_keystone",
    "isNotable": "is_notable",
    "isMastery": "is_mastery",
    "isJewelSocket": "is_jewel_socket",
    "isAscendancyStart": "is_ascendancy_start",
}


# ===================================================================
# Scanning primitives
# ===================================================================

def string_end(text: str, start: int, end: Optional[int] = None) -> Optional[int]:
    """Index just past the quoted string opening at *start*, or None if unclosed."""
    end = len(text) if end is None else end
    i = start + 1
    while i < end:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == '"':
            return i + 1
        i += 1
    return None


def skip_string(text: str, start: int, end: Optional[int] = None) -> int:
    """Like :func:`string_end` but runs to *end* for an unclosed string."""
    end = len(text) if end is None else end
    closed = string_end(text, start, end)
    return end if closed is None else closed


def find_closing_brace(text: str, open_pos: int, end: Optional[int] = None) -> Optional[int]:
    """Index of the brace matching the ``{`` at *open_pos*, or None if unbalanced."""
    end = len(text) if end is None else end
    depth = 0
    i = open_pos
    while i < end:
        ch = text[i]
        if ch == '"':
            i = skip_string(text, i, end)
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return None


def unquote(literal: str) -> str:
    """Strip the quotes from a string literal and resolve backslash escapes."""
    inner = literal[1:-1]
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(1)), inner)


def split_entries(content: str) -> List[str]:
    """Split a table body on commas that are outside strings and sub-tables."""
    entries: List[str] = []
    depth = 0
    start = 0
    i = 0
    while i < len(content):
        ch = content[i]
        if ch == '"':
            i = skip_string(content, i)
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        elif ch == "," and depth == 0:
            entries.append(content[start:i])
            start = i + 1
        i += 1
    entries.append(content[start:])
    return [e.strip() for e in entries if e.strip()]


def _nodes_section(text: str) -> Optional[Tuple[int, int]]:
    """Bounds of the top-level ``["nodes"]`` table, if the text has one.

    Group entries carry small ``["nodes"]`` lists of their own; the node
    table proper is by far the largest, so the widest match wins.  A table
    that never closes runs to the end of the text.
    """
    best: Optional[Tuple[int, int]] = None
    for match in NODES_SECTION.finditer(text):
        open_pos = match.end() - 1
        close = find_closing_brace(text, open_pos)
        if close is None:
            close = len(text)
        if best is None or close - open_pos > best[1] - best[0]:
            best = (open_pos, close)
    return best


def _depth_at(text: str, pos: int) -> int:
    depth = 0
    i = 0
    while i < pos:
        ch = text[i]
        if ch == '"':
            i = skip_string(text, i, pos)
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        i += 1
    return depth


def _holds_node_marker(text: str, start: int, end: int) -> bool:
    """True if a node-start marker sits at the top level of ``text[start:end]``."""
    depth = 0
    i = start
    while i < end:
        ch = text[i]
        if ch == '"':
            i = skip_string(text, i, end)
            continue
        if ch == "[" and depth == 0 and NODE_START.match(text, i, end):
            return True
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        i += 1
    return False


def _trailing_closers(text: str, pos: int) -> Optional[int]:
    """Count of ``}`` after *pos*, or None if anything but closers, commas and whitespace follows."""
    count = 0
    for i in range(pos, len(text)):
        ch = text[i]
        if ch == "}":
            count += 1
        elif ch != "," and not ch.isspace():
            return None
    return count


def _body_close(text: str, match: re.Match, end: int, unterminated: int) -> Optional[int]:
    """Index of the brace closing the node body opened by *match*, or None.

    A body missing its own ``}`` borrows a later one.  Borrowing from a
    following node leaves that node's marker inside the body; borrowing from
    an enclosing table leaves fewer closers behind the body than the tables
    around it need.  *unterminated* is the number of bodies already found
    open earlier in the text, each of which holds one brace of extra depth.
    """
    body_open = match.end() - 1
    body_close = find_closing_brace(text, body_open, end)
    if body_close is None or _holds_node_marker(text, body_open + 1, body_close):
        return None
    closers = _trailing_closers(text, body_close + 1)
    if closers is not None and closers < _depth_at(text, match.start()) - unterminated:
        return None
    return body_close


def iter_node_bodies(text: str) -> Iterator[Tuple[str, Optional[str]]]:
    """Yield ``(node_id, body)`` for every node-start marker.

    ``body`` is the text between the node's braces, or None when the body
    is unterminated.  Scanning resumes right after an unterminated body's
    marker, so the nodes written after it are still found.
    """
    section = _nodes_section(text)
    if section is None:
        yield from _iter_marked_bodies(text)
        return

    open_pos, close_pos = section
    unterminated = 0
    i = open_pos + 1
    depth = 0
    while i < close_pos:
        ch = text[i]
        if ch == '"':
            i = skip_string(text, i, close_pos)
            continue
        if ch == "[" and depth == 0:
            match = NODE_START.match(text, i, close_pos)
            if match:
                body_close = _body_close(text, match, close_pos, unterminated)
                if body_close is None:
                    unterminated += 1
                    yield match.group(1), None
                    i = match.end()
                else:
                    yield match.group(1), text[match.end():body_close]
                    i = body_close + 1
                continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        i += 1


def _iter_marked_bodies(text: str) -> Iterator[Tuple[str, Optional[str]]]:
    unterminated = 0
    pos = 0
    while True:
        match = NODE_START.search(text, pos)
        if match is None:
            return
        body_close = _body_close(text, match, len(text), unterminated)
        if body_close is None:
            unterminated += 1
            yield match.group(1), None
            pos = match.end()
        else:
            yield match.group(1), text[match.end():body_close]
            pos = body_close + 1


# ===================================================================
# Field extraction
# ===================================================================

def _read_value(node_id: str, body: str, start: int) -> Tuple[str, int]:
    if start >= len(body):
        raise MalformedNodeError(node_id, "field without a value")
    ch = body[start]
    if ch == "{":
        close = find_closing_brace(body, start)
        if close is None:
            raise MalformedNodeError(node_id, "unbalanced sub-table")
        return body[start:close + 1], close + 1
    if ch == '"':
        end = string_end(body, start)
        if end is None:
            raise MalformedNodeError(node_id, "unterminated string")
        return body[start:end], end
    end = start
    while end < len(body) and body[end] not in ",}\n":
        end += 1
    return body[start:end].strip(), end


def top_level_fields(node_id: str, body: str) -> Dict[str, str]:
    """Map each top-level key of a node body to its raw value text."""
    fields: Dict[str, str] = {}
    i = 0
    while i < len(body):
        match = FIELD_KEY.match(body, i)
        if match:
            key = match.group(1) if match.group(1) is not None else match.group(2)
            fields[key], i = _read_value(node_id, body, match.end())
            continue
        ch = body[i]
        if ch == '"':
            i = skip_string(body, i)
        elif ch == "{":
            close = find_closing_brace(body, i)
            if close is None:
                raise MalformedNodeError(node_id, "unbalanced sub-table")
            i = close + 1
        else:
            i += 1
    return fields


def extract_string(fields: Dict[str, str], key: str, node_id: str) -> Optional[str]:
    raw = fields.get(key)
    if raw is None:
        return None
    if len(raw) < 2 or not (raw.startswith('"') and raw.endswith('"')):
        raise MalformedNodeError(node_id, f"{key} is not a string")
    return unquote(raw)


def extract_int(fields: Dict[str, str], key: str, node_id: str) -> Optional[int]:
    raw = fields.get(key)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        raise MalformedNodeError(node_id, f"{key} is not an integer: {raw!r}") from None


def extract_flag(fields: Dict[str, str], key: str) -> bool:
    return fields.get(key) == "true"


def _table_entries(fields: Dict[str, str], key: str, node_id: str) -> List[str]:
    raw = fields.get(key)
    if raw is None:
        return []
    if not (raw.startswith("{") and raw.endswith("}")):
        raise MalformedNodeError(node_id, f"{key} is not a table")
    return [ENTRY_KEY.sub("", entry) for entry in split_entries(raw[1:-1])]


def extract_string_list(fields: Dict[str, str], key: str, node_id: str) -> Tuple[str, ...]:
    values = []
    for entry in _table_entries(fields, key, node_id):
        if len(entry) < 2 or not (entry.startswith('"') and entry.endswith('"')):
            raise MalformedNodeError(node_id, f"{key} holds a non-string entry")
        values.append(unquote(entry))
    return tuple(values)


def extract_id_list(fields: Dict[str, str], key: str, node_id: str) -> Tuple[str, ...]:
    ids = []
    for entry in _table_entries(fields, key, node_id):
        value = unquote(entry) if entry.startswith('"') and entry.endswith('"') else entry
        if not (value.isascii() and value.isdigit()):
            raise MalformedNodeError(node_id, f"{key} holds a non-integer id: {entry!r}")
        ids.append(str(int(value)))
    return tuple(ids)


def parse_node_body(node_id: str, body: str) -> Node:
    """Build a :class:`Node` from one isolated node body.

    Raises:
        MalformedNodeError: If any present field has the wrong shape.
    """
    fields = top_level_fields(node_id, body)

    skill = extract_int(fields, "skill", node_id)
    if skill is not None and str(skill) != node_id:
        raise MalformedNodeError(node_id, f"skill {skill} does not match its key")

    flags = {attr: extract_flag(fields, key) for key, attr in FLAG_FIELDS.items()}

    return Node(
        node_id=node_id,
        name=extract_string(fields, "name", node_id) or "",
        icon=extract_string(fields, "icon", node_id) or "",
        stats=extract_string_list(fields, "stats", node_id),
        ascendancy_name=extract_string(fields, "ascendancyName", node_id),
        group=extract_int(fields, "group", node_id),
        orbit=extract_int(fields, "orbit", node_id),
        orbit_index=extract_int(fields, "orbitIndex", node_id),
        reminder_text=extract_string_list(fields, "reminderText", node_id),
        out=extract_id_list(fields, "out", node_id),
        in_=extract_id_list(fields, "in", node_id),
        **flags,
    )


# ===================================================================
# Parser
# ===================================================================

class TreeDataParser:
    """Turns raw tree data text into a :class:`TreeGraph`.

    Malformed node bodies are skipped and counted; a parse that produces
    no nodes at all raises :class:`TreeParseError`.
    """

    def __init__(self) -> None:
        self.parsed = 0
        self.skipped = 0
        self.skipped_ids: List[str] = []

    def parse(self, text: str, version: str) -> TreeGraph:
        self.parsed = 0
        self.skipped = 0
        self.skipped_ids = []
        nodes: Dict[str, Node] = {}

        for raw_id, body in iter_node_bodies(text):
            node_id = str(int(raw_id))
            if body is None:
                self._skip(node_id, "unterminated node body")
                continue
            try:
                node = parse_node_body(node_id, body)
            except MalformedNodeError as exc:
                self._skip(node_id, exc.reason)
                continue
            except ValueError as exc:
                self._skip(node_id, str(exc))
                continue
            nodes[node_id] = node
            self.parsed += 1

        if not nodes:
            if text.strip():
                raise TreeParseError(
                    f"No passive tree nodes could be parsed for version {version} "
                    f"({self.skipped} malformed node bodies skipped)"
                )
            raise TreeParseError(f"Tree data for version {version} is empty")

        if self.skipped:
            logger.warning(
                "Skipped %d malformed node(s) while parsing tree %s", self.skipped, version,
            )
        logger.info("Parsed %d nodes for tree version %s", len(nodes), version)
        return TreeGraph(version=version, nodes=nodes)

    def _skip(self, node_id: str, reason: str) -> None:
        logger.debug("Skipping node %s: %s", node_id, reason)
        self.skipped += 1
        self.skipped_ids.append(node_id)


def parse_tree_data(text: str, version: str) -> TreeGraph:
    """Parse raw tree data text into a graph tagged with *version*."""
    return TreeDataParser().parse(text, version)
