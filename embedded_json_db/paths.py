from __future__ import annotations
import re
from functools import lru_cache
from typing import Any, Dict, List, Tuple, Union

from .errors import PreconditionError

Token = Union[str, int]

# name | [123] | ["quoted"] | ['quoted']
_TOKEN_RE = re.compile(
    r"""
    (?P<name>[^.\[\]]+)
    | \[(?P<index>-?\d+)\]
    | \[(?P<quote>["'])(?P<key>(?:\\.|(?!(?P=quote)).)*)(?P=quote)\]
    | (?P<dot>\.)
    """,
    re.VERBOSE,
)


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


@lru_cache(maxsize=1024)
def parse_path(path: str) -> Tuple[Token, ...]:
    """
    Split a dotted path into key/index tokens.

    "a.b[0].c" -> ("a", "b", 0, "c"); a purely numeric dotted segment
    ("items.2") becomes an int token as well.
    """
    if not isinstance(path, str) or not path:
        raise PreconditionError("path must be a non-empty string")
    tokens: List[Token] = []
    pos = 0
    expect_token = True
    while pos < len(path):
        m = _TOKEN_RE.match(path, pos)
        if not m:
            raise PreconditionError(f"malformed path: {path!r}")
        if m.group("dot") is not None:
            if expect_token:
                raise PreconditionError(f"empty segment in path: {path!r}")
            expect_token = True
        elif m.group("name") is not None:
            if not expect_token:
                raise PreconditionError(f"malformed path: {path!r}")
            name = m.group("name")
            tokens.append(int(name) if name.isdigit() else name)
            expect_token = False
        elif m.group("index") is not None:
            tokens.append(int(m.group("index")))
            expect_token = False
        else:
            tokens.append(re.sub(r"\\(.)", r"\1", m.group("key")))
            expect_token = False
        pos = m.end()
    if expect_token:
        raise PreconditionError(f"path ends with a separator: {path!r}")
    return tuple(tokens)


def format_path(tokens: Tuple[Token, ...]) -> str:
    out = ""
    for tok in tokens:
        if isinstance(tok, int):
            out += f"[{tok}]"
        elif re.fullmatch(r"[^.\[\]\"']+", tok) and not tok.isdigit():
            out += f".{tok}" if out else tok
        else:
            out += '["' + tok.replace("\\", "\\\\").replace('"', '\\"') + '"]'
    return out


def normalize_path(path: str) -> str:
    return format_path(parse_path(path))


def _step(node: Any, tok: Token) -> Any:
    if isinstance(node, dict):
        key = str(tok)
        return node[key] if key in node else MISSING
    if isinstance(node, list):
        if isinstance(tok, int) or (isinstance(tok, str) and tok.lstrip("-").isdigit()):
            idx = int(tok)
            if -len(node) <= idx < len(node):
                return node[idx]
        return MISSING
    return MISSING


def resolve(doc: Any, path: Union[str, Tuple[Token, ...]]) -> Any:
    """Return the node at path or MISSING."""
    tokens = parse_path(path) if isinstance(path, str) else path
    cur = doc
    for tok in tokens:
        cur = _step(cur, tok)
        if cur is MISSING:
            return MISSING
    return cur


def get_path(doc: Any, path: str, default: Any = None) -> Any:
    val = resolve(doc, path)
    return default if val is MISSING else val


def has_path(doc: Any, path: str) -> bool:
    return resolve(doc, path) is not MISSING


def set_path(doc: Dict[str, Any], path: str, value: Any) -> None:
    """
    Assign value at path, creating intermediate containers on the way:
    a list when the next token is an int, a dict otherwise.
    """
    tokens = parse_path(path)
    cur: Any = doc
    for i, tok in enumerate(tokens):
        last = i == len(tokens) - 1
        nxt = None if last else tokens[i + 1]
        if isinstance(cur, list) and isinstance(tok, int):
            if tok < 0:
                if -tok > len(cur):
                    raise PreconditionError(f"negative index out of range in path: {path!r}")
                tok = len(cur) + tok
            while len(cur) <= tok:
                cur.append(None)
            if last:
                cur[tok] = value
                return
            if not isinstance(cur[tok], (dict, list)):
                cur[tok] = [] if isinstance(nxt, int) else {}
            cur = cur[tok]
        elif isinstance(cur, dict):
            key = str(tok)
            if last:
                cur[key] = value
                return
            if not isinstance(cur.get(key), (dict, list)):
                cur[key] = [] if isinstance(nxt, int) else {}
            cur = cur[key]
        else:
            raise PreconditionError(f"cannot descend into {type(cur).__name__} at {path!r}")


def unset_path(doc: Any, path: str) -> bool:
    tokens = parse_path(path)
    parent = resolve(doc, tokens[:-1]) if len(tokens) > 1 else doc
    tok = tokens[-1]
    if isinstance(parent, dict) and str(tok) in parent:
        del parent[str(tok)]
        return True
    if isinstance(parent, list) and isinstance(tok, int) and -len(parent) <= tok < len(parent):
        del parent[tok]
        return True
    return False
