"""
modsnap_sanitizer.py - Best-effort repair of near-JSON mod descriptors.

Mod authors ship fabric.mod.json / quilt.mod.json files with comments,
trailing commas, byte-order marks and raw newlines inside strings. Every step
below walks the text with the same string-literal tracking (double quotes,
backslash escapes) so that nothing inside a string is mistaken for syntax.

All steps are total functions: they never raise, and sanitize() is a fixed
point, i.e. sanitize(sanitize(text)) == sanitize(text).
"""

import codecs
import re
from typing import List, Union

BOM = "\ufeff"

_LINE_END = re.compile(r"[\r\n]")


def _is_control(ch: str) -> bool:
    code = ord(ch)
    return code < 0x20 or code == 0x7F


def _is_blank(ch: str) -> bool:
    # Control characters count as blank here because the last step turns them into spaces
    return ch.isspace() or _is_control(ch)


def decode_metadata(raw: Union[bytes, str]) -> str:
    """Decodes descriptor bytes; UTF-16 when a UTF-16 BOM is present, else lossy UTF-8."""
    if isinstance(raw, str):
        return raw
    if raw.startswith(codecs.BOM_UTF16_LE) or raw.startswith(codecs.BOM_UTF16_BE):
        return raw.decode("utf-16", errors="replace")
    return raw.decode("utf-8", errors="replace")


def strip_bom(text: str) -> str:
    return text.lstrip(BOM)


def strip_comments(text: str) -> str:
    """
    Removes // line comments and /* */ block comments outside string literals.
    A block comment is replaced by one space so the tokens around it stay apart;
    an unterminated block comment swallows the rest of the text.
    """
    out: List[str] = []
    i, n = 0, len(text)
    in_string = False
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue

        if ch == '"':
            in_string = True
        elif ch == "/" and i + 1 < n:
            nxt = text[i + 1]
            if nxt == "/":
                match = _LINE_END.search(text, i + 2)
                i = match.start() if match else n  # line break itself is kept
                continue
            if nxt == "*":
                end = text.find("*/", i + 2)
                i = n if end == -1 else end + 2
                out.append(" ")
                continue
        out.append(ch)
        i += 1
    return "".join(out)


def strip_trailing_commas(text: str) -> str:
    """Drops every comma that is followed only by blanks (or more commas) before } or ]."""
    out: List[str] = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in "}]":
            j = len(out)
            while j > 0 and (out[j - 1] == "," or _is_blank(out[j - 1])):
                j -= 1
            if "," in out[j:]:
                tail = [c for c in out[j:] if c != ","]
                del out[j:]
                out.extend(tail)
        out.append(ch)
    return "".join(out)


def normalize_control_chars(text: str) -> str:
    """
    Makes string literals single-line: raw newlines and tabs inside strings
    become \\n and \\t escapes, other raw control characters there are dropped.
    Outside strings, control characters other than tab/CR/LF become spaces.
    """
    out: List[str] = []
    in_string = False
    escaped = False
    for ch in text:
        if not in_string:
            if ch == '"':
                in_string = True
                out.append(ch)
            elif _is_control(ch) and ch not in "\t\n\r":
                out.append(" ")
            else:
                out.append(ch)
            continue

        if escaped:
            escaped = False
            if ch == "\n":
                out.append("n")
            elif ch == "\t":
                out.append("t")
            elif _is_control(ch):
                # Keep the backslash paired so the closing quote is not eaten
                out.append("u0020")
            else:
                out.append(ch)
        elif ch == "\\":
            escaped = True
            out.append(ch)
        elif ch == '"':
            in_string = False
            out.append(ch)
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\t":
            out.append("\\t")
        elif _is_control(ch):
            continue
        else:
            out.append(ch)
    return "".join(out)


def sanitize(raw: Union[bytes, str]) -> str:
    """
    Applies every repair step in order and returns the best-guess JSON text.

    Args:
        raw: Descriptor bytes as read from the archive, or already-decoded text.

    Returns:
        Repaired text. Parsing it may still fail; that is the caller's concern.
    """
    text = decode_metadata(raw)
    text = strip_bom(text)
    text = strip_comments(text)
    text = strip_trailing_commas(text)
    text = normalize_control_chars(text)
    return text
