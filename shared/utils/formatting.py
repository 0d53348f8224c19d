"""Formatting utilities for step content shown in the rich-text editor."""
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

_HTML_TAG_RE = re.compile(r"<(p|ul|ol|li|div|span|br|strong|em|b|i|a|h[1-6])[\s>]", re.IGNORECASE)
_NUMBERED_RE = re.compile(r"^(\d+)[.)]\s+(.+)$")
_BULLET_RE = re.compile(r"^[-*•]\s+(.+)$")
_BOLD_STAR_RE = re.compile(r"\*\*(.+?)\*\*")
_BOLD_UNDERSCORE_RE = re.compile(r"__(.+?)__")
_ITALIC_RE = re.compile(r"(?<![*\w])\*(?!\s)(.+?)(?<!\s)\*(?![*\w])")

MAX_INDENT_LEVEL = 3


@dataclass
class _Line:
    kind: str  # ol, ul, text, blank
    content: str
    indent: int


def _indent_level(line: str) -> int:
    spaces = 0
    for ch in line:
        if ch == " ":
            spaces += 1
        elif ch == "\t":
            spaces += 2
        else:
            break
    return min(spaces // 2, MAX_INDENT_LEVEL)


def _inline(text: str) -> str:
    text = _BOLD_STAR_RE.sub(r"<strong>\1</strong>", text)
    text = _BOLD_UNDERSCORE_RE.sub(r"<strong>\1</strong>", text)
    return _ITALIC_RE.sub(r"<em>\1</em>", text)


def _tokenize(lines: List[str]) -> List[_Line]:
    tokens = []
    for line in lines:
        trimmed = line.strip()
        if not trimmed:
            tokens.append(_Line("blank", "", 0))
            continue
        indent = _indent_level(line)
        numbered = _NUMBERED_RE.match(trimmed)
        if numbered:
            tokens.append(_Line("ol", _inline(numbered.group(2)), indent))
            continue
        bullet = _BULLET_RE.match(trimmed)
        if bullet:
            tokens.append(_Line("ul", _inline(bullet.group(1)), indent))
            continue
        tokens.append(_Line("text", _inline(trimmed), indent))
    return tokens


def _render_list(tokens: List[_Line], start: int, kind: str, base_indent: int) -> Tuple[str, int]:
    items = []
    i = start
    while i < len(tokens):
        if tokens[i].kind == "blank":
            i += 1
            continue
        if tokens[i].kind == kind and tokens[i].indent == base_indent:
            item_html, i = _render_item(tokens, i, kind, base_indent)
            items.append(item_html)
        else:
            break
    return f"<{kind}>{''.join(items)}</{kind}>", i


def _render_item(tokens: List[_Line], start: int, kind: str, base_indent: int) -> Tuple[str, int]:
    # The editor needs <p> inside <li>
    html = f"<li><p>{tokens[start].content}</p>"
    i = start + 1
    while i < len(tokens):
        token = tokens[i]
        if token.kind == "blank":
            i += 1
            continue
        if token.kind == kind and token.indent == base_indent:
            break
        if token.indent > base_indent:
            if token.kind in ("ol", "ul"):
                sub_html, i = _render_list(tokens, i, token.kind, token.indent)
                html += sub_html
            else:
                html += f"<p>{token.content}</p>"
                i += 1
            continue
        # Numbered items adopt bullets at the same indent; bullets never adopt numbers
        if token.indent == base_indent and token.kind in ("ol", "ul") and kind == "ol":
            sub_html, i = _render_list(tokens, i, token.kind, token.indent)
            html += sub_html
            continue
        break
    return html + "</li>", i


def markdown_to_html(text: Optional[str]) -> Optional[str]:
    """
    Convert markdown-style text to editor HTML.

    Handles paragraphs, numbered and bullet lists nested up to three levels
    (two spaces per level), and **bold**/__bold__/*italic* inline markup.
    Text that already contains HTML structure tags is returned unchanged;
    placeholder brackets such as <topic> are not treated as HTML.

    Args:
        text: Markdown text, or None

    Returns:
        HTML string, or None for empty input
    """
    if not text:
        return None
    if _HTML_TAG_RE.search(text):
        return text

    tokens = _tokenize(text.split("\n"))
    parts = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token.kind == "blank":
            i += 1
        elif token.kind in ("ol", "ul"):
            list_html, i = _render_list(tokens, i, token.kind, token.indent)
            parts.append(list_html)
        else:
            parts.append(f"<p>{token.content}</p>")
            i += 1
    return "".join(parts)
