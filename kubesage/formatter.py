"""Normalize model output into the styled HTML container every response must use.

The conversion is a fixed, ordered list of textual rewrites, not a markdown
parser:

    code blocks -> inline code -> headings (h1, h2, h3) -> bullets
    -> paragraphs -> bold/italic

Converted code is stashed behind placeholders so later rewrites never touch
it, and leftovers that would fail the validity check are escaped. One pass
therefore always yields valid output, which makes normalization idempotent.
"""

import html as html_module
import re
from typing import List

CONTAINER_STYLE = (
    "font-family: 'Segoe UI', Arial, sans-serif; line-height: 1.6; color: #333; "
    "max-width: 800px; margin: 0 auto; padding: 20px;"
)
CODE_BLOCK_STYLE = "background-color: #f5f5f5; padding: 15px; border-radius: 5px; overflow-x: auto;"
INLINE_CODE_STYLE = "background-color: #f5f5f5; padding: 2px 4px; border-radius: 3px; font-family: monospace;"
H1_STYLE = "color: #2c3e50; border-bottom: 2px solid #3498db; padding-bottom: 10px;"
H2_STYLE = "color: #2c3e50; border-bottom: 1px solid #3498db; padding-bottom: 8px;"
H3_STYLE = "color: #2c3e50; margin-top: 15px;"
LIST_STYLE = "margin-left: 20px;"
ERROR_STYLE = (
    "font-family: 'Segoe UI', Arial, sans-serif; padding: 20px; border-left: 5px solid #e74c3c; "
    "background-color: #fadbd8; margin: 15px 0; border-radius: 0 5px 5px 0; "
    "box-shadow: 0 2px 4px rgba(0,0,0,0.1);"
)

ERROR_HTML_TEMPLATE = (
    '<div style="{style}">\n'
    '<h3 style="color: #c0392b; margin-top: 0; font-size: 18px;">Error Processing Request</h3>\n'
    '<p style="margin: 10px 0; line-height: 1.5;">{message}</p>\n'
    '<p style="margin: 10px 0; line-height: 1.5;">This may be due to a timeout or an unavailable '
    'model endpoint. Please try again or check your network connection.</p>\n'
    "</div>"
)

# Markers that indicate unconverted markdown
_LEFTOVERS = ("```", "\n#", "\n-")

_PLACEHOLDER = "\x00{kind}{index}\x00"
_PLACEHOLDER_RE = re.compile(r"\x00([BI])(\d+)\x00")

_CODE_BLOCK_RE = re.compile(r"```([\w+-]*)[^\n]*\n(.*?)\n?```", re.DOTALL)
_INLINE_CODE_RE = re.compile(r"`([^`\n]+)`")
_H1_RE = re.compile(r"^[ \t]*# (.+?)[ \t]*$", re.MULTILINE)
_H2_RE = re.compile(r"^[ \t]*## (.+?)[ \t]*$", re.MULTILINE)
_H3_RE = re.compile(r"^[ \t]*### (.+?)[ \t]*$", re.MULTILINE)
_BULLET_RUN_RE = re.compile(r"(?:^[ \t]*[-*+][ \t]+.+$\n?)+", re.MULTILINE)
_BULLET_ITEM_RE = re.compile(r"^[ \t]*[-*+][ \t]+(.+)$")
_BOLD_RE = re.compile(r"\*\*([^*\n]+)\*\*")
_ITALIC_RE = re.compile(r"(?<![*\w])\*([^*\s][^*\n]*)\*(?![*\w])")
_LINE_START_RE = re.compile(r"^([#-])", re.MULTILINE)
_BLOCK_START_RE = re.compile(
    r"^(?:<(?:/?(?:div|h[1-6]|p|ul|ol|li|pre|table|thead|tbody|tfoot|tr|th|td|blockquote|hr|br|section)\b)"
    r"|\x00B\d+\x00)",
    re.IGNORECASE,
)

_ENTITIES = {"#": "&#35;", "-": "&#45;", "`": "&#96;"}


def is_valid_html(text: str) -> bool:
    """Check whether ``text`` already satisfies the container contract.

    A heuristic gate: the trimmed text must start with a tag, end with a
    closing tag, contain a ``<div`` container and carry no markdown leftovers.
    """
    trimmed = text.strip()
    if not trimmed.startswith("<"):
        return False
    if not (trimmed.endswith(">") or trimmed.endswith("</div>")):
        return False
    if "<div" not in trimmed or "</div>" not in trimmed:
        return False
    return not any(marker in trimmed for marker in _LEFTOVERS)


def normalize_html(text: str) -> str:
    """Return ``text`` unchanged when valid, otherwise convert and wrap it.

    Never raises; malformed markdown ends up as inert text inside the container.
    """
    trimmed = (text or "").strip()
    if is_valid_html(trimmed):
        return trimmed
    return wrap_container(convert_markdown_to_html(trimmed))


def wrap_container(body: str) -> str:
    """Wrap converted markup in the outer styled container."""
    return f'<div style="{CONTAINER_STYLE}">\n{body}\n</div>'


def render_error(message: str) -> str:
    """Render a user-visible error in the same container contract as answers."""
    message = " ".join(str(message or "Unknown error").split())
    escaped = html_module.escape(message).replace("```", "&#96;&#96;&#96;")
    return ERROR_HTML_TEMPLATE.format(style=ERROR_STYLE, message=escaped)


def convert_markdown_to_html(markdown: str) -> str:
    """Convert the common markdown constructs to styled HTML.

    The result is the container body; ``wrap_container`` adds the outer div.
    """
    blocks: List[str] = []
    inlines: List[str] = []
    text = markdown.replace("\x00", "").replace("\r\n", "\n")

    text = _CODE_BLOCK_RE.sub(lambda m: _stash(blocks, "B", _code_block(m.group(1), m.group(2))), text)
    # Unterminated fences stay as literal text
    text = text.replace("```", "&#96;&#96;&#96;")

    text = _INLINE_CODE_RE.sub(lambda m: _stash(inlines, "I", _inline_code(m.group(1))), text)

    text = _H1_RE.sub(lambda m: f'<h1 style="{H1_STYLE}">{m.group(1)}</h1>', text)
    text = _H2_RE.sub(lambda m: f'<h2 style="{H2_STYLE}">{m.group(1)}</h2>', text)
    text = _H3_RE.sub(lambda m: f'<h3 style="{H3_STYLE}">{m.group(1)}</h3>', text)

    text = _BULLET_RUN_RE.sub(_bullet_list, text)

    text = "\n".join(_paragraph(line) for line in text.split("\n") if line.strip())

    text = _BOLD_RE.sub(r"<strong>\1</strong>", text)
    text = _ITALIC_RE.sub(r"<em>\1</em>", text)

    text = _restore(text, inlines, "I")
    text = text.replace("```", "&#96;&#96;&#96;")
    return _restore(text, blocks, "B")


def _stash(store: List[str], kind: str, html: str) -> str:
    store.append(html)
    placeholder = _PLACEHOLDER.format(kind=kind, index=len(store) - 1)
    # Code blocks must sit on their own line to be treated as block content
    return f"\n{placeholder}\n" if kind == "B" else placeholder


def _restore(text: str, store: List[str], kind: str) -> str:
    def replace(match: re.Match) -> str:
        if match.group(1) != kind:
            return match.group(0)
        return store[int(match.group(2))]

    return _PLACEHOLDER_RE.sub(replace, text)


def _code_block(language: str, code: str) -> str:
    escaped = html_module.escape(code, quote=False)
    escaped = escaped.replace("`", _ENTITIES["`"])
    escaped = _LINE_START_RE.sub(lambda m: _ENTITIES[m.group(1)], escaped)
    return f'<pre style="{CODE_BLOCK_STYLE}"><code class="language-{language}">{escaped}</code></pre>'


def _inline_code(code: str) -> str:
    escaped = html_module.escape(code, quote=False)
    return f'<code style="{INLINE_CODE_STYLE}">{escaped}</code>'


def _bullet_list(match: re.Match) -> str:
    items = []
    for line in match.group(0).splitlines():
        item = _BULLET_ITEM_RE.match(line)
        if item:
            items.append(f"<li>{item.group(1).strip()}</li>")
    trailing = "\n" if match.group(0).endswith("\n") else ""
    return f'<ul style="{LIST_STYLE}">' + "".join(items) + "</ul>" + trailing


def _paragraph(line: str) -> str:
    stripped = line.strip()
    if _BLOCK_START_RE.match(stripped):
        return stripped
    return f"<p>{stripped}</p>"
