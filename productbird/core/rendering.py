"""Rendering of generated description blocks into sanitized HTML."""

import html
import logging
import re
from typing import Any, Mapping

import nh3

logger = logging.getLogger(__name__)

# Tags a description block may ask for; anything else is rendered as <p>
ALLOWED_BLOCK_TAGS = frozenset({"p", "h2", "h3", "h4", "h5", "h6", "ul", "ol", "li", "strong", "em", "a", "span"})

# Markup allowed inside block text and applied descriptions
ALLOWED_INLINE_TAGS = {
    "a",
    "abbr",
    "b",
    "blockquote",
    "br",
    "code",
    "em",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "i",
    "li",
    "ol",
    "p",
    "pre",
    "s",
    "small",
    "span",
    "strong",
    "sub",
    "sup",
    "u",
    "ul",
}
ALLOWED_INLINE_ATTRIBUTES = {
    "a": {"href", "title", "target"},
    "abbr": {"title"},
    "span": {"class"},
    "*": {"class"},
}

_ATTRIBUTE_NAME_PATTERN = re.compile(r"[^a-z0-9_\-]")


def sanitize_html(value: str) -> str:
    """Strip any markup that is not on the description allow-list."""
    return nh3.clean(
        value,
        tags=ALLOWED_INLINE_TAGS,
        attributes=ALLOWED_INLINE_ATTRIBUTES,
        link_rel=None,
    )


def sanitize_attribute_name(name: Any) -> str:
    """Lowercase an attribute name and drop characters outside [a-z0-9_-]."""
    return _ATTRIBUTE_NAME_PATTERN.sub("", str(name).lower())


def render_attributes(attributes: Any) -> str:
    """Render a block's attribute mapping as ``name="value"`` pairs."""
    if not isinstance(attributes, Mapping):
        return ""

    rendered = []
    for raw_name, raw_value in attributes.items():
        name = sanitize_attribute_name(raw_name)
        if not name:
            continue
        value = html.escape("" if raw_value is None else str(raw_value), quote=True)
        rendered.append(f' {name}="{value}"')
    return "".join(rendered)


def render_description(blocks: Any) -> str:
    """Render description blocks (``[{tag, text, attributes?}]``) to HTML.

    Blocks that are not objects or have no text are skipped. Unknown tags
    fall back to ``p``. Returns an empty string when nothing renders.

    Example:
        ```python
        render_description([{"tag": "h2", "text": "Fit"}, {"text": "Runs small."}])
        # '<h2>Fit</h2>\\n<p>Runs small.</p>'
        ```
    """
    if not isinstance(blocks, list):
        return ""

    html_parts = []
    for block in blocks:
        if not isinstance(block, Mapping) or not block.get("text"):
            logger.warning(f"Skipping invalid description block: {type(block).__name__}")
            continue

        tag = block.get("tag")
        if tag not in ALLOWED_BLOCK_TAGS:
            tag = "p"

        text = sanitize_html(str(block["text"]))
        attributes = render_attributes(block.get("attributes"))
        html_parts.append(f"<{tag}{attributes}>{text}</{tag}>")

    return "\n".join(html_parts)


def render_content(content: Any) -> str:
    """Normalize poll or apply content, which may be blocks or an HTML string."""
    if isinstance(content, list):
        return render_description(content)
    if isinstance(content, str):
        return sanitize_html(content).strip()
    return ""
