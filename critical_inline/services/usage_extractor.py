"""Reduce a stylesheet to the rules a document actually exercises."""

from __future__ import annotations

from typing import List, Optional, Union

import tinycss2

from critical_inline.core.errors import ParseError
from critical_inline.core.logging import get_logger
from critical_inline.services.selectors import SelectorMatcher, TokenMatcher, parse_selector_list
from critical_inline.services.usage import DocumentUsage, collect_usage, parse_document

logger = get_logger(__name__)

# At-rules whose block holds style rules; recursed into and kept only if a child survives.
CONDITIONAL_GROUP_RULES = {"media", "supports", "container", "layer", "document", "-moz-document", "scope"}

SEPARATOR_NODES = ("whitespace", "comment")
HTML_COMMENT_MARKERS = ("<!--", "-->")


class SourceText:
    """Stylesheet text with tinycss2 node positions mapped back to string offsets."""

    def __init__(self, css_content: str) -> None:
        # Same newline preprocessing tinycss2 applies before tokenizing.
        self.text = css_content.replace("\r\n", "\n").replace("\r", "\n").replace("\f", "\n")
        self._line_starts = [0]
        self._line_starts.extend(index + 1 for index, char in enumerate(self.text) if char == "\n")

    def offset(self, node) -> int:
        return self._line_starts[node.source_line - 1] + node.source_column - 1


def extract_critical_css(
    html_content: Union[str, bytes],
    css_content: str,
    *,
    matcher: Optional[SelectorMatcher] = None,
    html_parser: Optional[str] = None,
) -> str:
    """Return the rules of ``css_content`` whose selectors ``html_content`` satisfies.

    The result is a rule-level filter of the source: retained rules are
    sliced out of the stylesheet text unchanged and keep their relative
    order, conditional groups keep their original prelude around the
    retained children and disappear when none survive. Selectors only
    satisfied after script runs are dropped; the full stylesheet still
    loads afterwards.
    """

    usage = collect_usage(parse_document(html_content, html_parser))
    source = SourceText(css_content)
    nodes = tinycss2.parse_stylesheet(source.text)
    kept = _filter_rules(nodes, source, len(source.text), usage, matcher or TokenMatcher())

    logger.debug(
        "critical_css_extracted",
        source_rules=sum(node.type not in SEPARATOR_NODES for node in nodes),
        kept_rules=len(kept),
    )
    return "\n".join(kept)


def _filter_rules(
    nodes: list, source: SourceText, end: int, usage: DocumentUsage, matcher: SelectorMatcher
) -> List[str]:
    """Filter one rule list; ``end`` is the offset where the enclosing block's content stops."""

    kept: List[str] = []
    for index, node in enumerate(nodes):
        if node.type in SEPARATOR_NODES:
            continue
        if node.type == "error":
            raise ParseError(
                f"Invalid stylesheet: {node.message}",
                line=node.source_line,
                column=node.source_column,
            )

        # Whitespace and comments are nodes too, so the next sibling starts where this rule ends.
        start = source.offset(node)
        stop = source.offset(nodes[index + 1]) if index + 1 < len(nodes) else end
        text = source.text[start:stop].rstrip()
        # parse_stylesheet drops top-level <!-- and --> without a node of their own
        while text.endswith(HTML_COMMENT_MARKERS):
            text = text[: -len("-->") if text.endswith("-->") else -len("<!--")].rstrip()

        if node.type == "qualified-rule":
            selectors = parse_selector_list(node.prelude)
            if any(matcher.match(usage, selector) for selector in selectors):
                kept.append(text)
            continue

        if node.type == "at-rule" and node.content is not None and node.lower_at_keyword in CONDITIONAL_GROUP_RULES:
            children = tinycss2.parse_rule_list(node.content)
            if not children:
                continue
            body_start = source.offset(children[0])
            body_end = start + len(text) - 1 if text.endswith("}") else start + len(text)
            retained = _filter_rules(children, source, body_end, usage, matcher)
            if retained:
                header = source.text[start:body_start].rstrip()
                kept.append(header + "\n" + "\n".join(retained) + "\n}")
            continue

        # Selector-free at-rules (@font-face, @keyframes, @import, ...) are kept whole.
        kept.append(text)
    return kept
