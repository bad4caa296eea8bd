"""Selector parsing and the matching strategies used to decide rule usage.

Selectors are read from tinycss2 component values into a small structure:
a :class:`ComplexSelector` is a chain of :class:`CompoundSelector` joined by
combinators, and each compound records the simple selectors it requires
(tag, classes, ids, attribute conditions). Pseudo-classes and
pseudo-elements carry no usage information and are dropped, except for the
selector-list pseudo-classes (``:is()`` and friends) whose alternatives are
kept.

Matching is a pluggable capability behind :class:`SelectorMatcher`:

- :class:`TokenMatcher` checks every simple selector against the token set
  collected from the document, ignoring structure between compounds.
- :class:`DomMatcher` evaluates the selector against the parsed tree with
  soupsieve.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence

import soupsieve
import tinycss2
from tinycss2.serializer import serialize_identifier

from critical_inline.core.errors import ParseError
from critical_inline.models.critical_css import MatchStrategy
from critical_inline.services.usage import DocumentUsage

COMBINATORS = {">", "+", "~", "||"}
ATTRIBUTE_OPERATORS = {"=", "~=", "|=", "^=", "$=", "*="}
SELECTOR_LIST_PSEUDOS = {"is", "where", "matches", "-webkit-any", "-moz-any"}


@dataclass(frozen=True)
class AttributeCondition:
    """One ``[name op value flag]`` block."""

    name: str
    operator: Optional[str] = None
    value: Optional[str] = None
    case_insensitive: bool = False
    text: str = ""

    def accepts(self, candidate: str) -> bool:
        """Whether an attribute value seen in the document satisfies the condition."""

        if self.operator is None:
            return True

        expected = self.value or ""
        if self.case_insensitive:
            expected, candidate = expected.lower(), candidate.lower()

        if self.operator == "=":
            return candidate == expected
        if self.operator == "~=":
            return expected in candidate.split()
        if self.operator == "|=":
            return candidate == expected or candidate.startswith(expected + "-")
        # An empty value never matches the substring operators.
        if not expected:
            return False
        if self.operator == "^=":
            return candidate.startswith(expected)
        if self.operator == "$=":
            return candidate.endswith(expected)
        return expected in candidate


@dataclass
class CompoundSelector:
    """Simple selectors that must all hold on a single element."""

    tag: Optional[str] = None
    classes: List[str] = field(default_factory=list)
    ids: List[str] = field(default_factory=list)
    attributes: List[AttributeCondition] = field(default_factory=list)
    alternatives: List[List["ComplexSelector"]] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.tag or self.classes or self.ids or self.attributes or self.alternatives)

    @property
    def dom_text(self) -> str:
        parts = [self.tag or ""]
        parts.extend(f".{serialize_identifier(name)}" for name in self.classes)
        parts.extend(f"#{serialize_identifier(name)}" for name in self.ids)
        parts.extend(condition.text for condition in self.attributes)
        for group in self.alternatives:
            parts.append(":is(" + ", ".join(selector.dom_text for selector in group) + ")")
        return "".join(parts) or "*"


@dataclass
class ComplexSelector:
    """Compounds joined by combinators, as written in the stylesheet."""

    text: str
    compounds: List[CompoundSelector] = field(default_factory=list)
    combinators: List[str] = field(default_factory=list)

    @property
    def dom_text(self) -> str:
        if not self.compounds:
            return "*"
        pieces = [self.compounds[0].dom_text]
        for combinator, compound in zip(self.combinators, self.compounds[1:]):
            pieces.append(" " if combinator == " " else f" {combinator} ")
            pieces.append(compound.dom_text)
        return "".join(pieces)


def parse_selector_list(prelude: Sequence) -> List[ComplexSelector]:
    """Split a rule prelude on top-level commas and parse each selector."""

    selectors: List[ComplexSelector] = []
    current: list = []
    for token in list(prelude) + [None]:
        if token is None or (token.type == "literal" and token.value == ","):
            if any(item.type not in ("whitespace", "comment") for item in current):
                selectors.append(_parse_complex(current))
            elif token is not None:
                raise ParseError("Empty selector in selector list", selector=tinycss2.serialize(prelude).strip())
            current = []
        else:
            current.append(token)
    return selectors


def _parse_complex(tokens: list) -> ComplexSelector:
    tokens = [token for token in tokens if token.type != "comment"]
    selector = ComplexSelector(text=tinycss2.serialize(tokens).strip())
    compound = CompoundSelector()
    started = False
    combinator: Optional[str] = None

    def begin_part() -> None:
        nonlocal started, combinator
        if not started:
            if selector.compounds:
                selector.combinators.append(combinator or " ")
            started = True
            combinator = None

    def close_compound() -> None:
        nonlocal compound, started
        if started:
            selector.compounds.append(compound)
            compound = CompoundSelector()
            started = False

    index = 0
    while index < len(tokens):
        token = tokens[index]
        following = tokens[index + 1] if index + 1 < len(tokens) else None

        if token.type == "whitespace":
            close_compound()
        elif token.type == "literal" and token.value in COMBINATORS:
            close_compound()
            combinator = token.value
        elif token.type == "ident":
            begin_part()
            compound.tag = token.lower_value
        elif token.type == "literal" and token.value == "*":
            begin_part()
            compound.tag = None
        elif token.type == "literal" and token.value == "|":
            # namespace prefix: the element name follows
            begin_part()
            compound.tag = None
        elif token.type == "literal" and token.value == "&":
            begin_part()
        elif token.type == "literal" and token.value == ".":
            if following is None or following.type != "ident":
                raise ParseError("Invalid class selector", selector=selector.text)
            begin_part()
            compound.classes.append(following.value)
            index += 1
        elif token.type == "hash":
            begin_part()
            compound.ids.append(token.value)
        elif token.type == "[] block":
            begin_part()
            compound.attributes.append(_parse_attribute(token, selector.text))
        elif token.type == "literal" and token.value == ":":
            begin_part()
            index = _consume_pseudo(tokens, index, compound, selector.text)
        else:
            raise ParseError(
                "Unexpected token in selector",
                selector=selector.text,
                token=tinycss2.serialize([token]),
            )
        index += 1

    close_compound()
    return selector


def _consume_pseudo(tokens: list, index: int, compound: CompoundSelector, text: str) -> int:
    """Consume a pseudo-class or pseudo-element starting at ``tokens[index]``."""

    index += 1
    if index < len(tokens) and tokens[index].type == "literal" and tokens[index].value == ":":
        index += 1
    if index >= len(tokens) or tokens[index].type not in ("ident", "function"):
        raise ParseError("Invalid pseudo selector", selector=text)

    token = tokens[index]
    if token.type == "function" and token.lower_name in SELECTOR_LIST_PSEUDOS:
        compound.alternatives.append(parse_selector_list(token.arguments))
    return index


def _parse_attribute(block, text: str) -> AttributeCondition:
    args = [token for token in block.content if token.type not in ("whitespace", "comment")]
    raw = block.serialize()

    # Drop namespace prefixes: [ns|attr], [*|attr], [|attr]
    if len(args) >= 2 and args[1].type == "literal" and args[1].value == "|":
        args = args[2:]
    elif args and args[0].type == "literal" and args[0].value == "|":
        args = args[1:]

    if not args or args[0].type != "ident":
        raise ParseError("Invalid attribute selector", selector=text, attribute=raw)
    name = args[0].lower_value

    if len(args) == 1:
        return AttributeCondition(name=name, text=raw)

    operator = args[1]
    if operator.type != "literal" or operator.value not in ATTRIBUTE_OPERATORS or len(args) < 3:
        raise ParseError("Invalid attribute selector", selector=text, attribute=raw)
    value = args[2]
    if value.type not in ("string", "ident"):
        raise ParseError("Invalid attribute value", selector=text, attribute=raw)

    case_insensitive = False
    if len(args) == 4 and args[3].type == "ident" and args[3].lower_value in ("i", "s"):
        case_insensitive = args[3].lower_value == "i"
    elif len(args) > 3:
        raise ParseError("Invalid attribute selector", selector=text, attribute=raw)

    return AttributeCondition(
        name=name,
        operator=operator.value,
        value=value.value,
        case_insensitive=case_insensitive,
        text=raw,
    )


class SelectorMatcher(Protocol):
    """Decides whether a document exercises a selector."""

    def match(self, usage: DocumentUsage, selector: ComplexSelector) -> bool:
        ...


class TokenMatcher:
    """Retain a selector when every simple selector it names occurs in the document."""

    def match(self, usage: DocumentUsage, selector: ComplexSelector) -> bool:
        return all(self._compound_matches(usage, compound) for compound in selector.compounds)

    def _compound_matches(self, usage: DocumentUsage, compound: CompoundSelector) -> bool:
        if compound.tag and compound.tag not in usage.tags:
            return False
        if not all(name in usage.classes for name in compound.classes):
            return False
        if not all(name in usage.ids for name in compound.ids):
            return False
        for condition in compound.attributes:
            if not usage.has_attribute(condition.name):
                return False
            if not any(condition.accepts(value) for value in usage.attribute_values(condition.name)):
                return False
        return all(
            any(self.match(usage, alternative) for alternative in group) for group in compound.alternatives
        )


class DomMatcher:
    """Retain a selector when it selects at least one element of the parsed document."""

    def match(self, usage: DocumentUsage, selector: ComplexSelector) -> bool:
        query = selector.dom_text
        try:
            return soupsieve.select_one(query, usage.soup) is not None
        except soupsieve.SelectorSyntaxError as exc:
            raise ParseError("Selector not supported by the DOM matcher", selector=selector.text) from exc


MATCHERS: Dict[MatchStrategy, SelectorMatcher] = {
    MatchStrategy.tokens: TokenMatcher(),
    MatchStrategy.dom: DomMatcher(),
}


def get_matcher(strategy: MatchStrategy | str) -> SelectorMatcher:
    """Return the matcher registered for ``strategy``."""

    return MATCHERS[MatchStrategy(strategy)]
