"""
Class name namespacing for CSS selectors, stylesheets and ``class`` attributes.

Accessories are authored independently, so two of them can use the same class
name for unrelated things. Before their markup is merged, every class name an
accessory uses is rewritten with a per-accessory prefix::

    >>> add_prefixes_to_css_selector_classes(".foo", "ns-")
    PrefixedCSSSelector(css_selector='.ns-foo', classes=frozenset({'foo'}))

The functions return the rewritten text together with the set of class names
found, without the prefix. That set is what ``class`` attributes get rewritten
against, so unrelated tokens of an attribute are left alone.

Rewriting is not idempotent, applying a prefix twice prefixes twice.
"""

import logging
from typing import Iterable, Optional

import tinycss2
from attrs import define, field
from cssselect2.parser import SelectorError
from cssselect2.parser import parse as parse_selectors
from tinycss2.ast import (
    FunctionBlock,
    IdentToken,
    Node,
    SquareBracketsBlock,
    StringToken,
)
from tinycss2.serializer import serialize_string_value

from headgear.errors import ParseError

logger = logging.getLogger(__name__)

#: At-rules whose blocks hold ordinary style rules.
CONDITIONAL_GROUP_RULES = frozenset(["media", "supports", "document"])


@define(frozen=True)
class PrefixedCSSSelector:
    """Rewritten selector and the original class names it references."""

    css_selector: str
    classes: frozenset = field(converter=frozenset, factory=frozenset)


@define(frozen=True)
class PrefixedCSSStylesheet:
    """Rewritten stylesheet and the original class names its selectors use."""

    css_stylesheet: str
    classes: frozenset = field(converter=frozenset, factory=frozenset)


def add_prefixes_to_css_selector_classes(
    css_selector: str, prefix: str
) -> PrefixedCSSSelector:
    """
    Rewrite ``.class`` terms of a CSS selector by adding a prefix to them.

    Attribute terms of the form ``[class~="foo"]`` are rewritten as well, as
    are selectors nested in functional pseudo-classes like ``:not(.foo)``.

    Args:
        css_selector: Selector list text, e.g. ``"g .foo, .bar"``
        prefix: Text to put in front of each class name
    Returns:
        :py:class:`PrefixedCSSSelector` holding the rewritten selector and the
        class names found, without the prefix
    Raises:
        ParseError: If the selector is not valid
    """
    if not css_selector.strip():
        return PrefixedCSSSelector(css_selector)
    tokens = _strip_comments(
        tinycss2.parse_component_value_list(css_selector, skip_comments=True)
    )
    _validate_selector(tokens, css_selector)
    classes: set[str] = set()
    rewritten = _prefix_tokens(tokens, prefix, classes)
    return PrefixedCSSSelector(tinycss2.serialize(rewritten).strip(), classes)


def add_prefixes_to_css_stylesheet_selector_classes(
    css_stylesheet: str, prefix: str
) -> PrefixedCSSStylesheet:
    """
    Rewrite ``.class`` terms of every selector in a stylesheet.

    The result is serialized compactly, without comments. Rules without
    declarations are dropped. Rules nested in ``@media`` and ``@supports``
    are rewritten, other at-rules are passed through unchanged.

    Args:
        css_stylesheet: Stylesheet text, e.g. the content of a ``<style>``
        prefix: Text to put in front of each class name
    Returns:
        :py:class:`PrefixedCSSStylesheet` holding the rewritten stylesheet and
        the class names found, without the prefix
    Raises:
        ParseError: If the stylesheet or one of its selectors is not valid
    """
    if not css_stylesheet.strip():
        return PrefixedCSSStylesheet("")
    rules = tinycss2.parse_stylesheet(
        css_stylesheet, skip_comments=True, skip_whitespace=True
    )
    classes: set[str] = set()
    text = _serialize_rules(rules, prefix, classes, css_stylesheet)
    return PrefixedCSSStylesheet(text, classes)


def add_prefixes_to_element_class_attribute(
    class_attribute: str, classes: Iterable[str], prefix: str
) -> str:
    """
    Rewrite the tokens of a ``class`` attribute value that are in ``classes``.

    Example::

        >>> add_prefixes_to_element_class_attribute("foo bar baz", {"foo", "bar"}, "ns-")
        'ns-foo ns-bar baz'
    """
    known = classes if isinstance(classes, (set, frozenset)) else set(classes)
    return " ".join(
        prefix + token if token in known else token
        for token in class_attribute.split()
    )


def add_prefixes_to_svg_class_attributes(svg, prefix: str, classes: Iterable[str]) -> None:
    """Rewrite the ``class`` attribute of every element under ``svg`` in place."""
    known = frozenset(classes)
    for element in svg.iter():
        class_attribute = element.get("class")
        if class_attribute:
            element.set(
                "class",
                add_prefixes_to_element_class_attribute(class_attribute, known, prefix),
            )


def _strip_comments(tokens: Iterable[Node]) -> list[Node]:
    return [token for token in tokens if token.type != "comment"]


def _validate_selector(tokens: list[Node], text: str) -> None:
    try:
        # parse() is lazy, errors only surface while iterating.
        for _ in parse_selectors(tokens):
            pass
    except SelectorError as e:
        raise ParseError(text, str(e)) from e


def _is_literal(token: Optional[Node], value: str) -> bool:
    return token is not None and token.type == "literal" and token.value == value


def _prefix_token(token: Node, prefix: str) -> Node:
    value = prefix + token.value
    if token.type == "string":
        return StringToken(
            token.source_line,
            token.source_column,
            value,
            '"%s"' % serialize_string_value(value),
        )
    return IdentToken(token.source_line, token.source_column, value)


def _prefix_tokens(tokens: list[Node], prefix: str, classes: set[str]) -> list[Node]:
    result = []
    previous = None
    for token in tokens:
        new_token = token
        if token.type == "ident" and _is_literal(previous, "."):
            classes.add(token.value)
            new_token = _prefix_token(token, prefix)
        elif token.type == "[] block":
            new_token = SquareBracketsBlock(
                token.source_line,
                token.source_column,
                _prefix_attribute(token.content, prefix, classes),
            )
        elif token.type == "function":
            new_token = FunctionBlock(
                token.source_line,
                token.source_column,
                token.name,
                _prefix_tokens(_strip_comments(token.arguments), prefix, classes),
            )
        result.append(new_token)
        previous = token
    return result


def _prefix_attribute(content: list[Node], prefix: str, classes: set[str]) -> list[Node]:
    # Only [class~=value] selects by class name; other operators match the
    # raw attribute text.
    indices = [
        index
        for index, token in enumerate(content)
        if token.type not in ("whitespace", "comment")
    ]
    if len(indices) < 3:
        return list(content)
    name, operator, value = (content[index] for index in indices[:3])
    if not (
        name.type == "ident"
        and name.lower_value == "class"
        and _is_literal(operator, "~=")
        and value.type in ("ident", "string")
    ):
        return list(content)
    classes.add(value.value)
    result = list(content)
    result[indices[2]] = _prefix_token(value, prefix)
    return result


def _split_selector_list(prelude: list[Node]) -> list[list[Node]]:
    selectors: list[list[Node]] = [[]]
    for token in _strip_comments(prelude):
        if _is_literal(token, ","):
            selectors.append([])
        else:
            selectors[-1].append(token)
    return selectors


def _serialize_declarations(content: list[Node], source: str) -> str:
    parts = []
    for declaration in tinycss2.parse_declaration_list(
        content, skip_comments=True, skip_whitespace=True
    ):
        if declaration.type == "error":
            raise ParseError(source, declaration.message)
        if declaration.type == "at-rule":
            parts.append(declaration.serialize())
            continue
        value = tinycss2.serialize(_strip_comments(declaration.value)).strip()
        parts.append(
            "%s:%s%s;"
            % (declaration.name, value, "!important" if declaration.important else "")
        )
    return "".join(parts)


def _serialize_rules(rules: list[Node], prefix: str, classes: set[str], source: str) -> str:
    parts = []
    for rule in rules:
        if rule.type == "error":
            raise ParseError(source, rule.message)
        elif rule.type == "qualified-rule":
            declarations = _serialize_declarations(rule.content, source)
            if not declarations:
                logger.debug("Dropping rule without declarations: %s", rule.serialize())
                continue
            selectors = []
            for tokens in _split_selector_list(rule.prelude):
                _validate_selector(tokens, source)
                selectors.append(
                    tinycss2.serialize(_prefix_tokens(tokens, prefix, classes)).strip()
                )
            parts.append("%s{%s}" % (",".join(selectors), declarations))
        elif rule.type == "at-rule":
            if rule.content is not None and rule.lower_at_keyword in CONDITIONAL_GROUP_RULES:
                nested = tinycss2.parse_rule_list(
                    rule.content, skip_comments=True, skip_whitespace=True
                )
                parts.append(
                    "@%s %s{%s}"
                    % (
                        rule.at_keyword,
                        tinycss2.serialize(_strip_comments(rule.prelude)).strip(),
                        _serialize_rules(nested, prefix, classes, source),
                    )
                )
            else:
                parts.append(rule.serialize())
    return "".join(parts)
