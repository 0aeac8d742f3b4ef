"""
Accessory preparation and avatar composition.

Composing an avatar merges the SVG markup of all its accessories into one
document::

    <svg xmlns="http://www.w3.org/2000/svg" viewBox="...">
      <style>...every accessory's namespaced rules...</style>
      <g id="avatar">
        <g id="{namespace id of the lowest slot accessory}">...</g>
        ...
      </g>
    </svg>

Each accessory is first run through :py:func:`prepare`, which namespaces its
class names so that rules of one accessory cannot select elements of another,
and appends the user's palette colours for its customizable classes.
"""

import logging
import re
import xml.etree.ElementTree as ET
from typing import Optional

from attrs import define

from headgear.avatar import AccessoryFragment, Avatar, StylePalette
from headgear.constants import (
    AVATAR_GROUP_ID,
    FALLBACK_NAMESPACE_ID,
    NAMESPACE_SEPARATOR,
    SVG_NS,
    XLINK_NS,
)
from headgear.css import (
    add_prefixes_to_css_stylesheet_selector_classes,
    add_prefixes_to_svg_class_attributes,
)
from headgear.errors import CompositionError, MissingPaletteEntry, SVGParseError

logger = logging.getLogger(__name__)

ET.register_namespace("", SVG_NS)
ET.register_namespace("xlink", XLINK_NS)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

#: Attributes of an accessory's ``<svg>`` root that are not carried over to
#: its group in the composed document.
_ROOT_ONLY_ATTRIBUTES = frozenset(
    [
        "id",
        "x",
        "y",
        "width",
        "height",
        "viewBox",
        "preserveAspectRatio",
        "version",
        "baseProfile",
        "zoomAndPan",
        "contentScriptType",
        "contentStyleType",
    ]
)


def svg_tag(name: str) -> str:
    """Qualified tag name of an SVG element."""
    return "{%s}%s" % (SVG_NS, name)


def local_name(tag) -> Optional[str]:
    if not isinstance(tag, str):
        return None  # Comment or ProcessingInstruction
    return tag.rsplit("}", 1)[-1]


@define
class PreparedAccessory:
    """
    Accessory markup isolated for composition.

    .. py:attribute:: namespace_id

        Id of the accessory's group, its classes are prefixed with this id.

    .. py:attribute:: svg

        The accessory's ``<svg>`` root with namespaced class attributes and no
        ``<style>`` elements.

    .. py:attribute:: stylesheet

        Namespaced rules of the accessory followed by the palette rules.

    .. py:attribute:: classes

        Unprefixed class names that were namespaced, those used by the
        stylesheet selectors and the customizable classes.
    """

    namespace_id: str
    svg: ET.Element
    stylesheet: str
    classes: frozenset = frozenset()


def parse_svg(text: str, accessory_id: Optional[str] = None) -> ET.Element:
    """
    Parse SVG markup into an element tree.

    Un-namespaced elements are put in the SVG namespace, so markup authored
    without ``xmlns`` composes the same as markup with it.

    :raises SVGParseError: if the markup is not well-formed or its root is not
        an ``<svg>`` element.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise SVGParseError(accessory_id, str(e)) from e
    for element in root.iter():
        if isinstance(element.tag, str) and not element.tag.startswith("{"):
            element.tag = svg_tag(element.tag)
    if root.tag != svg_tag("svg"):
        raise SVGParseError(
            accessory_id, "root element is <%s>, not <svg>" % local_name(root.tag)
        )
    return root


def serialize_svg(svg: ET.Element) -> str:
    """Serialize an SVG element tree to XML text."""
    return ET.tostring(svg, encoding="unicode")


def namespace_id_for(accessory: AccessoryFragment, index: int) -> str:
    """
    Id used to namespace an accessory, falls back to its position.

    Ids containing the prefix separator fall back as well, so that no two
    prefixed class names can be equal, as does the avatar group id.
    """
    if _IDENTIFIER.match(accessory.id) and accessory.id != AVATAR_GROUP_ID:
        return accessory.id
    return FALLBACK_NAMESPACE_ID.format(index=index)


def _extract_stylesheets(svg: ET.Element) -> str:
    texts = []
    for parent in list(svg.iter()):
        for child in list(parent):
            if local_name(child.tag) == "style":
                texts.append("".join(child.itertext()))
                parent.remove(child)
    return "\n".join(texts)


def prepare(
    accessory: AccessoryFragment, index: int, palette: StylePalette
) -> PreparedAccessory:
    """
    Isolate and recolour one accessory.

    The accessory's ``<style>`` elements are removed from its markup and their
    rules collected into one stylesheet. Class names used by the stylesheet
    and the customizable classes are prefixed with the namespace id, both in
    the rules and in ``class`` attributes. Finally a fill rule is added for
    each customizable class, after the accessory's own rules so that the
    user's colour wins.

    Args:
        accessory: The accessory to prepare
        index: Position of the accessory in its avatar, used for the namespace
            id when the accessory id cannot be used
        palette: Fill colours, looked up by unprefixed class name
    Returns:
        :py:class:`PreparedAccessory`
    Raises:
        SVGParseError: If the accessory markup is malformed
        ParseError: If an embedded stylesheet is malformed
        MissingPaletteEntry: If a customizable class has no palette entry
    """
    svg = parse_svg(accessory.svg_data, accessory.id)
    namespace_id = namespace_id_for(accessory, index)
    prefix = namespace_id + NAMESPACE_SEPARATOR

    prefixed = add_prefixes_to_css_stylesheet_selector_classes(
        _extract_stylesheets(svg), prefix
    )
    classes = prefixed.classes | frozenset(accessory.customizable_classes)
    add_prefixes_to_svg_class_attributes(svg, prefix, classes)

    palette_rules = []
    for class_name in accessory.customizable_classes:
        fill = palette.get(class_name)
        if fill is None:
            raise MissingPaletteEntry(accessory.id, class_name)
        palette_rules.append(".%s%s{fill:%s;}" % (prefix, class_name, fill))

    logger.debug(
        "Prepared accessory %s as %s with %d classes",
        accessory.id,
        namespace_id,
        len(classes),
    )
    return PreparedAccessory(
        namespace_id=namespace_id,
        svg=svg,
        stylesheet=prefixed.css_stylesheet + "".join(palette_rules),
        classes=classes,
    )


def _copy_presentation_attributes(item: PreparedAccessory, group: ET.Element) -> None:
    # Attributes sizing the viewport of the accessory have no meaning on a
    # group. Everything else is inherited by the children and moves to the
    # group.
    for name, value in item.svg.items():
        if name in _ROOT_ONLY_ATTRIBUTES:
            continue
        logger.debug(
            "Moving attribute %s of accessory %s to its group", name, item.namespace_id
        )
        group.set(name, value)


def strip_insignificant_nodes(svg: ET.Element) -> ET.Element:
    """Remove comments, processing instructions and whitespace-only text."""
    for parent in list(svg.iter()):
        for child in list(parent):
            if not isinstance(child.tag, str):
                parent.remove(child)
        if parent.text is not None and not parent.text.strip():
            parent.text = None
        if parent.tail is not None and not parent.tail.strip():
            parent.tail = None
    return svg


def compose_avatar_svg(avatar: Avatar) -> ET.Element:
    """
    Merge the accessories of an avatar into one SVG document.

    Accessories are drawn in ascending slot number order; accessories with the
    same slot number keep their order in the avatar.

    :param avatar: :py:class:`~headgear.avatar.Avatar` to compose.
    :return: ``<svg>`` root element of the composed document.
    :raises CompositionError: if two accessories get the same namespace id.
    """
    ordered = sorted(
        enumerate(avatar.accessories), key=lambda item: item[1].slot_number
    )
    prepared = []
    namespace_ids = set()
    for index, accessory in ordered:
        item = prepare(accessory, index, avatar.styles)
        if item.namespace_id in namespace_ids:
            raise CompositionError(
                "Accessory %r has the same namespace id as another accessory: %s"
                % (accessory.id, item.namespace_id)
            )
        namespace_ids.add(item.namespace_id)
        prepared.append(item)

    root = ET.Element(svg_tag("svg"))
    view_box = None
    for item in prepared:
        item_view_box = item.svg.get("viewBox")
        if item_view_box is None:
            continue
        if view_box is None:
            view_box = item_view_box
        elif item_view_box.split() != view_box.split():
            logger.debug(
                "Accessory %s has viewBox %r, using %r",
                item.namespace_id,
                item_view_box,
                view_box,
            )
    if view_box is not None:
        root.set("viewBox", view_box)

    style = ET.SubElement(root, svg_tag("style"))
    style.text = "".join(item.stylesheet for item in prepared)
    avatar_group = ET.SubElement(root, svg_tag("g"), {"id": AVATAR_GROUP_ID})
    for item in prepared:
        group = ET.SubElement(avatar_group, svg_tag("g"), {"id": item.namespace_id})
        _copy_presentation_attributes(item, group)
        group.extend(list(item.svg))

    logger.debug("Composed avatar from %d accessories", len(prepared))
    return strip_insignificant_nodes(root)
