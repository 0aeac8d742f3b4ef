"""
Avatar data model.

An :py:class:`Avatar` is a list of accessory fragments, each one an SVG image
authored on its own, plus the palette of colours the user picked for the
customizable classes of those accessories.

Avatars are usually loaded from JSON of the following shape::

    {
        "accessories": [
            {
                "id": "gaming_body_bottom_006",
                "slotNumber": 30,
                "customizableClasses": ["jumpsuit", "shoes", "body"],
                "svgData": "<svg xmlns=...>...</svg>"
            }
        ],
        "styles": [{"className": "body", "fill": "#FFFFFF"}]
    }
"""

import json
import logging
from typing import Any, Iterable, Iterator, Optional, Union

from attrs import define, field
from attrs.validators import deep_iterable, instance_of

from headgear.errors import AvatarDataError

logger = logging.getLogger(__name__)


def _to_tuple(value: Iterable) -> tuple:
    if isinstance(value, str):
        raise TypeError(f"Expected a sequence of strings, got {value!r}")
    return tuple(value)


@define(frozen=True)
class AccessoryFragment:
    """
    One independently authored layer of an avatar.

    .. py:attribute:: id
    .. py:attribute:: slot_number

        Stacking position, lower numbers are drawn first.

    .. py:attribute:: customizable_classes

        Class names of the accessory markup that take their fill colour from
        the avatar palette.

    .. py:attribute:: svg_data

        Raw SVG markup of the accessory.
    """

    id: str = field(validator=instance_of(str))
    slot_number: int = field(validator=instance_of(int))
    customizable_classes: tuple = field(
        factory=tuple,
        converter=_to_tuple,
        validator=deep_iterable(instance_of(str)),
    )
    svg_data: str = field(default="", validator=instance_of(str), repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AccessoryFragment":
        try:
            return cls(
                id=data["id"],
                slot_number=data["slotNumber"],
                customizable_classes=data.get("customizableClasses", ()),
                svg_data=data["svgData"],
            )
        except (KeyError, TypeError) as e:
            raise AvatarDataError(
                f"Accessory is not structured as expected: {e}"
            ) from e


@define(frozen=True)
class SVGStyle:
    """Fill colour override for one class name. The colour is opaque text."""

    class_name: str = field(validator=instance_of(str))
    fill: str = field(validator=instance_of(str))

    @classmethod
    def from_dict(cls, data: Any) -> "SVGStyle":
        """
        Create a style from a ``{"className": ..., "fill": ...}`` object.

        Objects with any other property are rejected, an unexpected property
        could mean the merged SVG does not render as intended.
        """
        if (
            isinstance(data, dict)
            and set(data) == {"className", "fill"}
            and isinstance(data["className"], str)
            and isinstance(data["fill"], str)
        ):
            return cls(class_name=data["className"], fill=data["fill"])
        raise AvatarDataError(
            f"Style does not have expected properties: {json.dumps(data)}"
        )


def _to_styles(value: Iterable[SVGStyle]) -> tuple:
    return tuple(value)


@define(frozen=True)
class StylePalette:
    """
    Ordered set of class name to fill colour overrides.

    When several styles name the same class, the last one wins.

    Example::

        palette = StylePalette([SVGStyle("body", "#fff")])
        palette.get("body")  # '#fff'
    """

    styles: tuple = field(
        factory=tuple,
        converter=_to_styles,
        validator=deep_iterable(instance_of(SVGStyle)),
    )
    _fills: dict = field(init=False, repr=False, eq=False)

    def __attrs_post_init__(self) -> None:
        object.__setattr__(
            self, "_fills", {style.class_name: style.fill for style in self.styles}
        )

    @classmethod
    def from_list(cls, data: Iterable[Any]) -> "StylePalette":
        return cls(SVGStyle.from_dict(item) for item in data)

    def get(self, class_name: str, default: Optional[str] = None) -> Optional[str]:
        return self._fills.get(class_name, default)

    def __contains__(self, class_name: object) -> bool:
        return class_name in self._fills

    def __iter__(self) -> Iterator[SVGStyle]:
        return iter(self.styles)

    def __len__(self) -> int:
        return len(self.styles)


def _to_palette(value: Union[StylePalette, Iterable[SVGStyle]]) -> StylePalette:
    if isinstance(value, StylePalette):
        return value
    return StylePalette(value)


@define(frozen=True)
class Avatar:
    """Accessories of an avatar and the palette applied to them."""

    accessories: tuple = field(
        factory=tuple,
        converter=tuple,
        validator=deep_iterable(instance_of(AccessoryFragment)),
    )
    styles: StylePalette = field(factory=StylePalette, converter=_to_palette)

    @classmethod
    def from_json(cls, data: Union[str, bytes, dict[str, Any]]) -> "Avatar":
        """
        Create an avatar from its JSON description.

        :param data: JSON text or the already decoded object.
        :raises AvatarDataError: if the data is not structured as expected.
        """
        if isinstance(data, (str, bytes)):
            try:
                data = json.loads(data)
            except ValueError as e:
                raise AvatarDataError(f"Avatar data is not valid JSON: {e}") from e
        if not (
            isinstance(data, dict)
            and isinstance(data.get("accessories"), list)
            and isinstance(data.get("styles"), list)
        ):
            raise AvatarDataError("Avatar data is not structured as expected")
        accessories = [AccessoryFragment.from_dict(item) for item in data["accessories"]]
        avatar = cls(accessories, StylePalette.from_list(data["styles"]))
        logger.debug(
            "Loaded avatar with %d accessories and %d styles",
            len(avatar.accessories),
            len(avatar.styles),
        )
        return avatar

    @classmethod
    def open(cls, path: str) -> "Avatar":
        """Load an avatar from a JSON file."""
        with open(path, "rb") as f:
            return cls.from_json(f.read())
