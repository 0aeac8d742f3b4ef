"""
Exceptions raised while composing and rendering avatars.

Every error of a composition stage aborts the whole avatar build; a partial
avatar is never returned.
"""
from typing import Optional


class HeadgearError(Exception):
    """Base class of headgear errors."""


class ParseError(HeadgearError, ValueError):
    """CSS selector or stylesheet text is not syntactically valid."""

    def __init__(self, text: str, message: str):
        super().__init__(f"Failed to parse CSS: {message}: {text!r}")
        self.text = text
        self.message = message


class SVGParseError(HeadgearError):
    """The markup of an accessory is not well-formed XML."""

    def __init__(self, accessory_id: Optional[str], parser_message: str):
        if accessory_id is None:
            message = f"Failed to parse SVG: {parser_message}"
        else:
            message = (
                f"Failed to parse SVG of accessory {accessory_id!r}: {parser_message}"
            )
        super().__init__(message)
        self.accessory_id = accessory_id
        self.parser_message = parser_message


class MissingPaletteEntry(HeadgearError, KeyError):
    """A customizable class of an accessory has no colour in the palette."""

    def __init__(self, accessory_id: str, class_name: str):
        super().__init__(accessory_id, class_name)
        self.accessory_id = accessory_id
        self.class_name = class_name

    def __str__(self) -> str:
        return (
            f"Accessory {self.accessory_id!r} has customizable class "
            f"{self.class_name!r} but the palette has no style for it"
        )


class CompositionError(HeadgearError):
    """Accessories cannot be merged into one document."""


class ViewBoxError(HeadgearError, ValueError):
    """The sizing metadata of a document is absent or malformed."""


class HostDrawError(HeadgearError):
    """Drawing or encoding a document failed."""


class AvatarDataError(HeadgearError, ValueError):
    """Avatar description data is not structured as expected."""
