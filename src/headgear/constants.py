"""
Various constants for headgear
"""
from enum import Enum

#: Namespace of SVG elements. Accessory markup is expected to use it.
SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"

#: Id of the group holding every accessory group of a composed avatar.
AVATAR_GROUP_ID = "avatar"

#: Namespace id used for accessories whose own id cannot be used as one.
FALLBACK_NAMESPACE_ID = "accessory{index}"

#: Separator between the namespace id and the original class name.
NAMESPACE_SEPARATOR = "-"


class ImageFormat(Enum):
    """
    Raster output format.
    """
    PNG = "png"
    WEBP = "webp"
    JPEG = "jpeg"

    @property
    def mime_type(self):
        return {
            ImageFormat.PNG: "image/png",
            ImageFormat.WEBP: "image/webp",
            ImageFormat.JPEG: "image/jpeg",
        }[self]

    @property
    def pil_format(self):
        return self.value.upper()

    @property
    def pil_mode(self):
        """PIL mode used to encode, JPEG cannot carry alpha."""
        return "RGB" if self is ImageFormat.JPEG else "RGBA"
