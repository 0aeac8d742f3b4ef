"""
Rasterise SVG documents to bitmaps.

**Note**: Drawing requires the optional ``cairosvg`` dependency and the cairo
library. Install with::

    pip install 'headgear[render]'

The document must be self-contained, and its ``viewBox`` should have the
aspect ratio of the requested size; the drawing is scaled to fill exactly
``width`` x ``height`` pixels.

Example usage::

    from headgear.rasterise import rasterise_svg

    result = rasterise_svg(svg, width=380, height=600)
    result.mime_type  # 'image/png'
    image = result.topil()
"""

import asyncio
import io
import logging
import re
import xml.etree.ElementTree as ET
from typing import Union

import numpy as np
from attrs import define, field
from PIL import Image

from headgear import _compat
from headgear.constants import ImageFormat
from headgear.errors import HostDrawError, ViewBoxError
from headgear.svg import serialize_svg

logger = logging.getLogger(__name__)

_VIEW_BOX_SEPARATOR = re.compile(r"[\s,]+")


@define(frozen=True)
class RasterResult:
    """
    Encoded bitmap.

    .. py:attribute:: data

        Encoded image bytes.

    .. py:attribute:: mime_type
    """

    data: bytes = field(repr=False)
    mime_type: str
    width: int
    height: int

    def topil(self) -> Image.Image:
        """Decode the bitmap into a PIL Image."""
        with io.BytesIO(self.data) as f:
            image = Image.open(f)
            image.load()
        return image

    def numpy(self) -> np.ndarray:
        """
        Decode the bitmap into a float32 array of shape (height, width, 4).

        Values are in range [0.0, 1.0].
        """
        with self.topil() as image:
            return np.asarray(image.convert("RGBA"), dtype=np.float32) / 255.0


def parse_view_box(svg: ET.Element) -> tuple[float, float, float, float]:
    """
    Parse the ``viewBox`` attribute of an SVG root element.

    :return: Tuple of (min_x, min_y, width, height).
    :raises ViewBoxError: if the attribute is absent, is not four numbers or
        has a non-positive size.
    """
    value = svg.get("viewBox")
    if value is None:
        raise ViewBoxError("SVG document has no viewBox")
    parts = [part for part in _VIEW_BOX_SEPARATOR.split(value.strip()) if part]
    try:
        numbers = tuple(float(part) for part in parts)
    except ValueError as e:
        raise ViewBoxError(f"SVG viewBox is not numeric: {value!r}") from e
    if len(numbers) != 4:
        raise ViewBoxError(f"SVG viewBox does not have 4 values: {value!r}")
    if not all(np.isfinite(numbers)) or numbers[2] <= 0 or numbers[3] <= 0:
        raise ViewBoxError(f"SVG viewBox does not have a positive size: {value!r}")
    return numbers  # type: ignore[return-value]


def _check_size(width: int, height: int) -> None:
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid output size: {width}x{height}")


def prepare_document(svg: ET.Element, width: int, height: int) -> bytes:
    """Validate the size and viewBox, and serialize a snapshot of the document."""
    _check_size(width, height)
    parse_view_box(svg)
    return serialize_svg(svg).encode("utf-8")


@_compat.require_cairosvg
def draw_document(
    document: bytes, width: int, height: int, image_format: ImageFormat
) -> RasterResult:
    """Draw serialized SVG bytes and encode the bitmap."""
    import cairosvg  # type: ignore[import-untyped]

    try:
        png = cairosvg.svg2png(
            bytestring=document, output_width=width, output_height=height
        )
    except Exception as e:
        raise HostDrawError(f"Failed to draw SVG document: {e}") from e
    if not png:
        raise HostDrawError("Drawing SVG document produced no data")

    try:
        with io.BytesIO(png) as f, Image.open(f) as image:
            image.load()
            if image.size != (width, height):
                raise HostDrawError(
                    "Drawing produced a %dx%d image, expected %dx%d"
                    % (image.size + (width, height))
                )
            if image_format is ImageFormat.PNG:
                data = png
            else:
                with io.BytesIO() as output:
                    image.convert(image_format.pil_mode).save(
                        output, format=image_format.pil_format
                    )
                    data = output.getvalue()
    except (OSError, ValueError) as e:
        raise HostDrawError(f"Failed to encode {image_format.name} image: {e}") from e

    logger.debug("Rendered %dx%d %s, %d bytes", width, height, image_format.name, len(data))
    return RasterResult(
        data=data, mime_type=image_format.mime_type, width=width, height=height
    )


def rasterise_svg(
    svg: ET.Element,
    width: int,
    height: int,
    image_format: Union[ImageFormat, str] = ImageFormat.PNG,
) -> RasterResult:
    """
    Draw an SVG document to a bitmap of exactly ``width`` x ``height``.

    The document is not modified.

    Args:
        svg: ``<svg>`` root element with a ``viewBox``
        width: Output width in pixels
        height: Output height in pixels
        image_format: Output encoding, PNG by default
    Returns:
        :py:class:`RasterResult`
    Raises:
        ViewBoxError: If the document's viewBox is absent or malformed, raised
            before drawing
        HostDrawError: If drawing or encoding fails
        ImportError: If cairosvg is not installed
    """
    document = prepare_document(svg, width, height)
    return draw_document(document, width, height, ImageFormat(image_format))


async def rasterise_svg_async(
    svg: ET.Element,
    width: int,
    height: int,
    image_format: Union[ImageFormat, str] = ImageFormat.PNG,
) -> RasterResult:
    """
    Like :py:func:`rasterise_svg`, drawing in a worker thread.

    The document is serialized before the thread starts, so it may be
    modified as soon as this coroutine is suspended.
    """
    document = prepare_document(svg, width, height)
    return await asyncio.to_thread(
        draw_document, document, width, height, ImageFormat(image_format)
    )
