"""
Reactive pipeline from avatar data to an output image.

Example usage::

    avatar = Signal(None)
    size = Signal((380, 600))
    avatar_svg = create_avatar_svg_state(avatar)
    output_image = create_output_image_state(avatar_svg, size)

    avatar.value = Avatar.open('avatar.json')
    await avatar_svg.wait()
    await output_image.wait()
    output_image.value.data  # PNG bytes

Failures of any stage are held by the cell of that stage and by every cell
downstream of it.
"""

import asyncio
import logging
import xml.etree.ElementTree as ET
from typing import Any, Optional, Union

from headgear.avatar import Avatar
from headgear.constants import ImageFormat
from headgear.rasterise import RasterResult, draw_document, prepare_document
from headgear.reactive import ComputedAsync, Observable, SupersededToken
from headgear.serialise import ExecutionSerializer
from headgear.svg import compose_avatar_svg

logger = logging.getLogger(__name__)


class RenderCache:
    """
    Single-slot cache of the last rendered image.

    Lookups and renders are serialised, so concurrent requests for the same
    image render it only once.
    """

    def __init__(self) -> None:
        self._serializer = ExecutionSerializer()
        self._key: Optional[tuple[bytes, int, int, ImageFormat]] = None
        self._result: Optional[RasterResult] = None
        self.hits = 0
        self.misses = 0

    async def render(
        self,
        svg: ET.Element,
        width: int,
        height: int,
        image_format: Union[ImageFormat, str] = ImageFormat.PNG,
    ) -> RasterResult:
        image_format = ImageFormat(image_format)
        document = prepare_document(svg, width, height)
        key = (document, width, height, image_format)
        async with self._serializer:
            if self._key == key and self._result is not None:
                self.hits += 1
                logger.debug("Render cache hit")
                return self._result
            self.misses += 1
            result = await asyncio.to_thread(
                draw_document, document, width, height, image_format
            )
            self._key, self._result = key, result
            return result

    def clear(self) -> None:
        self._key = None
        self._result = None


def create_avatar_svg_state(
    avatar: Observable[Optional[Avatar]],
) -> ComputedAsync[Optional[ET.Element]]:
    """
    Create a cell holding the composed SVG of an avatar.

    The cell holds ``None`` while ``avatar`` is ``None``.
    """

    async def compose(
        values: dict[str, Any], superseded: SupersededToken
    ) -> Optional[ET.Element]:
        if values["avatar"] is None:
            return None
        return compose_avatar_svg(values["avatar"])

    return ComputedAsync({"avatar": avatar}, compose, initial=None)


def create_output_image_state(
    avatar_svg: Observable[Optional[ET.Element]],
    size: Observable[tuple[int, int]],
    image_format: Union[ImageFormat, str] = ImageFormat.PNG,
    cache: Optional[RenderCache] = None,
) -> ComputedAsync[Optional[RasterResult]]:
    """
    Create a cell holding the rendered image of a composed SVG.

    :param avatar_svg: Cell or signal holding the SVG, or ``None``.
    :param size: Signal holding the output (width, height).
    :param image_format: Output encoding.
    :param cache: Optional :py:class:`RenderCache` shared between cells.
    """
    image_format = ImageFormat(image_format)
    cache = cache or RenderCache()

    async def render(
        values: dict[str, Any], superseded: SupersededToken
    ) -> Optional[RasterResult]:
        svg = values["svg"]
        if svg is None:
            return None
        width, height = values["size"]
        superseded.check()
        result = await cache.render(svg, width, height, image_format)
        superseded.check()
        return result

    return ComputedAsync({"svg": avatar_svg, "size": size}, render, initial=None)
