import asyncio
import logging
import os
from typing import Callable

from headgear.avatar import AccessoryFragment

logging.basicConfig(level=logging.DEBUG)

TEST_ROOT = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))


def full_name(filename: str) -> str:
    return os.path.join(TEST_ROOT, "avatar_files", filename)


def make_svg(body: str, style: str = "", view_box: str = "0 0 100 100") -> str:
    style_element = "<style>%s</style>" % style if style else ""
    return '<svg xmlns="http://www.w3.org/2000/svg" viewBox="%s">%s%s</svg>' % (
        view_box,
        style_element,
        body,
    )


def make_accessory(
    id: str = "hat",
    slot_number: int = 10,
    customizable_classes=(),
    svg_data: str = "",
) -> AccessoryFragment:
    return AccessoryFragment(
        id=id,
        slot_number=slot_number,
        customizable_classes=customizable_classes,
        svg_data=svg_data or make_svg('<rect class="brim" width="10" height="10"/>'),
    )


async def wait_for(condition: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``condition`` until it returns True."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("Condition not met within %.1f seconds" % timeout)
        await asyncio.sleep(0.005)
