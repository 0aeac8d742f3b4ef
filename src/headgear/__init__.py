"""
headgear: compose independently authored SVG avatar accessories into one image.

Each accessory carries its own markup and ``<style>`` rules. Composition
namespaces the class names of every accessory so they cannot collide, applies
the user's colour palette to the customizable classes, and merges everything
into a single SVG document that can be rendered to a bitmap.

Basic usage::

    from headgear import Avatar, compose_avatar_svg, rasterise_svg

    avatar = Avatar.from_json(data)
    svg = compose_avatar_svg(avatar)
    result = rasterise_svg(svg, width=380, height=600)
    open('avatar.png', 'wb').write(result.data)

Architecture:

- :py:mod:`headgear.css`: Class name namespacing of selectors and stylesheets
- :py:mod:`headgear.svg`: Accessory preparation and avatar composition
- :py:mod:`headgear.rasterise`: SVG to bitmap rendering
- :py:mod:`headgear.reactive`: Asynchronous computed values with supersession
- :py:mod:`headgear.serialise`: FIFO mutual exclusion for async callables
"""

from headgear.avatar import AccessoryFragment, Avatar, StylePalette, SVGStyle
from headgear.rasterise import RasterResult, rasterise_svg
from headgear.svg import compose_avatar_svg, prepare, serialize_svg
from headgear.version import __version__

__all__ = [
    "AccessoryFragment",
    "Avatar",
    "RasterResult",
    "StylePalette",
    "SVGStyle",
    "compose_avatar_svg",
    "prepare",
    "rasterise_svg",
    "serialize_svg",
    "__version__",
]
