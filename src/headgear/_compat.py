"""Compatibility module for optional rendering dependencies."""

import functools
from typing import Callable, TypeVar

F = TypeVar("F", bound=Callable)

# cairosvg loads the cairo shared library on import, a missing library
# surfaces as OSError rather than ImportError.
try:
    import cairosvg  # noqa: F401  # type: ignore[import-untyped]

    HAS_CAIROSVG = True
except (ImportError, OSError):
    HAS_CAIROSVG = False


def require_cairosvg(func: F) -> F:
    """
    Decorator to check if cairosvg is available before calling the function.

    Required for drawing SVG documents to bitmaps.

    Raises:
        ImportError: If cairosvg or the cairo library is not installed.

    Example:
        >>> @require_cairosvg
        ... def draw(document, width, height):
        ...     return cairosvg.svg2png(bytestring=document)
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if not HAS_CAIROSVG:
            raise ImportError(
                "Rendering requires: cairosvg and the cairo library\n\n"
                "Install with:\n"
                "    pip install 'headgear[render]'\n"
                "Or:\n"
                "    pip install cairosvg"
            )
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]
