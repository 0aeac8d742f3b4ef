import argparse
import logging
import os
import sys
from typing import Optional

from headgear.avatar import Avatar
from headgear.constants import ImageFormat
from headgear.errors import HeadgearError
from headgear.rasterise import parse_view_box, rasterise_svg
from headgear.svg import compose_avatar_svg, serialize_svg
from headgear.version import __version__

try:
    from IPython.lib.pretty import pprint
except ImportError:
    from pprint import pprint

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="headgear command line utility.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Be more verbose.")
    parser.add_argument("--version", action="version", version=__version__)

    subparsers = parser.add_subparsers(dest="command", required=True)

    compose_parser = subparsers.add_parser(
        "compose", help="Compose avatar accessories into one SVG"
    )
    compose_parser.add_argument("input_file", help="Avatar JSON file")
    compose_parser.add_argument("output_file", help="Output SVG file")

    render_parser = subparsers.add_parser("render", help="Render avatar as a bitmap")
    render_parser.add_argument("input_file", help="Avatar JSON file")
    render_parser.add_argument("output_file", help="Output image file")
    render_parser.add_argument(
        "--width", type=int, help="Output width, defaults to the viewBox width"
    )
    render_parser.add_argument(
        "--height",
        type=int,
        help="Output height, defaults to keeping the viewBox aspect ratio",
    )
    render_parser.add_argument(
        "--format",
        choices=[f.value for f in ImageFormat],
        help="Output format, defaults to the output file extension",
    )

    show_parser = subparsers.add_parser("show", help="Show the avatar data")
    show_parser.add_argument("input_file", help="Avatar JSON file")

    return parser.parse_args(argv)


def _output_format(args: argparse.Namespace) -> ImageFormat:
    if args.format:
        return ImageFormat(args.format)
    extension = os.path.splitext(args.output_file)[1].lower().lstrip(".")
    extension = {"jpg": "jpeg"}.get(extension, extension)
    try:
        return ImageFormat(extension)
    except ValueError:
        return ImageFormat.PNG


def _output_size(svg, args: argparse.Namespace) -> tuple[int, int]:
    _, _, view_width, view_height = parse_view_box(svg)
    width, height = args.width, args.height
    if width is None and height is None:
        width = round(view_width)
    if width is None:
        width = round(height * view_width / view_height)
    if height is None:
        height = round(width * view_height / view_width)
    return width, height


def main(argv: Optional[list[str]] = None) -> Optional[int]:
    args = parse_args(argv)

    logging.basicConfig(level=logging.WARNING)
    package_logger = logging.getLogger("headgear")
    if args.verbose:
        package_logger.setLevel(logging.DEBUG)
    else:
        package_logger.setLevel(logging.INFO)

    try:
        avatar = Avatar.open(args.input_file)

        if args.command == "compose":
            svg = compose_avatar_svg(avatar)
            with open(args.output_file, "w", encoding="utf-8") as f:
                f.write(serialize_svg(svg))

        elif args.command == "render":
            svg = compose_avatar_svg(avatar)
            width, height = _output_size(svg, args)
            result = rasterise_svg(svg, width, height, _output_format(args))
            with open(args.output_file, "wb") as f:
                f.write(result.data)
            logger.info(
                "Wrote %dx%d %s to %s", width, height, result.mime_type, args.output_file
            )

        elif args.command == "show":
            pprint(avatar)

    except (HeadgearError, ImportError, OSError, ValueError) as e:
        logger.error(str(e))
        return 1

    return None


if __name__ == "__main__":
    sys.exit(main())
