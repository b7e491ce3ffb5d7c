import os
import sys
import logging
import argparse

from dotenv import load_dotenv

from .config import CONFIG_FILE, ConfigError, canvas_from_env, load_steps, parse_number, with_overrides
from .ignore import IGNORE_FILE
from .pipeline import INPUT_DIR, OUTPUT_DIR, build
from .slugs import rename_svgs

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="iconpipe", description="Optimize SVG icons and normalize their filenames.")
    parser.add_argument("--size", help="Pixel size written as both width and height")
    parser.add_argument("--width", help="Pixel width written on the root element")
    parser.add_argument("--height", help="Pixel height written on the root element")
    parser.add_argument("--class", dest="class_name", help="CSS class added to the root element")
    parser.add_argument("--canvas", help="Canvas size the icons are rescaled to")
    parser.add_argument("--padding", help="Canvas padding kept around the content")
    parser.add_argument("--input", default=INPUT_DIR, help=f"Input directory (default: {INPUT_DIR})")
    parser.add_argument("--output", default=OUTPUT_DIR, help=f"Output directory (default: {OUTPUT_DIR})")
    parser.add_argument("--config", default=CONFIG_FILE, help=f"Step configuration (default: {CONFIG_FILE})")
    parser.add_argument("--ignore-file", default=IGNORE_FILE, help=f"Ignore patterns (default: {IGNORE_FILE})")
    parser.add_argument("--workers", type=int, default=None, help="Number of files processed at once")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    load_dotenv(dotenv_path=".env")

    try:
        env_size, env_padding = canvas_from_env()
        canvas_size = parse_number(args.canvas, "--canvas") if args.canvas else env_size
        canvas_padding = parse_number(args.padding, "--padding", allow_zero=True) if args.padding else env_padding
        steps = with_overrides(
            load_steps(args.config),
            canvas_size=canvas_size,
            canvas_padding=canvas_padding,
            class_name=args.class_name,
        )
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    width = args.size or args.width
    height = args.size or args.height

    build(
        steps,
        input_dir=args.input,
        output_dir=args.output,
        ignore_file=args.ignore_file,
        width=width,
        height=height,
        max_workers=args.workers,
    )
    logger.info("Successful.")
    return 0


def rename_main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="iconpipe-rename", description="Rename SVG files to slugified names.")
    parser.add_argument("folder", nargs="?", default=OUTPUT_DIR)
    parser.add_argument("-r", "--recursive", action="store_true", help="Also rename files in subfolders")
    args = parser.parse_args(argv)
    setup_logging()

    folder = os.path.abspath(args.folder)
    if not os.path.isdir(folder):
        print(f"Folder not found: {args.folder}", file=sys.stderr)
        return 1

    renamed = rename_svgs(folder, recursive=args.recursive)
    logger.info(f"Renamed {len(renamed)} files in {args.folder}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
