import re
import logging
from typing import Any, Callable, Dict, List, Optional

from lxml import etree
from scour import scour

from . import svg_transforms

logger = logging.getLogger(__name__)

SVG_TAG_PATTERN = re.compile(r'<svg\b[^>]*>', re.IGNORECASE)
DIMENSION_ATTR_PATTERN = re.compile(r'\s(?:width|height)="[^"]*"', re.IGNORECASE)


def parse_svg(svg_content: str):
    parser = etree.XMLParser(huge_tree=True, remove_blank_text=True)
    return etree.fromstring(svg_content.encode('utf-8'), parser=parser)


def serialize_svg(root) -> str:
    return etree.tostring(root, encoding='unicode')


def scour_options(precision: int = 5):
    """Options for the general purpose passes run by scour."""
    return scour.parse_args([
        f"--set-precision={precision}",
        "--strip-xml-prolog",
        "--remove-metadata",
        "--remove-descriptive-elements",
        "--enable-comment-stripping",
        "--indent=none",
        "--no-line-breaks",
        "--quiet",
    ])


def preset_default(root, precision: int = 5):
    """Run the document through scour's default optimizations."""
    optimized = scour.scourString(serialize_svg(root), scour_options(precision))
    return parse_svg(optimized)


STEPS: Dict[str, Callable] = {
    "preset_default": preset_default,
    "remove_full_white_clip_paths": svg_transforms.remove_full_white_clip_paths,
    "remove_useless_defs": svg_transforms.remove_useless_defs,
    "rescale_canvas": svg_transforms.rescale_canvas,
    "cleanup_ids": svg_transforms.cleanup_ids,
    "remove_attrs": svg_transforms.remove_attrs,
    "remove_dimensions": svg_transforms.remove_dimensions,
    "add_classes_to_svg_element": svg_transforms.add_classes_to_svg_element,
}


def run_steps(root, steps: List[Dict[str, Any]]):
    """Apply each enabled step in order, feeding the result of one into the next."""
    for step in steps:
        if not step.get("enabled", True):
            continue
        transform = STEPS[step["name"]]
        root = transform(root, **step.get("params", {}))
    return root


def optimize(svg_content: str, steps: List[Dict[str, Any]], path: Optional[str] = None) -> str:
    """
    Parse, transform and serialize one SVG document.
    Parse errors propagate to the caller.
    """
    root = parse_svg(svg_content)
    result = serialize_svg(run_steps(root, steps))
    logger.debug(f"Optimized {path or '<string>'}: {len(svg_content)} -> {len(result)} bytes")
    return result


def add_dimensions(svg_content: str, width: str, height: str) -> str:
    """
    Set explicit width/height on the root <svg> tag with a plain string patch.
    Any width/height already on the tag are replaced.
    """
    match = SVG_TAG_PATTERN.search(svg_content)
    if not match:
        return svg_content

    original_tag = match.group(0)
    stripped_tag = DIMENSION_ATTR_PATTERN.sub("", original_tag)
    dimensions = f' width="{width}" height="{height}"'
    if stripped_tag.endswith("/>"):
        updated_tag = stripped_tag[:-2].rstrip() + dimensions + "/>"
    else:
        updated_tag = stripped_tag[:-1] + dimensions + ">"

    return svg_content.replace(original_tag, updated_tag, 1)
