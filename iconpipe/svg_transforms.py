"""
Tree transforms applied to a parsed SVG root.

Every transform takes an lxml root element plus keyword params and returns a
new root. The input tree is deep-copied first and left untouched.
"""
import re
import copy
import string
import logging
from itertools import count, product
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from lxml import etree

logger = logging.getLogger(__name__)

SVG_NS = 'http://www.w3.org/2000/svg'
XLINK_NS = 'http://www.w3.org/1999/xlink'

DEFAULT_CANVAS_SIZE = 64
DEFAULT_CANVAS_PADDING = 2

SHAPE_TAGS = {
    "path", "rect", "circle", "ellipse", "line",
    "polyline", "polygon", "text", "image", "use",
}
NON_RENDERED_TAGS = {"defs", "clipPath", "mask", "pattern", "marker", "symbol"}

# Pre-compile regex patterns for better performance
WHITE_FILL_PATTERN = re.compile(r'^(#fff|#ffffff|white)$', re.IGNORECASE)
FULL_RECT_PATH_PATTERN = re.compile(
    r'^M0(?:[ ,]+0)?(?:h|H)-?\d*\.?\d+(?:v|V)-?\d*\.?\d+(?:H|h)0z$',
    re.IGNORECASE
)
ID_REF_PATTERN = re.compile(r'^url\(#([^)]+)\)$')
ABSOLUTE_RECT_PATH_PATTERN = re.compile(
    r'^M\s*0(?:[\s,]+0)?\s*H\s*(\d*\.?\d+)\s*V\s*(\d*\.?\d+)\s*H\s*0\s*(?:V\s*0\s*)?Z$'
)
URL_REF_PATTERN = re.compile(r'url\(\s*([\'"]?)#([^\'")\s]+)\1\s*\)')
LENGTH_PATTERN = re.compile(r'^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)\s*(?:px)?\s*$')
VIEWBOX_SPLIT_PATTERN = re.compile(r'[\s,]+')


# ============================================================================
# HELPERS
# ============================================================================

def local_name(el) -> str:
    """Tag name without namespace; empty for comments and processing instructions."""
    if not isinstance(el.tag, str):
        return ""
    return etree.QName(el).localname


def iter_elements(root) -> Iterator:
    for el in root.iter():
        if isinstance(el.tag, str):
            yield el


def element_children(el) -> List:
    return [child for child in el if isinstance(child.tag, str)]


def format_number(value: float) -> str:
    """Shortest plain rendering of a float, e.g. 2.5 -> '2.5', 32.0 -> '32'."""
    text = f"{round(value, 6):.6f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def parse_length(value: Optional[str]) -> Optional[float]:
    """Positive unitless or px length, otherwise None."""
    if value is None:
        return None
    match = LENGTH_PATTERN.match(value)
    if not match:
        return None
    number = float(match.group(1))
    return number if number > 0 else None


def parse_coordinate(value: Optional[str]) -> Optional[float]:
    """Unitless or px coordinate, 0 when absent, None when unparseable."""
    if value is None:
        return 0.0
    match = LENGTH_PATTERN.match(value)
    return float(match.group(1)) if match else None


def parse_view_box(value: Optional[str]) -> Optional[Tuple[float, float, float, float]]:
    if not value:
        return None
    parts = VIEWBOX_SPLIT_PATTERN.split(value.strip())
    if len(parts) != 4:
        return None
    try:
        x, y, w, h = [float(part) for part in parts]
    except ValueError:
        return None
    if w <= 0 or h <= 0:
        return None
    return x, y, w, h


def _attribute_name(el, key: str) -> str:
    """Attribute key as written in the document, e.g. '{xlink-ns}href' -> 'xlink:href'."""
    if not key.startswith("{"):
        return key
    qname = etree.QName(key)
    for prefix, uri in el.nsmap.items():
        if prefix and uri == qname.namespace:
            return f"{prefix}:{qname.localname}"
    return qname.localname


def _is_href(key: str) -> bool:
    return key == "href" or key == f"{{{XLINK_NS}}}href"


# ============================================================================
# CLIP PATHS
# ============================================================================

def is_white_fill(el) -> bool:
    return bool(WHITE_FILL_PATTERN.match(el.get("fill", "")))


def canonical_rect_path(el) -> Optional[str]:
    """
    Path data for a rect or path in the short relative form the rectangle
    matcher expects, e.g. <rect width="24" height="24"/> -> 'M0 0h24v24H0z'
    and 'M0 0H24V24H0V0Z' -> 'M0 0h24v24H0z'. Other paths keep their data.
    None for transformed, rounded or off-origin rects and for other elements.
    """
    if el.get("transform"):
        return None
    name = local_name(el)
    if name == "rect":
        if any(parse_coordinate(el.get(attr)) != 0 for attr in ("x", "y", "rx", "ry")):
            return None
        width = parse_length(el.get("width"))
        height = parse_length(el.get("height"))
        if not (width and height):
            return None
        return f"M0 0h{format_number(width)}v{format_number(height)}H0z"
    if name == "path" and el.get("d"):
        d = el.get("d").strip()
        match = ABSOLUTE_RECT_PATH_PATTERN.match(d)
        if match:
            return f"M0 0h{match.group(1)}v{match.group(2)}H0z"
        return d
    return None


def is_full_white_rect(el) -> bool:
    """A white shape drawing an unrotated rectangle anchored at the origin."""
    if not is_white_fill(el):
        return False
    d = canonical_rect_path(el)
    return bool(d and FULL_RECT_PATH_PATTERN.match(d))


def remove_full_white_clip_paths(root):
    """
    Drop clip paths that only clip to a full white rectangle, then drop every
    clip-path reference to them. References are resolved after all removable
    definitions are known since they may come before the definition.
    """
    root = copy.deepcopy(root)

    removable_ids = set()
    for el in list(iter_elements(root)):
        if local_name(el) != "clipPath" or not el.get("id"):
            continue
        children = element_children(el)
        if len(children) == 1 and is_full_white_rect(children[0]):
            removable_ids.add(el.get("id"))
            el.getparent().remove(el)

    if not removable_ids:
        return root

    for el in iter_elements(root):
        clip_path = el.get("clip-path")
        if not clip_path:
            continue
        match = ID_REF_PATTERN.match(clip_path)
        if match and match.group(1) in removable_ids:
            del el.attrib["clip-path"]

    logger.debug(f"Removed full white clip paths: {sorted(removable_ids)}")
    return root


# ============================================================================
# CANVAS
# ============================================================================

def source_box(root) -> Optional[Tuple[float, float, float, float]]:
    """viewBox if valid, else 0 0 width height if both are valid, else None."""
    box = parse_view_box(root.get("viewBox"))
    if box:
        return box
    width = parse_length(root.get("width"))
    height = parse_length(root.get("height"))
    if width and height:
        return 0.0, 0.0, width, height
    return None


def _is_rendered(el) -> bool:
    return not any(local_name(ancestor) in NON_RENDERED_TAGS for ancestor in el.iterancestors())


def _href_target(el, ids: Dict[str, object]):
    for key, value in el.attrib.items():
        if _is_href(key) and value.startswith("#"):
            return ids.get(value[1:])
    return None


def _draws_in_place(el, root) -> bool:
    """True when `el` is drawn where it stands, so its shapes get the canvas transform."""
    return el is not root and local_name(el) not in NON_RENDERED_TAGS and _is_rendered(el)


def _user_space_definitions(root, ids: Dict[str, object]) -> List:
    """
    clipPath and mask definitions in user space referenced from the root or a
    group. Their content lives in the coordinates the shapes are moved out of.
    """
    definitions = []
    for el in iter_elements(root):
        if local_name(el) in SHAPE_TAGS or not _is_rendered(el):
            continue
        for attr in ("clip-path", "mask"):
            match = ID_REF_PATTERN.match(el.get(attr, "").strip())
            definition = ids.get(match.group(1)) if match else None
            if definition is None or any(definition is seen for seen in definitions):
                continue
            units_attr = {"clipPath": "clipPathUnits", "mask": "maskContentUnits"}.get(local_name(definition))
            if units_attr and definition.get(units_attr, "userSpaceOnUse") == "userSpaceOnUse":
                definitions.append(definition)
    return definitions


def rescale_canvas(root, size: float = DEFAULT_CANVAS_SIZE, padding: float = DEFAULT_CANVAS_PADDING):
    """
    Fit the document into a size x size canvas with `padding` on every side,
    keeping the aspect ratio and centering the content.

    The composed transform goes onto each drawable shape, not the root or its
    groups, and onto the shapes of user space clip paths and masks referenced
    from the root or a group. A <use> of a shape that is already moved gets
    the offset carried over into canvas units instead of a second transform.
    Documents without a usable viewBox or width/height pass through.
    """
    box = source_box(root)
    if box is None:
        logger.debug("No viewBox or width/height, skipping canvas rescale")
        return root

    inner = size - 2 * padding
    if inner <= 0:
        logger.warning(f"Canvas padding {padding} leaves no room in size {size}, skipping rescale")
        return root

    root = copy.deepcopy(root)
    x, y, w, h = box
    scale = min(inner / w, inner / h)
    center = format_number(size / 2)
    composed = (
        f"translate({center} {center}) "
        f"scale({format_number(scale)}) "
        f"translate({format_number(-(x + w / 2))} {format_number(-(y + h / 2))})"
    )

    inverse = (
        f"translate({format_number(x + w / 2)} {format_number(y + h / 2)}) "
        f"scale({format_number(1 / scale)}) "
        f"translate({format_number(-size / 2)} {format_number(-size / 2)})"
    )
    ids = {el.get("id"): el for el in iter_elements(root) if el.get("id")}

    def place(el):
        existing = el.get("transform", "").strip()
        target = _href_target(el, ids) if local_name(el) == "use" else None
        if target is None or not _draws_in_place(target, root):
            el.set("transform", f"{composed} {existing}".strip())
            return

        # The target already carries the canvas transform, so the use only
        # keeps its own offset, expressed in canvas coordinates.
        offset_x, offset_y = parse_coordinate(el.get("x")), parse_coordinate(el.get("y"))
        offset = ""
        if offset_x is not None and offset_y is not None:
            if offset_x or offset_y:
                offset = f"translate({format_number(offset_x)} {format_number(offset_y)})"
            el.attrib.pop("x", None)
            el.attrib.pop("y", None)
        if existing or offset:
            el.set("transform", " ".join(part for part in (composed, existing, offset, inverse) if part))

    definitions = _user_space_definitions(root, ids)
    for el in iter_elements(root):
        if el is not root and local_name(el) in SHAPE_TAGS and _is_rendered(el):
            place(el)
    for definition in definitions:
        for el in iter_elements(definition):
            if local_name(el) in SHAPE_TAGS:
                place(el)

    canvas = format_number(size)
    root.set("viewBox", f"0 0 {canvas} {canvas}")
    root.attrib.pop("width", None)
    root.attrib.pop("height", None)
    return root


# ============================================================================
# DEFS AND IDS
# ============================================================================

def _has_id_descendant(el) -> bool:
    return any(child.get("id") for child in iter_elements(el) if child is not el)


def remove_useless_defs(root):
    """Remove defs content that nothing can reference, then empty defs."""
    root = copy.deepcopy(root)
    for defs in [el for el in iter_elements(root) if local_name(el) == "defs"]:
        for child in element_children(defs):
            if child.get("id") or local_name(child) == "style" or _has_id_descendant(child):
                continue
            defs.remove(child)
        if not element_children(defs):
            defs.getparent().remove(defs)
    return root


def _short_ids() -> Iterator[str]:
    alphabet = string.ascii_letters
    for length in count(1):
        for chars in product(alphabet, repeat=length):
            yield "".join(chars)


def _referenced_ids(root) -> set:
    referenced = set()
    for el in iter_elements(root):
        for key, value in el.attrib.items():
            if _is_href(key) and value.startswith("#"):
                referenced.add(value[1:])
            for match in URL_REF_PATTERN.finditer(value):
                referenced.add(match.group(2))
        if local_name(el) == "style" and el.text:
            for match in URL_REF_PATTERN.finditer(el.text):
                referenced.add(match.group(2))
    return referenced


def _rewrite_references(root, mapping: Dict[str, str]):
    def url_replacer(match):
        quote, ref = match.group(1), match.group(2)
        return f"url({quote}#{mapping.get(ref, ref)}{quote})"

    for el in iter_elements(root):
        for key, value in list(el.attrib.items()):
            if _is_href(key) and value.startswith("#") and value[1:] in mapping:
                el.set(key, f"#{mapping[value[1:]]}")
            elif "url(" in value:
                el.set(key, URL_REF_PATTERN.sub(url_replacer, value))
        if local_name(el) == "style" and el.text:
            el.text = URL_REF_PATTERN.sub(url_replacer, el.text)


def cleanup_ids(root, remove: bool = True, minify: bool = True, force: bool = False):
    """
    Remove ids nothing points at and shorten the rest.
    Documents with <style> or <script> are left alone unless `force` is set.
    """
    if not force and any(local_name(el) in ("style", "script") for el in iter_elements(root)):
        return root

    root = copy.deepcopy(root)
    referenced = _referenced_ids(root)
    # Unreferenced ids that stay in the document must not be handed out again.
    reserved = set() if remove else {
        el.get("id") for el in iter_elements(root) if el.get("id") and el.get("id") not in referenced
    }

    mapping: Dict[str, str] = {}
    short_ids = (short_id for short_id in _short_ids() if short_id not in reserved)
    for el in iter_elements(root):
        el_id = el.get("id")
        if el_id is None:
            continue
        if el_id not in referenced:
            if remove:
                del el.attrib["id"]
            continue
        if minify:
            if el_id not in mapping:
                mapping[el_id] = next(short_ids)
            el.set("id", mapping[el_id])

    if mapping:
        _rewrite_references(root, mapping)
    return root


# ============================================================================
# ATTRIBUTES
# ============================================================================

def _compile_attr_pattern(pattern: str) -> Tuple[re.Pattern, re.Pattern, re.Pattern]:
    """
    'attr', 'elem:attr' or 'elem:attr:value', each part a regular expression.
    """
    parts = pattern.split(":")
    if len(parts) == 1:
        elem, attr, value = ".*", parts[0], ".*"
    elif len(parts) == 2:
        elem, attr, value = parts[0], parts[1], ".*"
    else:
        elem, attr, value = parts[0], parts[1], ":".join(parts[2:])
    return re.compile(elem), re.compile(attr), re.compile(value)


def remove_attrs(root, attrs: Union[str, Iterable[str]] = "data.*"):
    if isinstance(attrs, str):
        attrs = [attrs]
    patterns = [_compile_attr_pattern(pattern) for pattern in attrs]

    root = copy.deepcopy(root)
    for el in iter_elements(root):
        name = local_name(el)
        for key, value in list(el.attrib.items()):
            attr_name = _attribute_name(el, key)
            for elem_re, attr_re, value_re in patterns:
                if elem_re.fullmatch(name) and attr_re.fullmatch(attr_name) and value_re.fullmatch(value):
                    del el.attrib[key]
                    break
    return root


def remove_dimensions(root):
    """
    Drop width/height from the root, turning them into a viewBox first when
    the document has none.
    """
    root = copy.deepcopy(root)
    if root.get("viewBox") is None:
        width = parse_length(root.get("width"))
        height = parse_length(root.get("height"))
        if not (width and height):
            return root
        root.set("viewBox", f"0 0 {format_number(width)} {format_number(height)}")
    root.attrib.pop("width", None)
    root.attrib.pop("height", None)
    return root


def add_classes_to_svg_element(root, class_names: Iterable[str] = ("icon",)):
    root = copy.deepcopy(root)
    classes = root.get("class", "").split()
    for class_name in class_names:
        if class_name and class_name not in classes:
            classes.append(class_name)
    if classes:
        root.set("class", " ".join(classes))
    return root
