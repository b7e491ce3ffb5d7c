import io
import os
import json
import tempfile
import unittest
from contextlib import redirect_stderr

from lxml import etree

from .cli import main, rename_main
from .config import (
    CANVAS_PADDING_ENV, CANVAS_SIZE_ENV, DEFAULT_STEPS, ConfigError,
    canvas_from_env, load_steps, with_overrides,
)
from .ignore import filter_ignored, load_ignore_rules, posix_relative
from .optimizer import add_dimensions, optimize, parse_svg, run_steps, serialize_svg
from .pipeline import build, list_files
from .slugs import rename_svgs, slugify, unique_name
from .svg_transforms import (
    add_classes_to_svg_element, canonical_rect_path, cleanup_ids, remove_attrs, remove_dimensions,
    remove_full_white_clip_paths, remove_useless_defs, rescale_canvas,
)

NS = {"svg": "http://www.w3.org/2000/svg"}
SVG_OPEN = '<svg xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink"'


def write_file(path, content=""):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(content)


def icon(view_box="0 0 24 24"):
    return f'{SVG_OPEN} viewBox="{view_box}"><path d="M4 4h16v16H4z"/></svg>'


class SlugifyTest(unittest.TestCase):
    def test_basic_names(self):
        """Verify that spaces, underscores, dashes and punctuation collapse to single hyphens"""
        self.assertEqual(slugify("My Icon (V2)"), "my-icon-v2")
        self.assertEqual(slugify("foo_bar  baz"), "foo-bar-baz")
        self.assertEqual(slugify("arrow–left—right"), "arrow-left-right")
        self.assertEqual(slugify("  --Leading and trailing--  "), "leading-and-trailing")

    def test_strips_accents(self):
        """Verify that accented letters lose their marks"""
        self.assertEqual(slugify("Café Déjà Vu"), "cafe-deja-vu")
        self.assertEqual(slugify("Ünïcode.Name"), "unicode.name")

    def test_never_empty(self):
        """Names with nothing sluggable fall back to 'file'."""
        for name in ["", "   ", "@#$%", "___", "—"]:
            self.assertEqual(slugify(name), "file", name)

    def test_idempotent(self):
        """Verify that slugifying a slug returns it unchanged"""
        for name in ["My Icon (V2)", "Café", "a__b", "x.y-z", "", "ÀÉÎ õü", "Icon 2 – Copy"]:
            once = slugify(name)
            self.assertEqual(slugify(once), once, name)


class UniqueNameTest(unittest.TestCase):
    def test_free_name_is_kept(self):
        """Verify that a name nobody holds is returned as is"""
        with tempfile.TemporaryDirectory() as tmp:
            self.assertEqual(unique_name(tmp, "icon.svg"), "icon.svg")

    def test_numeric_suffix_on_disk_collision(self):
        """Verify that files on disk push the name to the next free suffix"""
        with tempfile.TemporaryDirectory() as tmp:
            write_file(os.path.join(tmp, "icon.svg"))
            self.assertEqual(unique_name(tmp, "icon.svg"), "icon-2.svg")
            write_file(os.path.join(tmp, "icon-2.svg"))
            self.assertEqual(unique_name(tmp, "icon.svg"), "icon-3.svg")

    def test_claimed_names_count_as_taken(self):
        """Names claimed earlier in the same pass are treated as taken."""
        with tempfile.TemporaryDirectory() as tmp:
            self.assertEqual(unique_name(tmp, "icon.svg", {"icon.svg", "icon-2.svg"}), "icon-3.svg")


class RenameSvgsTest(unittest.TestCase):
    def test_names_slugifying_to_the_same_base(self):
        """Verify that two names with the same slug both survive the rename"""
        with tempfile.TemporaryDirectory() as tmp:
            write_file(os.path.join(tmp, "ICON!.svg"))
            write_file(os.path.join(tmp, "icon_.svg"))
            rename_svgs(tmp)
            self.assertEqual(sorted(os.listdir(tmp)), ["icon-2.svg", "icon.svg"])

    def test_existing_slug_keeps_its_name(self):
        """Verify that a file already named by its slug is not displaced"""
        with tempfile.TemporaryDirectory() as tmp:
            write_file(os.path.join(tmp, "icon.svg"), "original")
            write_file(os.path.join(tmp, "ICON!.svg"), "renamed")
            renamed = rename_svgs(tmp)
            self.assertEqual(sorted(os.listdir(tmp)), ["icon-2.svg", "icon.svg"])
            with open(os.path.join(tmp, "icon.svg"), encoding='utf-8') as f:
                self.assertEqual(f.read(), "original")
            self.assertEqual(list(renamed.values()), [os.path.join(tmp, "icon-2.svg")])

    def test_other_files_and_subfolders(self):
        """Verify that non-SVG files are skipped and subfolders only renamed when recursive"""
        with tempfile.TemporaryDirectory() as tmp:
            write_file(os.path.join(tmp, "Read Me.txt"))
            write_file(os.path.join(tmp, "Upper.SVG"))
            write_file(os.path.join(tmp, "Sub Dir", "Nested Icon.svg"))

            rename_svgs(tmp)
            self.assertEqual(sorted(os.listdir(tmp)), ["Read Me.txt", "Sub Dir", "upper.svg"])
            self.assertEqual(os.listdir(os.path.join(tmp, "Sub Dir")), ["Nested Icon.svg"])

            rename_svgs(tmp, recursive=True)
            self.assertEqual(os.listdir(os.path.join(tmp, "Sub Dir")), ["nested-icon.svg"])


class IgnoreRulesTest(unittest.TestCase):
    def test_missing_file_ignores_nothing(self):
        """Verify that a missing ignore file keeps every input"""
        with tempfile.TemporaryDirectory() as tmp:
            rules = load_ignore_rules(os.path.join(tmp, ".iconpipe-ignore"))
            kept, ignored = filter_ignored([os.path.join(tmp, "a.svg")], tmp, rules)
            self.assertEqual(ignored, [])
            self.assertEqual(len(kept), 1)

    def test_patterns_match_relative_posix_paths(self):
        """Verify that patterns match paths relative to the input folder"""
        with tempfile.TemporaryDirectory() as tmp:
            ignore_file = os.path.join(tmp, ".iconpipe-ignore")
            write_file(ignore_file, "# drafts\ndrafts/*\n*.tmp.svg\n")
            files = [
                os.path.join(tmp, "a.svg"),
                os.path.join(tmp, "drafts", "b.svg"),
                os.path.join(tmp, "c.tmp.svg"),
            ]
            kept, ignored = filter_ignored(files, tmp, load_ignore_rules(ignore_file))
            self.assertEqual(kept, [files[0]])
            self.assertEqual(ignored, files[1:])

    def test_posix_relative(self):
        """Relative paths always use forward slashes."""
        root = os.path.join("base", "src")
        self.assertEqual(posix_relative(os.path.join(root, "x", "y.svg"), root), "x/y.svg")


class ClipPathTest(unittest.TestCase):
    def svg(self, clip_body, clip_id="clip0"):
        return parse_svg(
            f'{SVG_OPEN} viewBox="0 0 24 24">'
            f'<g clip-path="url(#{clip_id})"><path d="M1 1h2v2H1z"/></g>'
            f'<defs><clipPath id="{clip_id}">{clip_body}</clipPath></defs>'
            f'<rect clip-path="url(#{clip_id})" width="4" height="4"/>'
            f'</svg>'
        )

    def test_removes_full_white_rect_and_references(self):
        """Verify that a white full-rect clip path and every reference to it are removed"""
        for fill in ["#fff", "#FFFFFF", "white"]:
            root = self.svg(f'<path fill="{fill}" d="M0 0h24v24H0z"/>')
            result = remove_full_white_clip_paths(root)
            self.assertEqual(result.findall(".//svg:clipPath", NS), [])
            self.assertEqual(result.xpath("//*[@clip-path]"), [])

    def test_input_tree_is_untouched(self):
        """Verify that the transform works on a copy"""
        root = self.svg('<path fill="#fff" d="M0 0h24v24H0z"/>')
        remove_full_white_clip_paths(root)
        self.assertEqual(len(root.findall(".//svg:clipPath", NS)), 1)
        self.assertEqual(len(root.xpath("//*[@clip-path]")), 2)

    def test_keeps_clip_path_with_two_children(self):
        """Verify that clip paths with more than one child are kept"""
        root = self.svg('<path fill="#fff" d="M0 0h24v24H0z"/><path fill="#fff" d="M0 0h2v2H0z"/>')
        result = remove_full_white_clip_paths(root)
        self.assertEqual(len(result.findall(".//svg:clipPath", NS)), 1)
        self.assertEqual(len(result.xpath("//*[@clip-path]")), 2)

    def test_keeps_rect_off_origin(self):
        """Verify that a rectangle not anchored at the origin is kept"""
        root = self.svg('<path fill="#fff" d="M1 1h24v24H1z"/>')
        result = remove_full_white_clip_paths(root)
        self.assertEqual(len(result.findall(".//svg:clipPath", NS)), 1)

    def test_keeps_colored_rect(self):
        """Verify that a non-white rectangle is kept"""
        root = self.svg('<path fill="#000" d="M0 0h24v24H0z"/>')
        result = remove_full_white_clip_paths(root)
        self.assertEqual(len(result.findall(".//svg:clipPath", NS)), 1)

    def test_removes_rect_element_and_absolute_path(self):
        """Verify that <rect> and absolute-command rectangles count as full white clips"""
        for body in [
            '<rect width="24" height="24" fill="white"/>',
            '<rect x="0" y="0" width="24px" height="24" fill="#FFF"/>',
            '<path d="M0 0H24V24H0V0Z" fill="white"/>',
            '<path d="M0 0H24V24H0Z" fill="white"/>',
        ]:
            result = remove_full_white_clip_paths(self.svg(body))
            self.assertEqual(result.findall(".//svg:clipPath", NS), [], body)
            self.assertEqual(result.xpath("//*[@clip-path]"), [], body)

    def test_keeps_offset_rounded_or_transformed_rect(self):
        """Verify that rects off the origin, rounded or transformed are kept"""
        for body in [
            '<rect x="1" width="24" height="24" fill="white"/>',
            '<rect rx="2" width="24" height="24" fill="white"/>',
            '<rect width="24" height="24" fill="white" transform="rotate(45)"/>',
        ]:
            result = remove_full_white_clip_paths(self.svg(body))
            self.assertEqual(len(result.findall(".//svg:clipPath", NS)), 1, body)

    def test_canonical_rect_path(self):
        """Rectangles are reduced to the short relative form before matching."""
        rect = parse_svg(f'{SVG_OPEN}><rect width="16" height="8"/></svg>')[0]
        self.assertEqual(canonical_rect_path(rect), "M0 0h16v8H0z")
        path = parse_svg(f'{SVG_OPEN}><path d="M0 0H24V24H0V0Z"/></svg>')[0]
        self.assertEqual(canonical_rect_path(path), "M0 0h24v24H0z")
        other = parse_svg(f'{SVG_OPEN}><path d="M4 4h16v16H4z"/></svg>')[0]
        self.assertEqual(canonical_rect_path(other), "M4 4h16v16H4z")
        circle = parse_svg(f'{SVG_OPEN}><circle r="4"/></svg>')[0]
        self.assertIsNone(canonical_rect_path(circle))

    def test_figma_export_through_default_steps(self):
        """Verify that the default steps strip the full-frame clip Figma adds to every export"""
        with tempfile.TemporaryDirectory() as tmp:
            steps = load_steps(os.path.join(tmp, "iconpipe.config.json"))
        for clip_shape in [
            '<rect width="24" height="24" fill="white"/>',
            '<path d="M0 0H24V24H0V0Z" fill="white"/>',
        ]:
            source = (
                '<svg width="24" height="24" viewBox="0 0 24 24" fill="none" xmlns="http://www.w3.org/2000/svg">'
                '<g clip-path="url(#clip0_12_34)"><path d="M4 4h16v16H4z" fill="black"/></g>'
                f'<defs><clipPath id="clip0_12_34">{clip_shape}</clipPath></defs>'
                '</svg>'
            )
            output = optimize(source, steps)
            self.assertNotIn("clipPath", output, clip_shape)
            self.assertNotIn("clip-path", output, clip_shape)


class RescaleCanvasTest(unittest.TestCase):
    def test_fits_view_box_into_canvas(self):
        """Verify that a 24 box lands centered in the padded 64 canvas"""
        result = rescale_canvas(parse_svg(icon()))
        self.assertEqual(result.get("viewBox"), "0 0 64 64")
        path = result.find("svg:path", NS)
        self.assertEqual(path.get("transform"), "translate(32 32) scale(2.5) translate(-12 -12)")

    def test_output_box_independent_of_input_box(self):
        """Verify that every input box yields the same canvas viewBox"""
        for view_box in ["0 0 24 24", "-5 -5 100 50", "10,10,7,300"]:
            result = rescale_canvas(parse_svg(icon(view_box)))
            self.assertEqual(result.get("viewBox"), "0 0 64 64", view_box)

    def test_keeps_aspect_ratio(self):
        """Verify that the longer side decides the scale"""
        result = rescale_canvas(parse_svg(icon("0 0 48 24")))
        path = result.find("svg:path", NS)
        self.assertEqual(path.get("transform"), "translate(32 32) scale(1.25) translate(-24 -12)")

    def test_custom_canvas(self):
        """Verify that size and padding params are honored"""
        result = rescale_canvas(parse_svg(icon("0 0 16 16")), size=32, padding=0)
        self.assertEqual(result.get("viewBox"), "0 0 32 32")
        path = result.find("svg:path", NS)
        self.assertEqual(path.get("transform"), "translate(16 16) scale(2) translate(-8 -8)")

    def test_width_height_used_without_view_box(self):
        """Verify that width and height stand in for a missing viewBox"""
        root = parse_svg(f'{SVG_OPEN} width="48px" height="24"><path d="M0 0h4v4H0z"/></svg>')
        result = rescale_canvas(root)
        self.assertEqual(result.get("viewBox"), "0 0 64 64")
        self.assertIsNone(result.get("width"))
        self.assertIsNone(result.get("height"))
        path = result.find("svg:path", NS)
        self.assertEqual(path.get("transform"), "translate(32 32) scale(1.25) translate(-24 -12)")

    def test_passes_through_without_box(self):
        """Documents without a usable box come back unchanged."""
        for attrs in ['', 'width="100%" height="50%"', 'width="10"', 'viewBox="0 0 0 10"']:
            source = f'{SVG_OPEN} {attrs}><path d="M0 0h4v4H0z"/></svg>'
            root = parse_svg(source)
            self.assertEqual(serialize_svg(rescale_canvas(root)), serialize_svg(root), attrs)

    def test_shapes_only(self):
        """Verify that only drawn shapes get the transform, never the root, groups or defs content"""
        root = parse_svg(
            f'{SVG_OPEN} viewBox="0 0 24 24" width="24" height="24">'
            f'<defs><path id="p" d="M0 0h1v1H0z"/></defs>'
            f'<g transform="rotate(45)"><circle r="2" transform="translate(1 1)"/></g>'
            f'<use xlink:href="#p"/>'
            f'</svg>'
        )
        result = rescale_canvas(root)
        prefix = "translate(32 32) scale(2.5) translate(-12 -12)"
        self.assertIsNone(result.get("transform"))
        self.assertIsNone(result.get("width"))
        self.assertEqual(result.find("svg:g", NS).get("transform"), "rotate(45)")
        self.assertEqual(result.find(".//svg:circle", NS).get("transform"), f"{prefix} translate(1 1)")
        self.assertEqual(result.find("svg:use", NS).get("transform"), prefix)
        self.assertIsNone(result.find(".//svg:defs/svg:path", NS).get("transform"))

    def test_group_clip_and_mask_follow_the_shapes(self):
        """Verify that user space clips and masks on groups move with the content they clip"""
        root = parse_svg(
            f'{SVG_OPEN} viewBox="0 0 24 24">'
            f'<defs>'
            f'<clipPath id="group"><circle cx="12" cy="12" r="10"/><rect width="2" height="2"/></clipPath>'
            f'<clipPath id="box" clipPathUnits="objectBoundingBox"><rect width="0.5" height="1"/></clipPath>'
            f'<clipPath id="own"><circle cx="4" cy="4" r="4"/></clipPath>'
            f'<mask id="fade"><rect width="24" height="12" fill="white"/></mask>'
            f'</defs>'
            f'<g clip-path="url(#group)"><path d="M4 4h16v16H4z"/></g>'
            f'<g clip-path="url(#box)"><path d="M4 4h16v16H4z"/></g>'
            f'<g mask="url(#fade)"><path d="M4 4h16v16H4z"/></g>'
            f'<path clip-path="url(#own)" d="M4 4h16v16H4z"/>'
            f'</svg>'
        )
        result = rescale_canvas(root)
        prefix = "translate(32 32) scale(2.5) translate(-12 -12)"

        def clip_shapes(clip_id):
            return [el.get("transform") for el in result.xpath(f"//*[@id='{clip_id}']/*")]

        self.assertEqual(clip_shapes("group"), [prefix, prefix])
        self.assertEqual(clip_shapes("fade"), [prefix])
        self.assertEqual(clip_shapes("box"), [None])
        self.assertEqual(clip_shapes("own"), [None])

    def test_use_of_drawn_shape_is_not_moved_twice(self):
        """Verify that a <use> of an already rescaled shape keeps only its own offset"""
        root = parse_svg(
            f'{SVG_OPEN} viewBox="0 0 24 24">'
            f'<path id="dot" d="M0 0h1v1H0z"/>'
            f'<use xlink:href="#dot"/>'
            f'<use href="#dot" x="10"/>'
            f'</svg>'
        )
        result = rescale_canvas(root)
        prefix = "translate(32 32) scale(2.5) translate(-12 -12)"
        plain, shifted = result.findall("svg:use", NS)

        self.assertEqual(result.find("svg:path", NS).get("transform"), prefix)
        self.assertIsNone(plain.get("transform"))
        self.assertIsNone(shifted.get("x"))
        self.assertEqual(
            shifted.get("transform"),
            f"{prefix} translate(10 0) translate(12 12) scale(0.4) translate(-32 -32)",
        )


class TransformStepsTest(unittest.TestCase):
    def test_remove_dimensions(self):
        """Verify that width and height become a viewBox only when none exists"""
        result = remove_dimensions(parse_svg(f'{SVG_OPEN} width="24" height="16"/>'))
        self.assertEqual(result.get("viewBox"), "0 0 24 16")
        self.assertIsNone(result.get("width"))

        result = remove_dimensions(parse_svg(f'{SVG_OPEN} viewBox="0 0 8 8" width="24" height="24"/>'))
        self.assertEqual(result.get("viewBox"), "0 0 8 8")
        self.assertIsNone(result.get("height"))

    def test_add_classes(self):
        """Verify that classes are appended once each"""
        result = add_classes_to_svg_element(parse_svg(f'{SVG_OPEN} class="foo"/>'), ["icon", "icon"])
        self.assertEqual(result.get("class"), "foo icon")

    def test_remove_attrs(self):
        """Verify that attribute patterns match by name and by element:attr:value"""
        root = parse_svg(f'{SVG_OPEN}><path data-name="Layer 1" data-x="1" fill="red" d="M0 0z"/></svg>')
        path = remove_attrs(root).find("svg:path", NS)
        self.assertEqual(dict(path.attrib), {"fill": "red", "d": "M0 0z"})

        path = remove_attrs(root, ["path:fill:red"]).find("svg:path", NS)
        self.assertNotIn("fill", path.attrib)
        self.assertIn("data-name", path.attrib)

    def test_cleanup_ids(self):
        """Verify that unused ids are dropped and referenced ids shortened along with their references"""
        root = parse_svg(
            f'{SVG_OPEN}><defs><linearGradient id="grad"/><path id="shape" d="M0 0z"/></defs>'
            f'<rect id="unused" fill="url(#grad)"/><use xlink:href="#shape"/></svg>'
        )
        result = cleanup_ids(root)
        rect = result.find("svg:rect", NS)
        self.assertIsNone(rect.get("id"))
        gradient_id = result.find(".//svg:linearGradient", NS).get("id")
        shape_id = result.find(".//svg:path", NS).get("id")
        self.assertEqual(sorted([gradient_id, shape_id]), ["a", "b"])
        self.assertEqual(rect.get("fill"), f"url(#{gradient_id})")
        self.assertEqual(result.find("svg:use", NS).get("{http://www.w3.org/1999/xlink}href"), f"#{shape_id}")

    def test_cleanup_ids_leaves_styled_documents_unless_forced(self):
        """Verify that documents with a style element keep their ids unless forced"""
        root = parse_svg(f'{SVG_OPEN}><style>#unused {{ fill: red }}</style><rect id="unused"/></svg>')
        self.assertEqual(cleanup_ids(root).find("svg:rect", NS).get("id"), "unused")
        self.assertIsNone(cleanup_ids(root, force=True).find("svg:rect", NS).get("id"))

    def test_cleanup_ids_does_not_reuse_kept_ids(self):
        """Verify that shortened ids never collide with unreferenced ids that are kept"""
        root = parse_svg(
            f'{SVG_OPEN}><rect id="a"/><linearGradient id="grad"/><path fill="url(#grad)" d="M0 0z"/></svg>'
        )
        result = cleanup_ids(root, remove=False)
        ids = [el.get("id") for el in result.xpath("//*[@id]")]
        self.assertEqual(ids, ["a", "b"])
        self.assertEqual(result.find("svg:path", NS).get("fill"), "url(#b)")

    def test_remove_useless_defs(self):
        """Verify that defs children without ids are dropped and empty defs removed"""
        root = parse_svg(f'{SVG_OPEN}><defs><linearGradient/><linearGradient id="g"/></defs></svg>')
        defs = remove_useless_defs(root).find("svg:defs", NS)
        self.assertEqual([child.get("id") for child in defs], ["g"])

        root = parse_svg(f'{SVG_OPEN}><defs><path d="M0 0z"/></defs><path d="M0 0z"/></svg>')
        self.assertIsNone(remove_useless_defs(root).find("svg:defs", NS))

    def test_run_steps_skips_disabled(self):
        """Verify that disabled steps are not run"""
        root = parse_svg(f'{SVG_OPEN} width="24" height="24"/>')
        steps = [
            {"name": "remove_dimensions", "params": {}, "enabled": False},
            {"name": "add_classes_to_svg_element", "params": {"class_names": ["x"]}},
        ]
        result = run_steps(root, steps)
        self.assertEqual(result.get("width"), "24")
        self.assertEqual(result.get("class"), "x")


class AddDimensionsTest(unittest.TestCase):
    def test_replaces_existing_dimensions(self):
        """Verify that only the root width and height are replaced"""
        svg = '<svg viewBox="0 0 64 64" width="1" height="2"><path stroke-width="3"/></svg>'
        self.assertEqual(
            add_dimensions(svg, "24", "24"),
            '<svg viewBox="0 0 64 64" width="24" height="24"><path stroke-width="3"/></svg>',
        )

    def test_self_closing_root(self):
        """A self-closing root keeps its closing slash."""
        self.assertEqual(
            add_dimensions('<svg viewBox="0 0 1 1"/>', "16", "8"),
            '<svg viewBox="0 0 1 1" width="16" height="8"/>',
        )

    def test_no_svg_tag(self):
        """Content without an svg tag is returned unchanged."""
        self.assertEqual(add_dimensions("<g/>", "1", "1"), "<g/>")


class ConfigTest(unittest.TestCase):
    def test_defaults_without_config_file(self):
        """Verify that a missing config file yields the default steps, all enabled"""
        with tempfile.TemporaryDirectory() as tmp:
            steps = load_steps(os.path.join(tmp, "missing.json"))
        self.assertEqual([s["name"] for s in steps], [s["name"] for s in DEFAULT_STEPS])
        self.assertTrue(all(s["enabled"] for s in steps))

    def test_load_from_file(self):
        """Verify that bare names and step objects are both accepted"""
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "config.json")
            write_file(path, json.dumps({"steps": [
                "remove_dimensions",
                {"name": "remove_attrs", "params": {"attrs": "id"}, "enabled": False},
            ]}))
            steps = load_steps(path)
        self.assertEqual(steps, [
            {"name": "remove_dimensions", "params": {}, "enabled": True},
            {"name": "remove_attrs", "params": {"attrs": "id"}, "enabled": False},
        ])

    def test_invalid_config(self):
        """Verify that unknown steps, bad entries and broken JSON raise ConfigError"""
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "config.json")
            for content in ['{"steps": ["nope"]}', '{"steps": [42]}', '{"steps": {}}', '{not json']:
                write_file(path, content)
                with self.assertRaises(ConfigError, msg=content):
                    load_steps(path)

    def test_overrides_return_a_copy(self):
        """Verify that overrides apply to a copy and leave the loaded steps alone"""
        steps = load_steps("/nonexistent/iconpipe.config.json")
        specialized = with_overrides(steps, canvas_size=32, canvas_padding=0, class_name="glyph")
        by_name = {s["name"]: s for s in specialized}
        self.assertEqual(by_name["rescale_canvas"]["params"], {"size": 32, "padding": 0})
        self.assertEqual(by_name["add_classes_to_svg_element"]["params"]["class_names"], ["glyph"])

        original = {s["name"]: s for s in steps}
        self.assertEqual(original["add_classes_to_svg_element"]["params"]["class_names"], ["icon"])
        self.assertEqual(original["rescale_canvas"]["params"]["size"], 64)

    def test_padding_must_leave_room(self):
        """Verify that padding eating the whole canvas is rejected"""
        steps = load_steps("/nonexistent/iconpipe.config.json")
        with self.assertRaises(ConfigError):
            with_overrides(steps, canvas_size=4, canvas_padding=2)

    def test_canvas_from_env(self):
        """Verify that canvas settings are read and validated from the environment"""
        self.assertEqual(canvas_from_env({}), (None, None))
        self.assertEqual(canvas_from_env({CANVAS_SIZE_ENV: "48", CANVAS_PADDING_ENV: "0"}), (48.0, 0.0))
        with self.assertRaises(ConfigError):
            canvas_from_env({CANVAS_SIZE_ENV: "big"})


class BuildTest(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = self._tmp.name
        self.src = os.path.join(self.tmp, "src")
        self.dist = os.path.join(self.tmp, "dist")
        self.ignore_file = os.path.join(self.tmp, ".iconpipe-ignore")
        self.steps = load_steps(os.path.join(self.tmp, "iconpipe.config.json"))

    def tearDown(self):
        self._tmp.cleanup()

    def build(self, **kwargs):
        return build(self.steps, input_dir=self.src, output_dir=self.dist, ignore_file=self.ignore_file, **kwargs)

    def read_output(self, *parts):
        with open(os.path.join(self.dist, *parts), encoding='utf-8') as f:
            return parse_svg(f.read())

    def test_optimizes_and_renames(self):
        """Verify that a build writes an optimized file under its slug name"""
        write_file(os.path.join(self.src, "My Icon (V2).svg"), icon())
        result = self.build()

        self.assertEqual(os.listdir(self.dist), ["my-icon-v2.svg"])
        self.assertEqual(len(result.written), 1)
        root = self.read_output("my-icon-v2.svg")
        self.assertEqual(root.get("viewBox"), "0 0 64 64")
        self.assertEqual(root.get("class"), "icon")
        self.assertIsNone(root.get("width"))

    def test_colliding_slugs(self):
        """Verify that colliding output names get numeric suffixes"""
        write_file(os.path.join(self.src, "ICON!.svg"), icon())
        write_file(os.path.join(self.src, "icon_.svg"), icon("0 0 16 16"))
        self.build()
        self.assertEqual(sorted(os.listdir(self.dist)), ["icon-2.svg", "icon.svg"])

    def test_ignored_files_are_counted(self):
        """Verify that ignored files are skipped and counted in the summary log"""
        write_file(self.ignore_file, "drafts/*\n")
        write_file(os.path.join(self.src, "a.svg"), icon())
        write_file(os.path.join(self.src, "drafts", "b.svg"), icon())
        write_file(os.path.join(self.src, "drafts", "c.svg"), icon())
        write_file(os.path.join(self.src, "notes.txt"), "not an icon")

        with self.assertLogs("iconpipe.pipeline", level="INFO") as logs:
            result = self.build()

        self.assertEqual(len(result.found), 3)
        self.assertEqual(len(result.ignored), 2)
        self.assertTrue(any("2 of 3 files ignored" in line for line in logs.output))
        self.assertEqual(os.listdir(self.dist), ["a.svg"])

    def test_mirrors_directories_and_sets_dimensions(self):
        """Verify that subfolders are mirrored and width/height patched in"""
        write_file(os.path.join(self.src, "Set One", "Arrow Left.svg"), icon())
        self.build(width="24", height="24")
        root = self.read_output("Set One", "arrow-left.svg")
        self.assertEqual(root.get("width"), "24")
        self.assertEqual(root.get("height"), "24")

    def test_passes_through_icons_without_box(self):
        """Icons without a box are still written."""
        write_file(os.path.join(self.src, "plain.svg"), f'{SVG_OPEN}><path d="M0 0h4v4H0z"/></svg>')
        self.build()
        self.assertIsNone(self.read_output("plain.svg").get("viewBox"))

    def test_unreadable_file_aborts(self):
        """Verify that a malformed SVG aborts the build"""
        write_file(os.path.join(self.src, "broken.svg"), "<svg")
        with self.assertRaises(etree.XMLSyntaxError):
            self.build()

    def test_list_files_walks_tree(self):
        """Verify that files are listed recursively in sorted order"""
        write_file(os.path.join(self.src, "b", "c.svg"))
        write_file(os.path.join(self.src, "a.svg"))
        self.assertEqual(
            list_files(self.src),
            [os.path.join(self.src, "a.svg"), os.path.join(self.src, "b", "c.svg")],
        )


class CommandLineTest(unittest.TestCase):
    def test_rename_missing_folder(self):
        """Verify that a missing folder exits with status 1"""
        stderr = io.StringIO()
        with redirect_stderr(stderr):
            status = rename_main(["/nonexistent/icons"])
        self.assertEqual(status, 1)
        self.assertIn("Folder not found: /nonexistent/icons", stderr.getvalue())

    def test_rename_folder(self):
        """Verify that the rename command slugifies file names"""
        with tempfile.TemporaryDirectory() as tmp:
            write_file(os.path.join(tmp, "Big Icon.svg"))
            self.assertEqual(rename_main([tmp]), 0)
            self.assertEqual(os.listdir(tmp), ["big-icon.svg"])

    def test_build_command(self):
        """Verify that command line flags reach the build"""
        with tempfile.TemporaryDirectory() as tmp:
            src = os.path.join(tmp, "src")
            dist = os.path.join(tmp, "dist")
            write_file(os.path.join(src, "Star.svg"), icon())
            status = main([
                "--input", src, "--output", dist,
                "--config", os.path.join(tmp, "none.json"),
                "--ignore-file", os.path.join(tmp, "none"),
                "--size", "32", "--class", "glyph", "--canvas", "48", "--padding", "0",
            ])
            self.assertEqual(status, 0)
            with open(os.path.join(dist, "star.svg"), encoding='utf-8') as f:
                root = parse_svg(f.read())
            self.assertEqual(root.get("viewBox"), "0 0 48 48")
            self.assertEqual(root.get("width"), "32")
            self.assertEqual(root.get("class"), "glyph")

    def test_bad_canvas_flag(self):
        """Verify that an invalid canvas flag exits with status 2"""
        stderr = io.StringIO()
        with redirect_stderr(stderr):
            status = main(["--canvas", "abc"])
        self.assertEqual(status, 2)
        self.assertIn("Configuration error", stderr.getvalue())


if __name__ == "__main__":
    unittest.main()
