"""
Build driver: read every icon under the input tree, optimize it, write it to
the mirrored path in the output tree, then normalize the output filenames.
"""
import os
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .ignore import IGNORE_FILE, filter_ignored, load_ignore_rules
from .optimizer import add_dimensions, optimize
from .slugs import SVG_EXTENSION, rename_svgs

logger = logging.getLogger(__name__)

INPUT_DIR = "src"
OUTPUT_DIR = "dist"


@dataclass
class BuildResult:
    found: List[str] = field(default_factory=list)
    ignored: List[str] = field(default_factory=list)
    written: List[str] = field(default_factory=list)
    renamed: Dict[str, str] = field(default_factory=dict)


def list_files(directory: str) -> List[str]:
    """All non-directory entries below `directory`, depth first."""
    files = []
    with os.scandir(directory) as entries:
        for entry in sorted(entries, key=lambda e: e.name):
            if entry.is_dir():
                files.extend(list_files(entry.path))
            else:
                files.append(entry.path)
    return files


def process_file(
    path: str,
    input_dir: str,
    output_dir: str,
    steps: List[Dict[str, Any]],
    width: Optional[str] = None,
    height: Optional[str] = None,
) -> str:
    with open(path, 'r', encoding='utf-8') as f:
        svg_content = f.read()

    output_svg = optimize(svg_content, steps, path=path)
    if width and height:
        output_svg = add_dimensions(output_svg, width, height)

    output_path = os.path.join(output_dir, os.path.relpath(path, input_dir))
    os.makedirs(os.path.dirname(output_path), exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(output_svg)
    return output_path


def build(
    steps: List[Dict[str, Any]],
    input_dir: str = INPUT_DIR,
    output_dir: str = OUTPUT_DIR,
    ignore_file: str = IGNORE_FILE,
    width: Optional[str] = None,
    height: Optional[str] = None,
    max_workers: Optional[int] = None,
) -> BuildResult:
    """
    Run the whole pipeline. The first file that cannot be read, parsed or
    written aborts the build.
    """
    result = BuildResult()
    rules = load_ignore_rules(ignore_file)

    result.found = [f for f in list_files(input_dir) if f.lower().endswith(SVG_EXTENSION)]
    to_process, result.ignored = filter_ignored(result.found, input_dir, rules)
    logger.info(f"{len(result.ignored)} of {len(result.found)} files ignored as of {ignore_file}.")

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [
            executor.submit(process_file, path, input_dir, output_dir, steps, width, height)
            for path in to_process
        ]
        result.written = [future.result() for future in futures]

    if os.path.isdir(output_dir):
        result.renamed = rename_svgs(output_dir, recursive=True)

    logger.info(f"Optimized {len(result.written)} files into {output_dir}, renamed {len(result.renamed)}.")
    return result
