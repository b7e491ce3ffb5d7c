import os
import re
import logging
import unicodedata
from typing import Dict, Optional, Set

logger = logging.getLogger(__name__)

SVG_EXTENSION = ".svg"
FALLBACK_NAME = "file"

# Pre-compile regex patterns
COMBINING_MARKS_PATTERN = re.compile(r'[\u0300-\u036f]')
SEPARATOR_PATTERN = re.compile(r'[\s_]+')
DASH_PATTERN = re.compile(r'[\u2013\u2014]')
UNSAFE_PATTERN = re.compile(r'[^a-z0-9.-]+')
HYPHEN_RUN_PATTERN = re.compile(r'-+')


def slugify(name: str) -> str:
    """
    Normalize a file base name into a filesystem and URL safe slug.
    Example: slugify("Café Icon (V2)") -> "cafe-icon-v2"
    """
    normalized = unicodedata.normalize("NFKD", name.strip().lower())
    normalized = COMBINING_MARKS_PATTERN.sub("", normalized)

    hyphenated = SEPARATOR_PATTERN.sub("-", normalized)
    hyphenated = DASH_PATTERN.sub("-", hyphenated)
    hyphenated = UNSAFE_PATTERN.sub("-", hyphenated)
    hyphenated = HYPHEN_RUN_PATTERN.sub("-", hyphenated)
    hyphenated = hyphenated.strip("-")

    return hyphenated or FALLBACK_NAME


def unique_name(directory: str, filename: str, claimed: Optional[Set[str]] = None) -> str:
    """
    Return a name for `filename` that is free in `directory`.
    Names in `claimed` count as taken even if they are not on disk yet.
    """
    claimed = claimed or set()
    base, ext = os.path.splitext(filename)
    candidate = filename
    i = 2
    while candidate in claimed or os.path.exists(os.path.join(directory, candidate)):
        candidate = f"{base}-{i}{ext}"
        i += 1
    return candidate


def rename_svgs(folder: str, recursive: bool = False) -> Dict[str, str]:
    """
    Rename every .svg file in `folder` to its slug, resolving collisions
    against the files on disk and the names already handed out in this pass.

    Returns a map of old path -> new path for the files that moved.
    """
    renamed: Dict[str, str] = {}
    claimed: Set[str] = set()
    subfolders = []

    for entry in sorted(os.listdir(folder)):
        src = os.path.join(folder, entry)
        if os.path.isdir(src):
            subfolders.append(src)
            continue
        if not os.path.isfile(src):
            continue

        base, ext = os.path.splitext(entry)
        if ext.lower() != SVG_EXTENSION:
            continue

        new_name = slugify(base) + ext.lower()
        if new_name == entry:
            claimed.add(entry)
            continue

        final_name = unique_name(folder, new_name, claimed)
        claimed.add(final_name)
        if final_name == entry:
            continue

        dest = os.path.join(folder, final_name)
        os.rename(src, dest)
        renamed[src] = dest
        logger.debug(f"Renamed {src} -> {final_name}")

    if recursive:
        for subfolder in subfolders:
            renamed.update(rename_svgs(subfolder, recursive=True))

    return renamed
