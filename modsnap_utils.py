import os
import re
import sys
from typing import List

from modsnap_core import is_archive_name

DEFAULT_BASE_NAME = "Agonia"


def is_debug() -> bool:
    return os.environ.get("MODSNAP_DEBUG") == "true"


def collect_archives(mods_dir: str, quiet: bool = False) -> List[str]:
    """
    Collects mod archives (*.jar and *.jar.disabled) directly inside mods_dir.
    Args:
        mods_dir: Directory to enumerate. Subdirectories are not descended into.
        quiet: If True, suppress warning messages.
    Returns:
        Full paths sorted lexicographically by file name.
    Raises:
        FileNotFoundError, NotADirectoryError, PermissionError: the directory
        itself cannot be enumerated.
    """
    if not os.path.exists(mods_dir):
        raise FileNotFoundError(f"Mods directory not found: {mods_dir}")
    if not os.path.isdir(mods_dir):
        raise NotADirectoryError(f"Not a directory: {mods_dir}")

    collected = []
    with os.scandir(mods_dir) as entries:
        for entry in entries:
            if not is_archive_name(entry.name):
                continue
            try:
                if not entry.is_file():
                    continue
            except OSError as e:
                if not quiet:
                    print(f"modsnap_utils: Warning: Cannot stat '{entry.path}': {e}", file=sys.stderr)
                continue
            collected.append((entry.name, os.path.normpath(entry.path)))

    return [path for _, path in sorted(collected)]


def slugify(text: str) -> str:
    """Lowercase, dash-separated, filesystem-safe form of text ('pack' if nothing survives)."""
    slug = text.strip().lower()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^a-z0-9._\-]", "", slug)
    slug = re.sub(r"-{2,}", "-", slug)
    return slug or "pack"


def normalize_edition(edition: str) -> str:
    trimmed = edition.strip()
    if not trimmed:
        return "Full"
    lowered = trimmed.lower()
    if lowered in ("full", "normal", "default"):
        return "Full"
    if lowered in ("lite", "light", "minimal"):
        return "Lite"
    return trimmed


def build_display_name(base_name: str, edition: str, pack_version: str) -> str:
    """Human title for reports, e.g. 'Agonia 1.4' or 'Agonia Lite 1.4'."""
    base = base_name.strip() or DEFAULT_BASE_NAME
    ed = normalize_edition(edition)
    ver = pack_version.strip()
    if ed.lower() == "full":
        return f"{base} {ver}".strip()
    return f"{base} {ed} {ver}".strip()


def build_file_prefix(base_name: str, edition: str, pack_version: str) -> str:
    """Stem shared by the snapshot and changelog files, e.g. 'agonia-1.4-lite'."""
    base = slugify(base_name.strip() or DEFAULT_BASE_NAME)
    ed = slugify(normalize_edition(edition))
    ver = slugify(pack_version) if pack_version.strip() else "unknown"
    return f"{base}-{ver}-{ed}"
