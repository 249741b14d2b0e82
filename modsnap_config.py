import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from modsnap_scanner import clamp_workers
from modsnap_utils import build_display_name, build_file_prefix, is_debug


def load_env() -> Optional[Path]:
    """Load environment variables from the first .env found (cwd, then this directory)."""
    script_dir = Path(__file__).parent
    env_paths = [
        Path.cwd() / ".env",
        script_dir / ".env",
    ]
    for env_path in env_paths:
        if env_path.exists():
            load_dotenv(env_path)
            if is_debug():
                print(f"modsnap: Loaded .env from {env_path}", file=sys.stderr)
            return env_path
    if is_debug():
        print(f"modsnap: No .env file found in {[str(p) for p in env_paths]}", file=sys.stderr)
    return None


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        print(f"modsnap: Warning: Ignoring non-integer {name}={value!r}", file=sys.stderr)
        return default


@dataclass
class ScanConfig:
    mods_dir: str = "."
    workers: int = 1
    quiet: bool = False
    base_name: str = ""
    edition: str = "Full"
    pack_version: str = ""
    force_new: bool = False
    snapshot_dir: Optional[str] = None  # default: parent of mods_dir
    write_report: bool = True

    def __post_init__(self):
        self.workers = clamp_workers(self.workers)

    @classmethod
    def from_env(cls, **overrides) -> "ScanConfig":
        """
        Builds a config from MODSNAP_* environment variables; keyword arguments
        that are not None take precedence.
        """
        values = {
            "workers": _env_int("MODSNAP_WORKERS", 1),
            "base_name": os.environ.get("MODSNAP_PACK_NAME", ""),
            "edition": os.environ.get("MODSNAP_EDITION", "Full"),
            "pack_version": os.environ.get("MODSNAP_PACK_VERSION", ""),
            "snapshot_dir": os.environ.get("MODSNAP_SNAPSHOT_DIR") or None,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def resolved_snapshot_dir(self) -> str:
        if self.snapshot_dir:
            return self.snapshot_dir
        mods_path = os.path.abspath(self.mods_dir)
        return os.path.dirname(mods_path) or mods_path

    @property
    def file_prefix(self) -> str:
        return build_file_prefix(self.base_name, self.edition, self.pack_version)

    @property
    def display_name(self) -> str:
        return build_display_name(self.base_name, self.edition, self.pack_version)
