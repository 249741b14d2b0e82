import os
import zipfile
import zlib
from typing import Sequence, Tuple

from modsnap_core import ArchiveUnreadable, MetadataEntryMissing

# Priority order: the first entry present wins
FABRIC_METADATA = "fabric.mod.json"
QUILT_METADATA = "quilt.mod.json"
METADATA_CANDIDATES: Tuple[str, ...] = (FABRIC_METADATA, QUILT_METADATA)

# Descriptors are a few KiB; anything bigger is not a metadata file we trust
MAX_METADATA_BYTES = 1024 * 1024


class ArchiveReader:
    """Locates and reads the metadata descriptor embedded in a mod archive."""

    def __init__(self, candidates: Sequence[str] = METADATA_CANDIDATES):
        self.candidates = tuple(candidates)

    def read(self, archive_path: str) -> Tuple[str, bytes]:
        """
        Returns (entry_name, raw_bytes) for the first candidate entry found.

        Raises:
            ArchiveUnreadable: the path is missing, not a ZIP, or an entry fails to read.
            MetadataEntryMissing: the ZIP holds none of the candidate entries.
        """
        if not os.path.isfile(archive_path):
            raise ArchiveUnreadable(archive_path, "not a regular file")
        try:
            with zipfile.ZipFile(archive_path, "r") as zf:
                names = set(zf.namelist())
                for candidate in self.candidates:
                    if candidate not in names:
                        continue
                    info = zf.getinfo(candidate)
                    if info.file_size > MAX_METADATA_BYTES:
                        raise ArchiveUnreadable(
                            archive_path, f"entry '{candidate}' is {info.file_size} bytes")
                    return candidate, zf.read(candidate)
        except zipfile.BadZipFile as e:
            raise ArchiveUnreadable(archive_path, f"bad zip file ({e})")
        except (OSError, EOFError, zlib.error, RuntimeError, NotImplementedError, zipfile.LargeZipFile) as e:
            # RuntimeError: encrypted entries; NotImplementedError: unsupported compression
            raise ArchiveUnreadable(archive_path, str(e) or type(e).__name__)
        raise MetadataEntryMissing(archive_path, self.candidates)


def read_metadata_entry(archive_path: str,
                        candidates: Sequence[str] = METADATA_CANDIDATES) -> Tuple[str, bytes]:
    """Module-level shortcut for ArchiveReader(candidates).read(archive_path)."""
    return ArchiveReader(candidates).read(archive_path)


def loader_for_entry(entry_name: str) -> str:
    """Loader family implied by the descriptor name."""
    return "quilt" if entry_name == QUILT_METADATA else "fabric"
