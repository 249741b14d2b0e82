"""
modsnap_scanner.py - Builds Snapshots from a mods directory.

process_archive() is the per-file pipeline (read entry -> sanitize/parse ->
fallback -> record) and never raises for problems with a single file.
SnapshotAssembler enumerates a directory, runs the pipeline on every archive
(optionally on a thread pool) and merges the records in enumeration order.
"""

import datetime
import os
import sys
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional

from modsnap_archive import ArchiveReader, loader_for_entry
from modsnap_core import (ArchiveUnreadable, MetadataEntryMissing, PackageRecord,
                          Snapshot, build_record)
from modsnap_extractor import ExtractionChain
from modsnap_utils import collect_archives

MAX_WORKERS = 8


def clamp_workers(workers: int) -> int:
    return max(1, min(int(workers), MAX_WORKERS))


def capture_timestamp() -> str:
    """Local time with UTC offset, second precision (ISO-8601)."""
    return datetime.datetime.now().astimezone().replace(microsecond=0).isoformat()


def process_archive(archive_path: str, reader: Optional[ArchiveReader] = None,
                    chain: Optional[ExtractionChain] = None, quiet: bool = False) -> PackageRecord:
    """
    Produces exactly one PackageRecord for an archive, whatever state it is in.

    Unreadable archives and archives without a descriptor degrade to a
    filename-only record; unparseable descriptors go through the fallback scan.
    """
    reader = reader or ArchiveReader()
    chain = chain or ExtractionChain(quiet=quiet)
    file_name = os.path.basename(archive_path)

    try:
        entry_name, raw = reader.read(archive_path)
    except (ArchiveUnreadable, MetadataEntryMissing) as e:
        if not quiet:
            print(f"SnapshotAssembler (WARNING): {e}. Using file name as identity.", file=sys.stderr)
        return build_record(file_name)

    results = chain.run(raw, source=file_name)
    return build_record(file_name, results, loader=loader_for_entry(entry_name))


class SnapshotAssembler:
    """Scans one directory into one immutable Snapshot."""

    def __init__(self, workers: int = 1, quiet: bool = False):
        self.workers = clamp_workers(workers)
        self.quiet = quiet
        self.reader = ArchiveReader()
        self.chain = ExtractionChain(quiet=quiet)

    def _log(self, message: str, is_error: bool = False):
        if not self.quiet or is_error:
            level = "ERROR" if is_error else "INFO"
            print(f"SnapshotAssembler ({level}): {message}", file=sys.stderr)

    def _process(self, archive_path: str) -> PackageRecord:
        return process_archive(archive_path, self.reader, self.chain, self.quiet)

    def scan(self, mods_dir: str) -> Snapshot:
        """
        Args:
            mods_dir: Directory holding *.jar / *.jar.disabled files.

        Returns:
            A Snapshot with one record per archive, keyed by identifier.

        Raises:
            FileNotFoundError, NotADirectoryError, PermissionError: mods_dir
            cannot be enumerated. Per-file problems never raise.
        """
        archives = collect_archives(mods_dir, self.quiet)
        timestamp = capture_timestamp()

        if self.workers > 1 and len(archives) > 1:
            self._log(f"Processing {len(archives)} archives with {self.workers} parallel workers")
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                # map() yields in submission order, so merging below stays deterministic
                records = list(pool.map(self._process, archives))
        else:
            if len(archives) > 1:
                self._log(f"Processing {len(archives)} archives sequentially")
            records = [self._process(path) for path in archives]

        merged: Dict[str, PackageRecord] = {}
        for record in records:
            previous = merged.get(record.identifier)
            if previous is not None and not self.quiet:
                print(f"SnapshotAssembler (WARNING): Duplicate identifier '{record.identifier}': "
                      f"'{record.file_name}' replaces '{previous.file_name}'", file=sys.stderr)
            merged[record.identifier] = record

        snapshot = Snapshot(records=merged, timestamp=timestamp,
                            source_path=os.path.abspath(mods_dir))
        stats = snapshot.stats()
        self._log(f"Scan complete: {stats.total} packages "
                  f"({stats.active} active, {stats.disabled} disabled, {stats.failed} unreadable)")
        return snapshot


def scan_directory(mods_dir: str, workers: int = 1, quiet: bool = False) -> Snapshot:
    return SnapshotAssembler(workers=workers, quiet=quiet).scan(mods_dir)
