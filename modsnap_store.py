import json
import os
import sys
import tempfile
from dataclasses import dataclass
from typing import Any, Dict, List

from modsnap_core import ExtractionMode, PackageRecord, Snapshot, SnapshotFormatError, sort_records

SNAPSHOT_SUFFIX = ".mods_snapshot.json"
CHANGELOG_SUFFIX = ".changelog.md"


@dataclass(frozen=True)
class SnapshotEntry:
    file_name: str
    timestamp: str
    path: str


class SnapshotStore:
    """
    Reads and writes snapshots as JSON documents and manages the snapshot
    history kept next to a mods directory.
    """
    FORMAT_VERSION = "1"
    RECORD_KEYS = ("identifier", "display_name", "version", "file_name", "enabled")

    @staticmethod
    def _log(message: str, quiet: bool, is_error: bool = False):
        if not quiet or is_error:
            level = "ERROR" if is_error else "INFO"
            print(f"SnapshotStore ({level}): {message}", file=sys.stderr)

    @staticmethod
    def record_to_dict(record: PackageRecord) -> Dict[str, Any]:
        return {
            "identifier": record.identifier,
            "display_name": record.display_name,
            "version": record.version,
            "file_name": record.file_name,
            "enabled": record.enabled,
            "extraction_mode": record.extraction_mode.value,
            "loader": record.loader,
        }

    @staticmethod
    def record_from_dict(data: Any, index: int) -> PackageRecord:
        if not isinstance(data, dict):
            raise SnapshotFormatError(f"Record #{index + 1} is not an object")
        for key in SnapshotStore.RECORD_KEYS:
            if key not in data:
                raise SnapshotFormatError(f"Missing key '{key}' in record #{index + 1}")
        for key in ("identifier", "display_name", "version", "file_name"):
            if not isinstance(data[key], str):
                raise SnapshotFormatError(f"Key '{key}' in record #{index + 1} must be a string")
        if not isinstance(data["enabled"], bool):
            raise SnapshotFormatError(f"Key 'enabled' in record #{index + 1} must be a boolean")
        try:
            mode = ExtractionMode(data.get("extraction_mode", ExtractionMode.UNKNOWN.value))
        except ValueError:
            raise SnapshotFormatError(
                f"Unknown extraction_mode '{data.get('extraction_mode')}' in record #{index + 1}")
        return PackageRecord(
            identifier=data["identifier"],
            display_name=data["display_name"],
            version=data["version"],
            file_name=data["file_name"],
            enabled=data["enabled"],
            extraction_mode=mode,
            loader=str(data.get("loader", "")),
        )

    @staticmethod
    def to_dict(snapshot: Snapshot) -> Dict[str, Any]:
        stats = snapshot.stats()
        records = sorted(snapshot.records.values(), key=lambda r: r.identifier)
        return {
            "format_version": SnapshotStore.FORMAT_VERSION,
            "timestamp": snapshot.timestamp,
            "source_path": snapshot.source_path,
            "stats": stats._asdict(),
            "records": [SnapshotStore.record_to_dict(r) for r in records],
        }

    @staticmethod
    def from_dict(data: Any) -> Snapshot:
        if not isinstance(data, dict):
            raise SnapshotFormatError("Invalid snapshot format: top level is not an object")
        for key in ("timestamp", "source_path", "records"):
            if key not in data:
                raise SnapshotFormatError(f"Invalid snapshot format: missing '{key}'")
        if not isinstance(data["records"], list):
            raise SnapshotFormatError("Invalid snapshot format: 'records' is not a list")

        records: Dict[str, PackageRecord] = {}
        for i, item in enumerate(data["records"]):
            record = SnapshotStore.record_from_dict(item, i)
            if record.identifier in records:
                raise SnapshotFormatError(f"Duplicate identifier '{record.identifier}' in records")
            records[record.identifier] = record
        return Snapshot(records=records, timestamp=str(data["timestamp"]),
                        source_path=str(data["source_path"]))

    @staticmethod
    def save(snapshot: Snapshot, path: str, quiet: bool = False) -> str:
        """Writes the snapshot atomically (temp file + rename). Returns the path."""
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        # ASCII output: any str (lone surrogates included) survives as a \u escape
        payload = json.dumps(SnapshotStore.to_dict(snapshot), indent=2)
        fd, tmp_path = tempfile.mkstemp(prefix=".modsnap-", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.write("\n")
            os.replace(tmp_path, path)
        except OSError as e:
            SnapshotStore._log(f"Error writing snapshot to '{path}': {e}", quiet, is_error=True)
            raise
        finally:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
        SnapshotStore._log(f"Snapshot with {len(snapshot.records)} records written to '{path}'.", quiet)
        return path

    @staticmethod
    def load(path: str) -> Snapshot:
        """
        Raises:
            FileNotFoundError: no file at path.
            SnapshotFormatError: invalid JSON or unexpected structure.
        """
        if not os.path.exists(path):
            raise FileNotFoundError(f"Snapshot file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise SnapshotFormatError(f"Invalid JSON in snapshot file '{path}': {e}")
        except UnicodeDecodeError as e:
            raise SnapshotFormatError(f"Snapshot file '{path}' is not UTF-8 text: {e}")
        return SnapshotStore.from_dict(data)

    @staticmethod
    def verify(path: str, quiet: bool = False) -> bool:
        """Checks that a snapshot file loads. Verdict goes to stdout."""
        try:
            snapshot = SnapshotStore.load(path)
        except FileNotFoundError:
            print(f"✗ Verification Error: Snapshot file '{path}' not found.", file=sys.stdout)
            return False
        except SnapshotFormatError as e:
            print(f"✗ Verification Failed for '{path}': {e}", file=sys.stdout)
            return False
        if not quiet:
            print(f"✓ Snapshot '{path}' appears valid. Contains {len(snapshot.records)} records "
                  f"captured {snapshot.timestamp}.", file=sys.stdout)
        return True

    @staticmethod
    def list_snapshot(path: str, detailed: bool = False):
        """Prints the records of a stored snapshot to stdout."""
        snapshot = SnapshotStore.load(path)
        stats = snapshot.stats()
        print(f"Snapshot: {os.path.basename(path)}", file=sys.stdout)
        print(f"  Captured: {snapshot.timestamp}", file=sys.stdout)
        print(f"  Source: {snapshot.source_path}", file=sys.stdout)
        print("-" * 40, file=sys.stdout)
        for record in sort_records(snapshot.records.values()):
            state = "" if record.enabled else " [disabled]"
            print(f"{record.label} ({record.identifier}) {record.version or '?'}{state}", file=sys.stdout)
            if detailed:
                print(f"  File: {record.file_name}", file=sys.stdout)
                print(f"  Loader: {record.loader or 'N/A'}, Extraction: {record.extraction_mode.value}",
                      file=sys.stdout)
        print("=" * 40, file=sys.stdout)
        print(f"{stats.total} packages: {stats.active} active, {stats.disabled} disabled, "
              f"{stats.failed} unreadable.", file=sys.stdout)

    @staticmethod
    def snapshot_path(snapshot_dir: str, prefix: str) -> str:
        return os.path.join(snapshot_dir, prefix + SNAPSHOT_SUFFIX)

    @staticmethod
    def changelog_path(snapshot_dir: str, prefix: str) -> str:
        return os.path.join(snapshot_dir, prefix + CHANGELOG_SUFFIX)

    @staticmethod
    def find_history(snapshot_dir: str) -> List[SnapshotEntry]:
        """
        Lists stored snapshots in snapshot_dir, newest first by embedded timestamp.
        Files that cannot be loaded are still listed, with timestamp '?'.
        """
        entries: List[SnapshotEntry] = []
        if not os.path.isdir(snapshot_dir):
            return entries
        for name in os.listdir(snapshot_dir):
            if not name.endswith(SNAPSHOT_SUFFIX):
                continue
            path = os.path.join(snapshot_dir, name)
            try:
                timestamp = SnapshotStore.load(path).timestamp
            except (OSError, SnapshotFormatError):
                timestamp = "?"
            entries.append(SnapshotEntry(file_name=name, timestamp=timestamp, path=path))
        # Readable snapshots first, newest first; then the unreadable ones
        entries.sort(key=lambda e: (e.timestamp != "?", e.timestamp, e.file_name), reverse=True)
        return entries


def save_snapshot(snapshot: Snapshot, path: str, quiet: bool = True) -> str:
    return SnapshotStore.save(snapshot, path, quiet)


def load_snapshot(path: str) -> Snapshot:
    return SnapshotStore.load(path)
