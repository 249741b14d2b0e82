"""
modsnap_core.py - Data model and record building for modsnap.
Holds the package record / snapshot / change report structures, the exception
hierarchy shared by all modsnap modules, and the field-level merge that turns
staged extraction results into one normalized PackageRecord.
"""

import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple

VERSION = "1.2.0"

ARCHIVE_EXTENSION = ".jar"
DISABLED_SUFFIX = ".disabled"
DISABLED_EXTENSION = ARCHIVE_EXTENSION + DISABLED_SUFFIX


class ModsnapError(Exception):
    """Base class for every error raised by modsnap."""


class ArchiveUnreadable(ModsnapError):
    """The file could not be opened or read as a ZIP container."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot read archive '{path}': {reason}")
        self.path = path
        self.reason = reason


class MetadataEntryMissing(ModsnapError):
    """The archive is readable but holds none of the candidate metadata entries."""

    def __init__(self, path: str, candidates: Sequence[str]):
        super().__init__(f"No metadata entry ({', '.join(candidates)}) in '{path}'")
        self.path = path
        self.candidates = tuple(candidates)


class StructuredParseError(ModsnapError, ValueError):
    """Metadata text is not valid JSON or carries no identifier."""


class SnapshotFormatError(ModsnapError, ValueError):
    """A stored snapshot file is corrupt or has an unexpected structure."""


class ExtractionMode(str, enum.Enum):
    """Which extraction stage produced a record's identity."""
    STRUCTURED = "structured"
    SANITIZED = "sanitized"
    FALLBACK = "fallback"
    UNKNOWN = "unknown"


# Stage precedence used when merging fields from several results
STAGE_ORDER: Tuple[ExtractionMode, ...] = (
    ExtractionMode.STRUCTURED,
    ExtractionMode.SANITIZED,
    ExtractionMode.FALLBACK,
)
PARSED_STAGES: Tuple[ExtractionMode, ...] = (ExtractionMode.STRUCTURED, ExtractionMode.SANITIZED)


@dataclass(frozen=True)
class MetadataFields:
    identifier: str = ""
    display_name: str = ""
    version: str = ""
    loader: str = ""

    def is_empty(self) -> bool:
        return not (self.identifier or self.display_name or self.version)


@dataclass(frozen=True)
class ExtractionResult:
    """Tagged outcome of one extraction stage."""
    mode: ExtractionMode
    fields: MetadataFields = field(default_factory=MetadataFields)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.fields.identifier)


@dataclass(frozen=True)
class PackageRecord:
    identifier: str
    display_name: str
    version: str
    file_name: str
    enabled: bool
    extraction_mode: ExtractionMode = ExtractionMode.UNKNOWN
    loader: str = ""

    @property
    def label(self) -> str:
        return self.display_name or self.identifier

    @property
    def sort_key(self) -> Tuple[str, str]:
        return (self.label.casefold(), self.identifier)


class SnapshotStats(NamedTuple):
    total: int
    active: int
    disabled: int
    failed: int


@dataclass(frozen=True)
class Snapshot:
    records: Mapping[str, PackageRecord]
    timestamp: str
    source_path: str

    def __post_init__(self):
        # Copy into a read-only view so callers cannot mutate a captured inventory
        object.__setattr__(self, "records", MappingProxyType(dict(self.records)))

    def __eq__(self, other):
        if not isinstance(other, Snapshot):
            return NotImplemented
        return (self.timestamp == other.timestamp
                and self.source_path == other.source_path
                and dict(self.records) == dict(other.records))

    def __hash__(self):
        return hash((self.timestamp, self.source_path, frozenset(self.records)))

    def identifiers(self) -> FrozenSet[str]:
        return frozenset(self.records)

    @property
    def active(self) -> Tuple[PackageRecord, ...]:
        return sort_records(r for r in self.records.values() if r.enabled)

    @property
    def disabled(self) -> Tuple[PackageRecord, ...]:
        return sort_records(r for r in self.records.values() if not r.enabled)

    @property
    def failed(self) -> Tuple[PackageRecord, ...]:
        return sort_records(r for r in self.records.values()
                            if r.extraction_mode == ExtractionMode.UNKNOWN)

    def stats(self) -> SnapshotStats:
        return SnapshotStats(
            total=len(self.records),
            active=len(self.active),
            disabled=len(self.disabled),
            failed=len(self.failed),
        )


@dataclass(frozen=True)
class ChangeReport:
    added: Tuple[PackageRecord, ...] = ()
    removed: Tuple[PackageRecord, ...] = ()
    updated: Tuple[Tuple[PackageRecord, PackageRecord], ...] = ()
    disabled: Tuple[PackageRecord, ...] = ()
    re_enabled: Tuple[PackageRecord, ...] = ()
    unchanged: Tuple[PackageRecord, ...] = ()

    def total_changes(self) -> int:
        return (len(self.added) + len(self.removed) + len(self.updated)
                + len(self.disabled) + len(self.re_enabled))

    def is_empty(self) -> bool:
        return self.total_changes() == 0


def sort_records(records: Iterable[PackageRecord]) -> Tuple[PackageRecord, ...]:
    """Display order used everywhere: label case-insensitively, then identifier."""
    return tuple(sorted(records, key=lambda r: r.sort_key))


def is_disabled_name(file_name: str) -> bool:
    return file_name.lower().endswith(DISABLED_SUFFIX)


def is_archive_name(file_name: str) -> bool:
    lowered = file_name.lower()
    return lowered.endswith(ARCHIVE_EXTENSION) or lowered.endswith(DISABLED_EXTENSION)


def enabled_file_name(file_name: str) -> str:
    """Strip the '.disabled' suffix so toggled archives keep the same fallback identity."""
    if is_disabled_name(file_name):
        return file_name[:-len(DISABLED_SUFFIX)]
    return file_name


def build_record(file_name: str, results: Sequence[ExtractionResult] = (),
                 loader: str = "") -> PackageRecord:
    """
    Merges staged extraction results into one PackageRecord.

    Each attribute is taken from the first stage (structured, sanitized,
    fallback) that provides it, so a record may carry the identifier from the
    structured parse and the version recovered by the fallback scan. When a
    structured or sanitized parse succeeded the fallback scan contributes the
    version only; its id and name may belong to a nested object.

    Args:
        file_name: Base name of the archive on disk.
        results: Extraction results in any order; failed stages may be included.
        loader: Loader hint from the archive reader ("fabric" / "quilt").

    Returns:
        A PackageRecord. Never raises.
    """
    by_mode: Dict[ExtractionMode, MetadataFields] = {}
    for result in results:
        if result.error is None and result.mode in STAGE_ORDER:
            by_mode.setdefault(result.mode, result.fields)
    if ExtractionMode.FALLBACK in by_mode and any(m in by_mode for m in PARSED_STAGES):
        # A parsed descriptor owns identity and name; the regex scan may only add a version
        by_mode[ExtractionMode.FALLBACK] = MetadataFields(version=by_mode[ExtractionMode.FALLBACK].version)
    ordered: List[Tuple[ExtractionMode, MetadataFields]] = [
        (mode, by_mode[mode]) for mode in STAGE_ORDER if mode in by_mode
    ]

    identifier = ""
    mode = ExtractionMode.UNKNOWN
    for stage, fields in ordered:
        if fields.identifier:
            identifier, mode = fields.identifier, stage
            break

    display_name = next((f.display_name for _, f in ordered if f.display_name), "")
    version = next((f.version for _, f in ordered if f.version), "")
    loader = next((f.loader for _, f in ordered if f.loader), loader)

    if not identifier:
        identifier = enabled_file_name(file_name)
        # Partial recovery (a version without an id) still counts as that stage
        mode = next((stage for stage, f in ordered if not f.is_empty()), ExtractionMode.UNKNOWN)

    return PackageRecord(
        identifier=identifier,
        display_name=display_name or identifier,
        version=version,
        file_name=file_name,
        enabled=not is_disabled_name(file_name),
        extraction_mode=mode,
        loader=loader,
    )
