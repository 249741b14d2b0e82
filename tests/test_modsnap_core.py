import pytest
from dataclasses import FrozenInstanceError
from modsnap_core import (ChangeReport, ExtractionMode, ExtractionResult, MetadataFields,
                          PackageRecord, Snapshot, build_record, enabled_file_name,
                          is_archive_name, is_disabled_name, sort_records)

def _ok(mode, **fields):
    return ExtractionResult(mode, MetadataFields(**fields))

def test_build_record_structured():
    record = build_record("sodium-0.5.8.jar", [
        _ok(ExtractionMode.STRUCTURED, identifier="sodium", display_name="Sodium", version="0.5.8"),
    ], loader="fabric")
    assert record == PackageRecord(identifier="sodium", display_name="Sodium", version="0.5.8",
                                   file_name="sodium-0.5.8.jar", enabled=True,
                                   extraction_mode=ExtractionMode.STRUCTURED, loader="fabric")

def test_build_record_takes_only_version_from_fallback_after_parse():
    record = build_record("mix.jar", [
        _ok(ExtractionMode.STRUCTURED, identifier="mix"),
        _ok(ExtractionMode.FALLBACK, identifier="other", display_name="Mix Mod", version="3.1"),
    ])
    assert record.identifier == "mix"
    assert record.extraction_mode == ExtractionMode.STRUCTURED
    assert record.display_name == "mix"
    assert record.version == "3.1"

def test_build_record_prefers_higher_stage_regardless_of_order():
    record = build_record("a.jar", [
        _ok(ExtractionMode.FALLBACK, identifier="from_regex", version="9"),
        _ok(ExtractionMode.SANITIZED, identifier="from_json", version="1"),
    ])
    assert record.identifier == "from_json"
    assert record.version == "1"
    assert record.extraction_mode == ExtractionMode.SANITIZED

def test_build_record_ignores_failed_stages():
    record = build_record("x.jar", [
        ExtractionResult(ExtractionMode.STRUCTURED, error="Invalid JSON"),
        _ok(ExtractionMode.FALLBACK, identifier="x_mod", version="2"),
    ])
    assert record.identifier == "x_mod"
    assert record.extraction_mode == ExtractionMode.FALLBACK

def test_build_record_filename_identity_when_nothing_recovered():
    record = build_record("Broken Thing.jar.disabled", [
        ExtractionResult(ExtractionMode.STRUCTURED, error="Invalid JSON"),
        ExtractionResult(ExtractionMode.FALLBACK, error="no recognizable fields"),
    ])
    assert record.identifier == "Broken Thing.jar"
    assert record.display_name == "Broken Thing.jar"
    assert record.version == ""
    assert record.enabled is False
    assert record.extraction_mode == ExtractionMode.UNKNOWN

def test_build_record_partial_recovery_keeps_stage():
    record = build_record("noid.jar", [_ok(ExtractionMode.FALLBACK, version="1.2")])
    assert record.identifier == "noid.jar"
    assert record.version == "1.2"
    assert record.extraction_mode == ExtractionMode.FALLBACK

def test_build_record_without_results():
    record = build_record("plain.jar")
    assert record.identifier == "plain.jar"
    assert record.enabled is True
    assert record.extraction_mode == ExtractionMode.UNKNOWN

def test_build_record_loader_from_fields_wins():
    record = build_record("q.jar", [_ok(ExtractionMode.STRUCTURED, identifier="q", loader="quilt")],
                          loader="fabric")
    assert record.loader == "quilt"

@pytest.mark.parametrize("name,disabled,archive", [
    ("a.jar", False, True),
    ("a.JAR", False, True),
    ("a.jar.disabled", True, True),
    ("a.jar.DISABLED", True, True),
    ("a.zip", False, False),
    ("readme.txt.disabled", True, False),
    ("jar", False, False),
])
def test_file_name_classification(name, disabled, archive):
    assert is_disabled_name(name) is disabled
    assert is_archive_name(name) is archive

def test_enabled_file_name():
    assert enabled_file_name("a.jar.disabled") == "a.jar"
    assert enabled_file_name("a.jar") == "a.jar"

def test_record_is_immutable(record_factory):
    record = record_factory("a")
    with pytest.raises(FrozenInstanceError):
        record.version = "2.0"

def test_sort_records_casefolds_label_then_identifier(record_factory):
    records = [
        record_factory("b", display_name="beta"),
        record_factory("z", display_name="Alpha"),
        record_factory("a", display_name="alpha"),
        record_factory("c", display_name=""),
    ]
    assert [r.identifier for r in sort_records(records)] == ["a", "z", "b", "c"]

def test_snapshot_records_are_read_only(record_factory):
    source = {"a": record_factory("a")}
    snapshot = Snapshot(records=source, timestamp="t", source_path="/m")
    with pytest.raises(TypeError):
        snapshot.records["b"] = record_factory("b")
    source["c"] = record_factory("c")
    assert "c" not in snapshot.records

def test_snapshot_equality_and_hash(record_factory, snapshot_factory):
    one = snapshot_factory(record_factory("a"), record_factory("b"))
    two = snapshot_factory(record_factory("b"), record_factory("a"))
    assert one == two
    assert hash(one) == hash(two)
    assert one != snapshot_factory(record_factory("a"))
    assert one != snapshot_factory(record_factory("a"), record_factory("b"), timestamp="other")

def test_snapshot_views_and_stats(record_factory, snapshot_factory):
    snapshot = snapshot_factory(
        record_factory("a"),
        record_factory("b", enabled=False),
        record_factory("c.jar", mode=ExtractionMode.UNKNOWN),
    )
    assert [r.identifier for r in snapshot.active] == ["a", "c.jar"]
    assert [r.identifier for r in snapshot.disabled] == ["b"]
    assert [r.identifier for r in snapshot.failed] == ["c.jar"]
    assert snapshot.stats() == (3, 2, 1, 1)
    assert snapshot.identifiers() == frozenset({"a", "b", "c.jar"})

def test_change_report_counts(record_factory):
    report = ChangeReport(added=(record_factory("a"),), updated=((record_factory("b"), record_factory("b", "2")),),
                          unchanged=(record_factory("c"),))
    assert report.total_changes() == 2
    assert not report.is_empty()
    assert ChangeReport(unchanged=(record_factory("c"),)).is_empty()
