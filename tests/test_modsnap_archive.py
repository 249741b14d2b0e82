import pytest
import zipfile
from unittest.mock import patch
from modsnap_archive import (FABRIC_METADATA, MAX_METADATA_BYTES, QUILT_METADATA, ArchiveReader,
                             loader_for_entry, read_metadata_entry)
from modsnap_core import ArchiveUnreadable, MetadataEntryMissing, ModsnapError

def test_read_fabric_entry(temp_dir_fixture, make_jar, fabric_json_str):
    jar = make_jar(temp_dir_fixture / "sodium.jar", {FABRIC_METADATA: fabric_json_str})
    name, raw = read_metadata_entry(str(jar))
    assert name == FABRIC_METADATA
    assert raw == fabric_json_str.encode("utf-8")

def test_fabric_entry_has_priority_over_quilt(temp_dir_fixture, make_jar):
    jar = make_jar(temp_dir_fixture / "both.jar", {
        QUILT_METADATA: '{"quilt_loader": {"id": "q"}}',
        FABRIC_METADATA: '{"id": "f"}',
    })
    name, _ = ArchiveReader().read(str(jar))
    assert name == FABRIC_METADATA

def test_custom_candidate_order(temp_dir_fixture, make_jar):
    jar = make_jar(temp_dir_fixture / "both.jar", {
        QUILT_METADATA: '{"quilt_loader": {"id": "q"}}',
        FABRIC_METADATA: '{"id": "f"}',
    })
    name, _ = ArchiveReader([QUILT_METADATA, FABRIC_METADATA]).read(str(jar))
    assert name == QUILT_METADATA

def test_nested_entry_is_not_a_candidate(temp_dir_fixture, make_jar):
    jar = make_jar(temp_dir_fixture / "nested.jar", {"META-INF/jars/" + FABRIC_METADATA: "{}"})
    with pytest.raises(MetadataEntryMissing) as exc_info:
        ArchiveReader().read(str(jar))
    assert exc_info.value.candidates == (FABRIC_METADATA, QUILT_METADATA)

def test_not_a_zip(temp_dir_fixture):
    bogus = temp_dir_fixture / "bogus.jar"
    bogus.write_bytes(b"definitely not a zip archive")
    with pytest.raises(ArchiveUnreadable) as exc_info:
        ArchiveReader().read(str(bogus))
    assert "bad zip file" in exc_info.value.reason
    assert exc_info.value.path == str(bogus)

def test_truncated_zip(temp_dir_fixture, make_jar, fabric_json_str):
    jar = make_jar(temp_dir_fixture / "cut.jar", {FABRIC_METADATA: fabric_json_str})
    data = jar.read_bytes()
    jar.write_bytes(data[:len(data) // 2])
    with pytest.raises(ArchiveUnreadable):
        ArchiveReader().read(str(jar))

def test_missing_path(temp_dir_fixture):
    with pytest.raises(ArchiveUnreadable, match="not a regular file"):
        ArchiveReader().read(str(temp_dir_fixture / "missing.jar"))

def test_directory_path(temp_dir_fixture):
    with pytest.raises(ArchiveUnreadable):
        ArchiveReader().read(str(temp_dir_fixture))

def test_oversized_entry_rejected(temp_dir_fixture):
    jar = temp_dir_fixture / "huge.jar"
    with zipfile.ZipFile(jar, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(FABRIC_METADATA, " " * (MAX_METADATA_BYTES + 1))
    with pytest.raises(ArchiveUnreadable, match="bytes"):
        ArchiveReader().read(str(jar))

def test_read_error_is_wrapped(temp_dir_fixture, make_jar):
    jar = make_jar(temp_dir_fixture / "enc.jar", {FABRIC_METADATA: "{}"})
    with patch("zipfile.ZipFile.read", side_effect=RuntimeError("File is encrypted")):
        with pytest.raises(ArchiveUnreadable, match="encrypted"):
            ArchiveReader().read(str(jar))

def test_errors_share_base_class():
    assert issubclass(ArchiveUnreadable, ModsnapError)
    assert issubclass(MetadataEntryMissing, ModsnapError)

def test_loader_for_entry():
    assert loader_for_entry(QUILT_METADATA) == "quilt"
    assert loader_for_entry(FABRIC_METADATA) == "fabric"
