import pytest
import tempfile
import zipfile
from pathlib import Path

from modsnap_core import ExtractionMode, PackageRecord, Snapshot

@pytest.fixture
def temp_dir_fixture():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)

@pytest.fixture
def mods_dir(temp_dir_fixture):
    path = temp_dir_fixture / "profile" / "mods"
    path.mkdir(parents=True)
    return path

@pytest.fixture
def make_jar():
    """Writes a ZIP archive; entries maps entry name -> str/bytes content."""
    def _make(path, entries=None):
        path = Path(path)
        with zipfile.ZipFile(path, "w") as zf:
            zf.writestr("META-INF/MANIFEST.MF", "Manifest-Version: 1.0\n")
            for name, content in (entries or {}).items():
                zf.writestr(name, content)
        return path
    return _make

@pytest.fixture
def fabric_json_str():
    return """{
  "schemaVersion": 1,
  "id": "sodium",
  "version": "0.5.8+mc1.20.1",
  "name": "Sodium",
  "depends": {"fabricloader": ">=0.12.0"}
}"""

@pytest.fixture
def quilt_json_str():
    return """{
  "schema_version": 1,
  "quilt_loader": {
    "group": "org.example",
    "id": "qsl_demo",
    "version": "2.1.0",
    "metadata": {"name": "QSL Demo"}
  }
}"""

@pytest.fixture
def malformed_json_str():
    # Comments, trailing commas, raw newline inside a string, BOM
    return "\ufeff{\n  // generated\n  \"id\": \"lithium\",\n  \"name\": \"Lithium\", /* display */\n  \"description\": \"line one\nline two\",\n  \"version\": \"0.11.2\",\n}\n"

@pytest.fixture
def hopeless_json_str():
    # Beyond repair, but the key/value substrings are intact
    return '{{ "id": "bar" ;; "version": "2.3" <<< broken "name": "Bar Mod" ]]'

def make_record(identifier, version="1.0", enabled=True, display_name=None, file_name=None,
                mode=ExtractionMode.STRUCTURED):
    return PackageRecord(
        identifier=identifier,
        display_name=display_name if display_name is not None else identifier,
        version=version,
        file_name=file_name or (f"{identifier}.jar" if enabled else f"{identifier}.jar.disabled"),
        enabled=enabled,
        extraction_mode=mode,
        loader="fabric",
    )

def make_snapshot(*records, timestamp="2026-01-01T12:00:00+00:00", source_path="/mods"):
    return Snapshot(records={r.identifier: r for r in records}, timestamp=timestamp,
                    source_path=source_path)

@pytest.fixture
def record_factory():
    return make_record

@pytest.fixture
def snapshot_factory():
    return make_snapshot
