import json
import re
import sys
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from modsnap_core import ExtractionMode, ExtractionResult, MetadataFields, StructuredParseError
from modsnap_sanitizer import decode_metadata, sanitize
from modsnap_utils import is_debug

# Accepted key spellings, most specific first
IDENTIFIER_KEYS: Tuple[str, ...] = ("id", "modid", "modId", "mod_id")
NAME_KEYS: Tuple[str, ...] = ("name", "display_name", "displayName")
VERSION_KEYS: Tuple[str, ...] = ("version", "mod_version")

# Quilt descriptors keep identity under "quilt_loader" and the name under its "metadata"
QUILT_SECTION = "quilt_loader"


def _scrub_surrogates(text: str) -> str:
    """Joins escaped surrogate pairs and replaces lone surrogates with U+FFFD."""
    return text.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "replace")


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return _scrub_surrogates(value).strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _lookup(data: Mapping[str, Any], keys: Sequence[str]) -> str:
    for key in keys:
        text = _as_text(data.get(key))
        if text:
            return text
    return ""


def _is_quilt(data: Mapping[str, Any]) -> bool:
    if isinstance(data.get(QUILT_SECTION), dict):
        return True
    depends = data.get("depends")
    if isinstance(depends, dict):
        return QUILT_SECTION in depends
    if isinstance(depends, list):
        # quilt style: [{"id": "quilt_loader", ...}] or ["quilt_loader"]
        for dep in depends:
            if dep == QUILT_SECTION or (isinstance(dep, dict) and dep.get("id") == QUILT_SECTION):
                return True
    return False


def fields_from_mapping(data: Mapping[str, Any]) -> MetadataFields:
    """Pulls identifier / display name / version out of a parsed descriptor."""
    quilt = data.get(QUILT_SECTION)
    quilt = quilt if isinstance(quilt, dict) else {}
    quilt_meta = quilt.get("metadata")
    quilt_meta = quilt_meta if isinstance(quilt_meta, dict) else {}

    identifier = _lookup(data, IDENTIFIER_KEYS) or _lookup(quilt, IDENTIFIER_KEYS)
    display_name = _lookup(data, NAME_KEYS) or _lookup(quilt_meta, NAME_KEYS)
    if not identifier:
        # A bare "name" is the last accepted spelling for the identifier
        identifier = display_name
    version = _lookup(data, VERSION_KEYS) or _lookup(quilt, VERSION_KEYS)
    loader = "quilt" if _is_quilt(data) else ""
    return MetadataFields(identifier=identifier, display_name=display_name,
                          version=version, loader=loader)


def parse_structured(text: str) -> MetadataFields:
    """
    Strictly parses descriptor text as JSON.

    Raises:
        StructuredParseError: on any syntax error, a non-object top level,
            or when no identifier can be found.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, RecursionError) as e:
        raise StructuredParseError(f"Invalid JSON: {e}")
    if not isinstance(data, dict):
        raise StructuredParseError(f"Expected a JSON object, got {type(data).__name__}")
    fields = fields_from_mapping(data)
    if not fields.identifier:
        raise StructuredParseError("No identifier field ('id' or 'name') in metadata")
    return fields


# "key" : "value" where the string body alternatives start on disjoint characters:
# a failed match costs linear time on any input.
_STRING_VALUE = r'"((?:[^"\\\r\n]|\\.)*)"'
_FALLBACK_PATTERNS: Dict[str, "re.Pattern[str]"] = {
    key: re.compile(r'"' + key + r'"\s*:\s*' + _STRING_VALUE)
    for key in ("id", "name", "version")
}
_SIMPLE_ESCAPES = {'"': '"', "\\": "\\", "/": "/", "b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t"}
_ESCAPE = re.compile(r"\\(u[0-9a-fA-F]{4}|.)", re.DOTALL)


def _unescape(value: str) -> str:
    def replace(match):
        seq = match.group(1)
        if seq.startswith("u") and len(seq) == 5:
            return chr(int(seq[1:], 16))
        return _SIMPLE_ESCAPES.get(seq, seq)
    return _scrub_surrogates(_ESCAPE.sub(replace, value)).strip()


def extract_fallback(text: str) -> MetadataFields:
    """
    Regex scan for "id", "name" and "version" string values, ignoring whether
    the surrounding document is well formed. The first occurrence of each key
    wins. Returns empty fields (not an error) when nothing matches.
    """
    found: Dict[str, str] = {}
    for key, pattern in _FALLBACK_PATTERNS.items():
        match = pattern.search(text)
        if match:
            found[key] = _unescape(match.group(1))
    return MetadataFields(
        identifier=found.get("id", "") or found.get("name", ""),
        display_name=found.get("name", ""),
        version=found.get("version", ""),
    )


class ExtractionStrategy(ABC):
    mode: ExtractionMode = ExtractionMode.UNKNOWN

    @abstractmethod
    def extract(self, text: str) -> ExtractionResult:
        """Return a tagged result; expected failures are reported, not raised."""
        pass


class StructuredStrategy(ExtractionStrategy):
    """Strict JSON parse of the text exactly as stored."""
    mode = ExtractionMode.STRUCTURED

    def _prepare(self, text: str) -> str:
        return text

    def extract(self, text: str) -> ExtractionResult:
        try:
            return ExtractionResult(self.mode, parse_structured(self._prepare(text)))
        except StructuredParseError as e:
            return ExtractionResult(self.mode, error=str(e))


class SanitizedStrategy(StructuredStrategy):
    """Strict JSON parse after repairing comments, commas, BOMs and raw newlines."""
    mode = ExtractionMode.SANITIZED

    def _prepare(self, text: str) -> str:
        return sanitize(text)


class FallbackStrategy(ExtractionStrategy):
    mode = ExtractionMode.FALLBACK

    def extract(self, text: str) -> ExtractionResult:
        fields = extract_fallback(text)
        if fields.is_empty():
            return ExtractionResult(self.mode, fields, error="no recognizable fields")
        return ExtractionResult(self.mode, fields)


class ExtractionChain:
    """
    Runs extraction strategies in order until one yields an identifier.

    Later strategies still run when the winning stage left the version empty,
    so the record builder can take it from a lower-fidelity stage.
    """

    def __init__(self, strategies: Optional[Sequence[ExtractionStrategy]] = None, quiet: bool = False):
        self.strategies: Tuple[ExtractionStrategy, ...] = tuple(
            strategies if strategies is not None
            else (StructuredStrategy(), SanitizedStrategy(), FallbackStrategy())
        )
        self.quiet = quiet
        self.debug = is_debug()

    def _log(self, message: str, is_error: bool = False):
        if (self.debug and not self.quiet) or is_error:
            level = "ERROR" if is_error else "DEBUG"
            print(f"ExtractionChain ({level}): {message}", file=sys.stderr)

    def run(self, raw, source: str = "<metadata>") -> List[ExtractionResult]:
        """
        Args:
            raw: Descriptor bytes or text.
            source: Label used in debug output (usually the archive file name).

        Returns:
            The results of every strategy that ran, in chain order.
        """
        text = decode_metadata(raw)
        results: List[ExtractionResult] = []
        have_identity = False
        for strategy in self.strategies:
            result = strategy.extract(text)
            results.append(result)
            if result.error:
                self._log(f"{source}: {strategy.mode.value} stage failed: {result.error}")
            if result.ok and not have_identity:
                have_identity = True
                self._log(f"{source}: identity from {strategy.mode.value} stage")
            if have_identity and self._complete(results):
                break
        return results

    @staticmethod
    def _complete(results: Sequence[ExtractionResult]) -> bool:
        return any(r.fields.version for r in results if r.error is None)
