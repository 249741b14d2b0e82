"""
modsnap_report.py - Markdown changelog for a ChangeReport.
Empty sections are left out; every list is already in display order.
"""

import datetime
from typing import Iterable, List, Optional

from modsnap_core import ChangeReport, PackageRecord, Snapshot


def _version(record: PackageRecord) -> str:
    return f"v{record.version}" if record.version else "(unknown version)"


def _record_lines(records: Iterable[PackageRecord]) -> List[str]:
    return [f"* `{r.label}` {_version(r)}" for r in records]


def _section(lines: List[str], title: str, body: List[str], note: Optional[str] = None):
    if not body:
        return
    lines.append(f"## {title} ({len(body)})")
    if note:
        lines.append(f"*{note}*\n")
    lines.extend(body)
    lines.append("")


def render_markdown(title: str, changes: ChangeReport, new_snapshot: Snapshot,
                    old_snapshot: Optional[Snapshot] = None,
                    generated_at: Optional[datetime.datetime] = None) -> str:
    """
    Renders the changelog.

    Args:
        title: Pack display name, e.g. from build_display_name().
        changes: Result of diff_snapshots() (or SnapshotDiffer.initial()).
        new_snapshot: The snapshot the changes lead to.
        old_snapshot: The baseline, if there was one.
        generated_at: Report time; defaults to now.
    """
    generated_at = generated_at or datetime.datetime.now()
    stats = new_snapshot.stats()
    lines: List[str] = [
        f"# {title} - Changelog\n",
        f"**Date:** {generated_at.strftime('%d.%m.%Y %H:%M')}\n",
        f"**Total mods:** {stats.active}  •  Disabled: {stats.disabled}  •  Read errors: {stats.failed}\n",
    ]
    if old_snapshot is not None:
        lines.append(f"**Compared with:** {old_snapshot.timestamp}\n")
    lines.append("\n---\n")

    _section(lines, "New mods", _record_lines(changes.added))
    _section(lines, "Updated mods", [
        f"* `{new.label}` → **{new.version or '?'}** (previously {old.version or '?'})"
        for old, new in changes.updated
    ])
    _section(lines, "Removed mods", _record_lines(changes.removed))
    _section(lines, "Newly disabled mods", _record_lines(changes.disabled),
             note="Probably incompatible or conflicting with the current version")
    _section(lines, "Re-enabled mods", _record_lines(changes.re_enabled))

    if new_snapshot.disabled:
        lines.append("---\n")
        _section(lines, "Currently disabled mods", _record_lines(new_snapshot.disabled))

    if new_snapshot.failed:
        lines.append("---\n")
        _section(lines, "Files with read errors", [
            f"* `{r.file_name}` - metadata could not be read"
            for r in sorted(new_snapshot.failed, key=lambda r: r.file_name)
        ])

    lines.append("---\n")
    lines.append("**Tip:** after larger updates it can help to delete `config/` "
                 "(or at least the configs of the problematic mods).\n")
    lines.append(f"_(Unchanged: {len(changes.unchanged)} • Total changes: {changes.total_changes()})_\n")
    return "\n".join(lines)


def summary_line(changes: ChangeReport) -> str:
    """One-line count summary for terminal output."""
    return (f"+{len(changes.added)} added, -{len(changes.removed)} removed, "
            f"{len(changes.updated)} updated, {len(changes.disabled)} disabled, "
            f"{len(changes.re_enabled)} re-enabled, {len(changes.unchanged)} unchanged")
