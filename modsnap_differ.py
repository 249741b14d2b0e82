from typing import List, Tuple

from modsnap_core import ChangeReport, PackageRecord, Snapshot, sort_records


class SnapshotDiffer:
    """
    Classifies every identifier of two snapshots into exactly one bucket.

    Precedence for identifiers present in both snapshots: a version change is
    reported under `updated` even when the enabled flag flipped in the same
    interval; only records with an unchanged version can land in `disabled`
    or `re_enabled`. Versions are compared as plain strings.
    """

    @staticmethod
    def diff(old: Snapshot, new: Snapshot) -> ChangeReport:
        old_records = old.records
        new_records = new.records

        added = [new_records[i] for i in new_records.keys() - old_records.keys()]
        removed = [old_records[i] for i in old_records.keys() - new_records.keys()]

        updated: List[Tuple[PackageRecord, PackageRecord]] = []
        disabled: List[PackageRecord] = []
        re_enabled: List[PackageRecord] = []
        unchanged: List[PackageRecord] = []

        for identifier in new_records.keys() & old_records.keys():
            before = old_records[identifier]
            after = new_records[identifier]
            if before.version != after.version:
                updated.append((before, after))
            elif before.enabled and not after.enabled:
                disabled.append(after)
            elif not before.enabled and after.enabled:
                re_enabled.append(after)
            else:
                unchanged.append(after)

        return ChangeReport(
            added=sort_records(added),
            removed=sort_records(removed),
            updated=tuple(sorted(updated, key=lambda pair: pair[1].sort_key)),
            disabled=sort_records(disabled),
            re_enabled=sort_records(re_enabled),
            unchanged=sort_records(unchanged),
        )

    @staticmethod
    def initial(snapshot: Snapshot) -> ChangeReport:
        """
        Report for a first scan with nothing to compare against. Active records
        are new; disabled ones only show up under "Currently disabled mods".
        """
        return ChangeReport(added=snapshot.active)


def diff_snapshots(old: Snapshot, new: Snapshot) -> ChangeReport:
    return SnapshotDiffer.diff(old, new)
