"""
modsnap.py - Mod folder inventory with snapshot history and changelogs.
Main CLI entry point for all modsnap operations.
"""

import argparse
import os
import sys

from modsnap_config import ScanConfig, load_env
from modsnap_core import VERSION, ModsnapError
from modsnap_differ import SnapshotDiffer, diff_snapshots
from modsnap_report import render_markdown, summary_line
from modsnap_scanner import scan_directory
from modsnap_store import SnapshotStore
from modsnap_utils import is_debug


def show_usage():
    """Show comprehensive usage information."""
    print(f"""modsnap v{VERSION} - mod folder inventory, snapshots and changelogs

USAGE:
  modsnap [mods_dir] [options]               # Scan, compare with last snapshot, write changelog (default)
  modsnap -d old.json new.json [-o out.md]   # Diff two stored snapshots
  modsnap -l snapshot.json                   # List snapshot records
  modsnap -ll snapshot.json                  # List with file, loader and extraction details
  modsnap -v snapshot.json                   # Verify a snapshot file
  modsnap -H dir                             # Show snapshot history in a directory

SCAN OPTIONS:
  -n NAME              Pack name used in the report title and file names (default: Agonia).
  -e EDITION           Edition: Full (default) or Lite.
  -P VERSION           Pack version, e.g. 1.4.
  -j NUM               Parallel workers (1-8, default: 1).
  -s DIR               Where snapshots and changelogs are kept (default: parent of mods_dir).
  -f                   Start a new history: do not compare with the stored snapshot.
  -o FILE              Changelog output file (scan: overrides the default path; diff: default stdout).
  --no-report          Do not write the changelog file.
  -q                   Quiet mode.

ENVIRONMENT (.env is loaded from the current directory or the modsnap directory):
  MODSNAP_PACK_NAME, MODSNAP_EDITION, MODSNAP_PACK_VERSION, MODSNAP_WORKERS,
  MODSNAP_SNAPSHOT_DIR, MODSNAP_DEBUG=true

EXAMPLES:
  modsnap ~/.minecraft/mods -n Agonia -P 1.4 -e Lite
  modsnap -H ~/.minecraft
  modsnap -d agonia-1.3-full.mods_snapshot.json agonia-1.4-full.mods_snapshot.json -o changes.md
""")


def build_parser():
    parser = argparse.ArgumentParser(
        description=f"modsnap v{VERSION} - mod folder inventory, snapshots and changelogs",
        formatter_class=argparse.RawTextHelpFormatter,
        add_help=False  # We'll add custom help
    )

    parser.add_argument('targets', nargs='*',
                        help="Mods directory, snapshot file(s) or history directory")

    action_group = parser.add_mutually_exclusive_group()
    action_group.add_argument('-l', '--list', action='store_true',
                              help='List snapshot records')
    action_group.add_argument('-ll', '--list-detailed', action='store_true',
                              help='List snapshot records with details')
    action_group.add_argument('-v', '--verify', action='store_true',
                              help='Verify snapshot file')
    action_group.add_argument('-d', '--diff', action='store_true',
                              help='Diff two stored snapshots')
    action_group.add_argument('-H', '--history', action='store_true',
                              help='List snapshot history')

    parser.add_argument('-n', '--name', help='Pack name')
    parser.add_argument('-e', '--edition', help='Pack edition (Full/Lite)')
    parser.add_argument('-P', '--pack-version', help='Pack version')
    parser.add_argument('-j', '--parallel', type=int, metavar='N',
                        help='Number of parallel workers (default: 1, max: 8)')
    parser.add_argument('-s', '--snapshot-dir', help='Snapshot/changelog directory')
    parser.add_argument('-f', '--force-new', action='store_true',
                        help='Do not compare with the stored snapshot')
    parser.add_argument('-o', '--output', help='Changelog output file')
    parser.add_argument('--no-report', action='store_true',
                        help='Do not write the changelog file')

    parser.add_argument('-q', '--quiet', action='store_true',
                        help='Suppress informational messages')
    parser.add_argument('-h', '--help', action='store_true',
                        help='Show this help message')
    parser.add_argument('--version', action='store_true',
                        help='Show version information')
    return parser


def main(argv=None):
    load_env()

    args = build_parser().parse_args(sys.argv[1:] if argv is None else argv)

    if args.help:
        show_usage()
        return 0

    if args.version:
        print(f"modsnap v{VERSION}")
        return 0

    command = 'scan'
    if args.list:
        command = 'list'
    elif args.list_detailed:
        command = 'list-detailed'
    elif args.verify:
        command = 'verify'
    elif args.diff:
        command = 'diff'
    elif args.history:
        command = 'history'

    if is_debug() and not args.quiet:
        print(f"modsnap: DEBUG: command={command} targets={args.targets}", file=sys.stderr)

    try:
        if command == 'scan':
            return execute_scan_command(args)
        elif command in ['list', 'list-detailed']:
            return execute_list_command(args, command)
        elif command == 'verify':
            return execute_verify_command(args)
        elif command == 'diff':
            return execute_diff_command(args)
        elif command == 'history':
            return execute_history_command(args)
        else:
            print(f"modsnap: Error: Unknown command '{command}'", file=sys.stderr)
            return 1

    except FileNotFoundError as e:
        print(f"modsnap: Error - File not found: {e}", file=sys.stderr)
        return 1
    except NotADirectoryError as e:
        print(f"modsnap: Error - Not a directory: {e}", file=sys.stderr)
        return 1
    except PermissionError as e:
        print(f"modsnap: Error - Permission denied: {e}", file=sys.stderr)
        return 1
    except (ModsnapError, ValueError) as e:
        print(f"modsnap: Error - {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nmodsnap: Operation cancelled by user", file=sys.stderr)
        return 1


def write_text(path, content, quiet=False):
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, 'w', encoding='utf-8', errors='replace') as f:
        f.write(content)
    if not quiet:
        print(f"modsnap: Changelog written to {path}", file=sys.stderr)


def execute_scan_command(args):
    """Execute scan command."""
    config = ScanConfig.from_env(
        mods_dir=args.targets[0] if args.targets else '.',
        workers=args.parallel,
        quiet=args.quiet,
        base_name=args.name,
        edition=args.edition,
        pack_version=args.pack_version,
        force_new=args.force_new,
        snapshot_dir=args.snapshot_dir,
        write_report=not args.no_report,
    )

    snapshot_dir = config.resolved_snapshot_dir
    snapshot_path = SnapshotStore.snapshot_path(snapshot_dir, config.file_prefix)
    report_path = args.output or SnapshotStore.changelog_path(snapshot_dir, config.file_prefix)

    # Load the baseline before scanning: a corrupt one aborts without being overwritten
    old_snapshot = None
    if os.path.exists(snapshot_path) and not config.force_new:
        try:
            old_snapshot = SnapshotStore.load(snapshot_path)
        except ModsnapError as e:
            print(f"modsnap: Error - {e}", file=sys.stderr)
            print("modsnap: Use -f to start a new snapshot history.", file=sys.stderr)
            return 1

    new_snapshot = scan_directory(config.mods_dir, workers=config.workers, quiet=config.quiet)

    if old_snapshot is not None:
        changes = diff_snapshots(old_snapshot, new_snapshot)
    else:
        changes = SnapshotDiffer.initial(new_snapshot)

    markdown = render_markdown(config.display_name, changes, new_snapshot, old_snapshot)

    SnapshotStore.save(new_snapshot, snapshot_path, quiet=config.quiet)
    if config.write_report:
        write_text(report_path, markdown, config.quiet)

    if not config.quiet:
        print(f"modsnap: {summary_line(changes)}", file=sys.stderr)
    print(markdown)
    return 0


def execute_diff_command(args):
    """Execute diff command."""
    if len(args.targets) != 2:
        print("modsnap: Error: diff requires exactly two snapshot files (old, new).", file=sys.stderr)
        return 1

    old_snapshot = SnapshotStore.load(args.targets[0])
    new_snapshot = SnapshotStore.load(args.targets[1])
    changes = diff_snapshots(old_snapshot, new_snapshot)

    title = args.name or os.path.basename(args.targets[1])
    markdown = render_markdown(title, changes, new_snapshot, old_snapshot)

    if not args.quiet:
        print(f"modsnap: {summary_line(changes)}", file=sys.stderr)
    if args.output:
        write_text(args.output, markdown, args.quiet)
    else:
        print(markdown)
    return 0


def execute_list_command(args, command):
    """Execute list or list-detailed command."""
    if not args.targets:
        print("modsnap: Error: No snapshot file specified for listing.", file=sys.stderr)
        return 1

    SnapshotStore.list_snapshot(args.targets[0], detailed=(command == 'list-detailed'))
    return 0


def execute_verify_command(args):
    """Execute verify command."""
    if not args.targets:
        print("modsnap: Error: No snapshot file specified for verification.", file=sys.stderr)
        return 1

    success = SnapshotStore.verify(args.targets[0], args.quiet)
    return 0 if success else 1


def execute_history_command(args):
    """Execute history command."""
    directory = args.targets[0] if args.targets else (args.snapshot_dir or '.')
    entries = SnapshotStore.find_history(directory)
    if not entries:
        if not args.quiet:
            print(f"modsnap: No snapshots found in {directory}", file=sys.stderr)
        return 0

    for entry in entries:
        print(f"{entry.timestamp}  {entry.file_name}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
