import argparse
import sys
from pathlib import Path

from drivepin import __version__
from drivepin.config import settings
from drivepin.domain.models import EntryResult, PlannedAction
from drivepin.logging import LoggerFactory, setup_logging
from drivepin.services.exporter import Exporter
from drivepin.services.restorer import Restorer
from drivepin.storage.exceptions import (
    EnumerationError,
    MappingError,
    PrivilegeError,
)
from drivepin.storage.mapping_file import (
    ensure_valid_mapping,
    format_mapping,
    load_mapping,
    validate_mapping,
    write_mapping,
)
from drivepin.storage.privilege import require_elevated
from drivepin.storage.volumes import PowerShellVolumes, format_volume_table

EXIT_OK = 0
EXIT_PRIVILEGE = 1
EXIT_ENUMERATION = 2
EXIT_MAPPING = 3


def build_parser():
    parser = argparse.ArgumentParser(
        prog="drivepin",
        description="Export and restore drive letters by volume identifier",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-d", "--debug", action="store_true", help="Log every PowerShell command"
    )
    parser.add_argument("--log-dir", type=Path, help="Directory for log files")
    subparsers = parser.add_subparsers(dest="command", required=True)

    export_parser = subparsers.add_parser(
        "export", help="Print the current letter -> volume id mapping"
    )
    export_parser.add_argument(
        "-o", "--output", type=Path, help="Write the mapping to a file instead of stdout"
    )

    restore_parser = subparsers.add_parser(
        "restore", help="Reassign drive letters from a mapping"
    )
    restore_parser.add_argument(
        "-m",
        "--mapping",
        help="Mapping file (defaults to settings, then the bundled mapping)",
    )
    restore_parser.add_argument(
        "-n", "--dry-run", action="store_true", help="Show the plan without changing anything"
    )
    restore_parser.add_argument(
        "-c", "--confirm", action="store_true", help="Ask before each letter change"
    )
    restore_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Show step-by-step progress"
    )
    restore_parser.add_argument(
        "--strict",
        action="store_true",
        help="Refuse mappings that repeat a letter or a volume id",
    )

    subparsers.add_parser("list", help="Show all volumes with letters and ids")
    return parser


def prompt_confirm(action: PlannedAction, stream=None) -> bool:
    stream = stream or sys.stdin
    print(f"About to {action.describe()}. Proceed? [y/N] ", end="", flush=True)
    answer = stream.readline()
    return answer.strip().lower() in ("y", "yes")


def _run_export(args, backend) -> int:
    mapping = Exporter(backend).export()
    if args.output:
        write_mapping(mapping, args.output)
        LoggerFactory.for_export().info(f"Mapping written to {args.output}")
    else:
        sys.stdout.write(format_mapping(mapping))
    return EXIT_OK


def _run_restore(args, backend) -> int:
    require_elevated()
    log = LoggerFactory.for_system()
    mapping_path = settings.resolve_mapping_path(args.mapping)
    log.debug(f"Using mapping {mapping_path}")
    mapping = load_mapping(mapping_path)
    if args.strict:
        ensure_valid_mapping(mapping)
    else:
        for problem in validate_mapping(mapping):
            log.warning(problem)

    confirm_each = args.confirm or settings.get_bool("confirm_each")
    dry_run = args.dry_run

    def print_result(result: EntryResult) -> None:
        print(result.status_line(dry_run=dry_run), flush=True)

    report = Restorer(backend, backend).restore(
        mapping,
        dry_run=dry_run,
        confirm=prompt_confirm if confirm_each and not dry_run else None,
        on_result=print_result,
    )
    print(report.summary_line())
    if report.has_errors:
        log.warning("Some letter changes failed; see the entries above")
    return EXIT_OK


def _run_list(args, backend) -> int:
    require_elevated()
    for line in format_volume_table(backend.list_volumes()):
        print(line)
    return EXIT_OK


COMMANDS = {
    "export": _run_export,
    "restore": _run_restore,
    "list": _run_list,
}


def main(argv=None, backend=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    settings.load_settings()
    setup_logging(
        verbose=getattr(args, "verbose", False),
        debug=args.debug,
        log_dir=args.log_dir or settings.get_path("log_dir"),
    )
    log = LoggerFactory.for_system()
    if backend is None:
        backend = PowerShellVolumes(
            settings.get_setting(
                "powershell_executable", settings.DEFAULT_POWERSHELL_EXECUTABLE
            )
        )

    try:
        return COMMANDS[args.command](args, backend)
    except PrivilegeError as error:
        log.error(str(error))
        return EXIT_PRIVILEGE
    except EnumerationError as error:
        log.error(f"Volume enumeration failed: {error}")
        return EXIT_ENUMERATION
    except MappingError as error:
        log.error(str(error))
        return EXIT_MAPPING


if __name__ == "__main__":
    sys.exit(main())
