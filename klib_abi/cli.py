"""CLI interface for klib-abi."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List

from . import __version__
from .config import KlibValidationSettings, banned_targets_from_env
from .errors import AbiDumpError
from .filters import DumpFilters, SignatureVersion
from .readers import READER_KINDS, create_reader
from .tasks import build_target_dump, check_dump, extract_supported_targets, infer_dump, merge_dumps


def _parse_target_files(values: List[str]) -> Dict[str, Path]:
    """Parse ``TARGET=PATH`` arguments."""
    result: Dict[str, Path] = {}
    for value in values or []:
        target, sep, path = value.partition("=")
        target = target.strip()
        if not sep or not target or not path.strip():
            raise ValueError(f"Invalid dump argument '{value}'. Expected format: TARGET=PATH")
        if target in result:
            raise ValueError(f"Dump for target {target} is given more than once")
        result[target] = Path(path.strip())
    return result


def _load_settings(args) -> KlibValidationSettings:
    if getattr(args, "config", None):
        return KlibValidationSettings.from_json(Path(args.config))
    settings = KlibValidationSettings()
    settings.banned_targets |= banned_targets_from_env()
    return settings


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def _report(args, e: Exception) -> int:
    if isinstance(e, (AbiDumpError, ValueError, RuntimeError, OSError)):
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if args.verbose:
        raise e
    print(f"Unexpected error: {e}", file=sys.stderr)
    return 1


def cmd_dump(args):
    """Render the single-target dump of a compiled artifact."""
    try:
        settings = _load_settings(args)
        filters = settings.to_filters()
        if args.ignored_package or args.ignored_class or args.non_public_marker or args.signature_version:
            filters = DumpFilters.build(
                ignored_packages=filters.ignored_packages | set(args.ignored_package or []),
                ignored_classes=filters.ignored_classes | set(args.ignored_class or []),
                non_public_markers=filters.non_public_markers | set(args.non_public_marker or []),
                signature_version=(SignatureVersion.parse(args.signature_version)
                                   if args.signature_version else filters.signature_version),
            )
        if not settings.enabled:
            print("KLib ABI validation is disabled, nothing to dump", file=sys.stderr)
            return 0
        output = build_target_dump(args.artifact, args.output, filters, create_reader(args.reader))
        if args.verbose:
            print(f"Dump written to {output}", file=sys.stderr)
        return 0
    except Exception as e:
        return _report(args, e)


def cmd_merge(args):
    """Merge per-target dumps into one multi-target dump."""
    try:
        settings = _load_settings(args)
        target_dumps = _parse_target_files(args.dump)
        group_names = settings.use_target_group_aliases and not args.no_group_aliases
        merger = merge_dumps(target_dumps, args.output, group_target_names=group_names)
        if args.verbose:
            print(f"Merged {len(merger.targets)} targets into {args.output}", file=sys.stderr)
        return 0
    except Exception as e:
        return _report(args, e)


def cmd_infer(args):
    """Infer a dump for a target the host compiler cannot build."""
    try:
        settings = _load_settings(args)
        target_dumps = _parse_target_files(args.dump)
        supported = settings.supported_targets(target_dumps)
        supported_dumps = {t: p for t, p in target_dumps.items() if t in supported}
        result = infer_dump(args.target, supported_dumps, args.output, image=args.image)
        if args.verbose:
            print(f"Dump for {result.target} inferred from "
                  f"[{', '.join(sorted(result.donor_targets))}]", file=sys.stderr)
        return 0
    except Exception as e:
        return _report(args, e)


def cmd_extract(args):
    """Keep only the supported targets of a reference dump."""
    try:
        settings = _load_settings(args)
        supported = settings.supported_targets(args.target or [])
        strict = settings.strict_validation or args.strict
        group_names = settings.use_target_group_aliases and not args.no_group_aliases
        extract_supported_targets(args.reference, args.output, supported,
                                  strict=strict, group_target_names=group_names)
        return 0
    except Exception as e:
        return _report(args, e)


def cmd_check(args):
    """Compare a generated dump with the committed reference."""
    try:
        diff = check_dump(args.expected, args.actual)
    except Exception as e:
        return _report(args, e)
    if not diff:
        if args.verbose:
            print("ABI dumps match", file=sys.stderr)
        return 0
    print(f"ABI check failed for {args.actual}. "
          "You can run the dump command to overwrite the reference dump.", file=sys.stderr)
    print("\n".join(diff))
    return 1


def _add_common_arguments(p) -> None:
    p.add_argument("--config", metavar="FILE", help="KLib validation settings (JSON)")
    p.add_argument("-v", "--verbose", action="store_true")


def create_parser():
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="klib-abi",
        description="klib-abi — merge, project and check multi-target KLib ABI dumps",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Dump the ABI of one target
  klib-abi dump build/linuxX64/testproject.json -o build/linuxX64/testproject.klib.api

  # Merge per-target dumps
  klib-abi merge --dump linuxX64=build/linuxX64/testproject.klib.api \\
                 --dump mingwX64=build/mingwX64/testproject.klib.api -o build/klib/testproject.klib.api

  # Infer a dump for a target the host cannot build
  klib-abi infer linuxArm64 --dump linuxX64=build/linuxX64/testproject.klib.api \\
                 --image api/testproject.klib.api -o build/linuxArm64/testproject.klib.api

  # Check the merged dump against the committed one
  klib-abi check api/testproject.klib.api build/klib/testproject.klib.api

Exit codes:
  0  = Success (dumps match)
  1  = Failure (dumps differ or an error occurred)
"""
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # dump
    dp = subparsers.add_parser("dump", help="Render the ABI dump of a compiled artifact for one target")
    dp.add_argument("artifact", help="Compiled artifact (ABI manifest)")
    dp.add_argument("-o", "--output", type=Path, required=True, help="Write dump to file")
    dp.add_argument("--reader", choices=READER_KINDS, default="json")
    dp.add_argument("--ignored-package", action="append", metavar="PACKAGE",
                    help="Exclude a package and its sub-packages (repeatable)")
    dp.add_argument("--ignored-class", action="append", metavar="CLASS",
                    help="Exclude a class by binary name, e.g. a.b.Outer$Inner (repeatable)")
    dp.add_argument("--non-public-marker", action="append", metavar="ANNOTATION",
                    help="Exclude declarations annotated with ANNOTATION (repeatable)")
    dp.add_argument("--signature-version", metavar="N",
                    help="Signature version to render (default: latest)")
    _add_common_arguments(dp)

    # merge
    mp = subparsers.add_parser("merge", help="Merge per-target dumps into a multi-target dump")
    mp.add_argument("--dump", action="append", metavar="TARGET=PATH", required=True,
                    help="Individual dump of a target (repeatable)")
    mp.add_argument("-o", "--output", type=Path, required=True, help="Write merged dump to file")
    mp.add_argument("--no-group-aliases", action="store_true",
                    help="Always list targets literally instead of using group names")
    _add_common_arguments(mp)

    # infer
    ip = subparsers.add_parser("infer", help="Infer a dump for a target unsupported by the host")
    ip.add_argument("target", help="Unsupported target name (e.g. linuxArm64)")
    ip.add_argument("--dump", action="append", metavar="TARGET=PATH", required=True,
                    help="Individual dump of a supported target (repeatable)")
    ip.add_argument("--image", type=Path, help="Previously committed merged dump")
    ip.add_argument("-o", "--output", type=Path, required=True, help="Write inferred dump to file")
    _add_common_arguments(ip)

    # extract
    ep = subparsers.add_parser("extract",
        help="Remove targets the host cannot build from a reference merged dump")
    ep.add_argument("reference", help="Reference merged dump")
    ep.add_argument("-o", "--output", type=Path, required=True, help="Write extracted dump to file")
    ep.add_argument("--target", action="append", metavar="TARGET",
                    help="Target supported by the host (repeatable)")
    ep.add_argument("--strict", action="store_true",
                    help="Fail if the reference has targets the host cannot build")
    ep.add_argument("--no-group-aliases", action="store_true",
                    help="Always list targets literally instead of using group names")
    _add_common_arguments(ep)

    # check
    cp = subparsers.add_parser("check", help="Compare a generated dump with the reference one")
    cp.add_argument("expected", help="Committed reference dump")
    cp.add_argument("actual", help="Freshly generated dump")
    cp.add_argument("-v", "--verbose", action="store_true")

    return parser


def main(argv=None):
    """Entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    _configure_logging(args.verbose)
    handlers = {
        "dump":    cmd_dump,
        "merge":   cmd_merge,
        "infer":   cmd_infer,
        "extract": cmd_extract,
        "check":   cmd_check,
    }
    return handlers[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
