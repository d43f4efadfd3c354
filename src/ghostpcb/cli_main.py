from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .api import inspect_archive, process
from .archive import load
from .config import EngineConfig, load_engine_config_from_file
from .contract import STRATEGY_NAMES, ObfuscateOptions, ProcessRequest
from .errors import ArchiveError
from .hashing import canonical_json_dumps
from .verify import verify_archives


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ghostpcb", description="Gerber/Excellon package obfuscator")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    obfuscate = subparsers.add_parser("obfuscate", help="Generate obfuscated variants of a ZIP package")
    obfuscate.add_argument("input", type=Path)
    obfuscate.add_argument("--count", type=int, default=1)
    obfuscate.add_argument("--out", type=Path, default=None, help="Output directory (default: input's directory)")
    obfuscate.add_argument("--seed", type=int, default=None, help="Base seed for reproducible variants")
    obfuscate.add_argument("--config", type=Path, default=None, help="Engine config (.yaml, .yml or .json)")
    for name in STRATEGY_NAMES:
        obfuscate.add_argument(f"--no-{name}", dest=name, action="store_false", help=f"Disable the {name} strategy")

    inspect = subparsers.add_parser("inspect", help="Show how each archive member is recognized")
    inspect.add_argument("input", type=Path)

    verify = subparsers.add_parser("verify", help="Check a variant against its source package")
    verify.add_argument("source", type=Path)
    verify.add_argument("variant", type=Path)
    verify.add_argument("--config", type=Path, default=None)

    return parser


def _load_config(path: Path | None) -> EngineConfig:
    return load_engine_config_from_file(path) if path is not None else EngineConfig()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    log_level = logging.WARNING
    if args.verbose >= 1:
        log_level = logging.INFO
    if args.verbose >= 2:
        log_level = logging.DEBUG
    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")

    if args.command == "obfuscate":
        if args.count < 1:
            parser.error("--count must be >= 1")
        options = ObfuscateOptions(**{name: getattr(args, name) for name in STRATEGY_NAMES})
        request = ProcessRequest(
            input_path=str(args.input),
            output_dir=str(args.out) if args.out is not None else None,
            count=args.count,
            options=options,
        )
        result = process(request, config=_load_config(args.config), seed=args.seed)
        sys.stdout.write(canonical_json_dumps(result.model_dump(mode="json")) + "\n")
        return 0 if result.success else 1

    if args.command == "inspect":
        try:
            members = inspect_archive(args.input)
        except ArchiveError as exc:
            sys.stderr.write(f"Error: {exc}\n")
            return 1
        sys.stdout.write(canonical_json_dumps({"members": members}) + "\n")
        return 0

    if args.command == "verify":
        config = _load_config(args.config)
        try:
            report = verify_archives(load(args.source), load(args.variant), config.tolerances)
        except ArchiveError as exc:
            sys.stderr.write(f"Error: {exc}\n")
            return 1
        sys.stdout.write(canonical_json_dumps(report.to_dict()) + "\n")
        return 0 if report.equivalent else 2

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
