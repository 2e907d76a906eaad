"""CLI entrypoints for securedgen commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError, load_config
from .logging import configure_logging
from .orchestrator import Orchestrator


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="securedgen",
        description="Generate secured companion classes for templates marked @requires_confidentiality.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only report warnings and errors.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser(
        "generate",
        help="Generate <Name>Secured classes into <package>.generated.",
    )
    _add_verbose_option(generate_parser, suppress_default=True)
    generate_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the source root (defaults to current directory).",
    )
    generate_parser.add_argument(
        "--output",
        default=None,
        help="Directory receiving generated packages (defaults to the source root).",
    )
    generate_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Render generated modules and print them without writing files.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for securedgen commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose),
        quiet=bool(args.quiet),
        log_file=_configured_log_file(getattr(args, "path", ".")),
    )

    orchestrator = Orchestrator()

    if args.command == "generate":
        dry_run = bool(getattr(args, "dry_run", False))
        try:
            report = orchestrator.run_generate(
                args.path,
                output_dir=args.output,
                dry_run=dry_run,
            )
        except (FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")
        except Exception as exc:  # pragma: no cover - unexpected failure surfaced to the user
            parser.exit(1, f"securedgen generate failed: {exc}\nRun with --verbose for more details.\n")

        if dry_run:
            for module, text in sorted(report.sources.items()):
                print(f"# --- {module} (dry-run) ---")
                print(text, end="")
        else:
            for path in report.written:
                print(f"Generated {_relativize(path)}")
        if not report.units:
            print("No secured classes generated")

        if not report.ok:
            for diagnostic in report.errors:
                print(diagnostic, file=sys.stderr)
            parser.exit(1, f"securedgen generate finished with {len(report.errors)} error(s).\n")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _configured_log_file(path: str) -> Path | None:
    try:
        return load_config(Path(path)).log_file
    except (ConfigError, OSError):
        return None


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
