import argparse
import sys

from batchfmt._version import __version__
from batchfmt.cli import fmt
from batchfmt.cli.exitcodes import EXIT_FAILURE
from batchfmt.core.config import (
    DEFAULT_EDITION,
    DEFAULT_FILE_TYPE,
    DEFAULT_UPSTREAM_BRANCH,
    DEFAULT_UPSTREAM_IDENTITY,
)
from batchfmt.errors import FormatError
from batchfmt.walk.rules import DEFAULT_FILE_TYPES


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="batchfmt",
        description="batchfmt: run an external code formatter over a repository in parallel batches",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    p.add_argument("paths", nargs="*", help="Format only these files/directories (default: whole repository).")
    p.add_argument("--check", action="store_true", help="Check formatting without changing files.")
    p.add_argument("--root", default=".", help="Repository root (default: .)")
    p.add_argument("--formatter", default=None, help="Formatter executable (default: rustfmt on PATH).")
    p.add_argument("--config", default=None, help="Formatter config file (default: <root>/rustfmt.toml).")
    p.add_argument("--out-dir", dest="out_dir", default=None, help="Build output directory (default: <root>/build).")
    p.add_argument("-j", "--jobs", type=int, default=0, help="Parallel walk workers; 2x this many formatter processes.")
    p.add_argument("--edition", default=DEFAULT_EDITION, help=f"Language edition (default: {DEFAULT_EDITION}).")
    p.add_argument(
        "--file-type",
        dest="file_type",
        choices=sorted(DEFAULT_FILE_TYPES),
        default=DEFAULT_FILE_TYPE,
        help=f"File type to format (default: {DEFAULT_FILE_TYPE}).",
    )
    p.add_argument(
        "--upstream",
        default=DEFAULT_UPSTREAM_IDENTITY,
        help=f"Text identifying the upstream remote URL (default: {DEFAULT_UPSTREAM_IDENTITY}).",
    )
    p.add_argument(
        "--upstream-branch",
        dest="upstream_branch",
        default=DEFAULT_UPSTREAM_BRANCH,
        help=f"Upstream branch for the merge-base (default: {DEFAULT_UPSTREAM_BRANCH}).",
    )
    p.add_argument("--dry-run", dest="dry_run", action="store_true", help="Do nothing and exit successfully.")
    p.add_argument("-q", "--quiet", action="store_true", help="Only print errors.")

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.jobs < 0:
        print("batchfmt: error: --jobs must be >= 0", file=sys.stderr)
        return EXIT_FAILURE

    try:
        return fmt.run(
            root=args.root,
            paths=tuple(args.paths),
            check=args.check,
            dry_run=args.dry_run,
            jobs=args.jobs,
            formatter=args.formatter,
            config=args.config,
            out_dir=args.out_dir,
            edition=args.edition,
            file_type=args.file_type,
            upstream=args.upstream,
            upstream_branch=args.upstream_branch,
            quiet=args.quiet,
        )

    except FormatError as e:
        print(f"batchfmt: error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    except OSError as e:
        print(f"batchfmt: error: {e}", file=sys.stderr)
        return EXIT_FAILURE


def entrypoint() -> None:
    sys.exit(main())


if __name__ == "__main__":
    entrypoint()
