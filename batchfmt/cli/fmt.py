from pathlib import Path

from batchfmt.cli._io import ensure_repo_root, optional_path
from batchfmt.cli.exitcodes import EXIT_OK
from batchfmt.core.config import FormatRunConfig
from batchfmt.core.engine import DefaultFormatEngine


def run(
    *,
    root: str,
    paths: tuple[str, ...],
    check: bool,
    dry_run: bool,
    jobs: int,
    formatter: str | None,
    config: str | None,
    out_dir: str | None,
    edition: str,
    file_type: str,
    upstream: str,
    upstream_branch: str,
    quiet: bool = False,
    engine: DefaultFormatEngine | None = None,
) -> int:
    repo_root = ensure_repo_root(root)

    run_config = FormatRunConfig(
        repo_root=repo_root,
        paths=tuple(Path(p) for p in paths),
        check=check,
        dry_run=dry_run,
        jobs=jobs,
        formatter=optional_path(formatter),
        config_file=optional_path(config),
        out_dir=optional_path(out_dir),
        edition=edition,
        file_type=file_type,
        upstream_identity=upstream,
        upstream_branch=upstream_branch,
        quiet=quiet,
    )

    engine = engine if engine is not None else DefaultFormatEngine()
    result = engine.run(run_config)

    if not quiet and not result.skipped and result.files:
        mode = "Checked" if check else "Formatted"
        print(f"{mode} {result.files} file(s) in {result.batches} batch(es).")

    return EXIT_OK
