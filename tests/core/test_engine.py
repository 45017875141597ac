import errno
import os
import shlex
import threading
from pathlib import Path

import pytest

from batchfmt.core.config import FormatRunConfig
from batchfmt.core.engine import DefaultFormatEngine, resolve_formatter, run_format
from batchfmt.core.progress import Progress
from batchfmt.dispatch.process import ManagedProcess
from batchfmt.errors import ConfigLoadError, DiscoveryError, FormatterFailed, FormatterNotFound, RemoteNotFound

FAKE_VERSION = "rustfmt 1.7.0-fake"


class FakeVCS:
    def __init__(self, *, available=True, remote="upstream", modified=(), untracked=()):
        self.available = available
        self.remote = remote
        self.modified = list(modified)
        self.untracked = list(untracked)
        self.diffed = 0

    def is_available(self):
        return self.available

    def is_git_repo(self, repo_root):
        return True

    def find_upstream_remote(self, repo_root, identity):
        if self.remote is None:
            raise RemoteNotFound(f"{identity} remote not found")
        return self.remote

    def modified_files(self, repo_root, remote, branch, extensions):
        self.diffed += 1
        return list(self.modified)

    def untracked_paths(self, repo_root):
        return list(self.untracked)


class FakePopen:
    def __init__(self, code=0):
        self.code = code

    def poll(self):
        return self.code

    def wait(self):
        return self.code


class SpawnRecorder:
    """Spawner factory: records every command and batch instead of running processes."""

    def __init__(self, fail_on=None, fail_code=2):
        self.fail_on = fail_on
        self.fail_code = fail_code
        self.commands = []
        self.batches: list[tuple[Path, ...]] = []
        self._lock = threading.Lock()

    def __call__(self, command):
        self.commands.append(command)

        def spawn(paths):
            batch = tuple(paths)
            with self._lock:
                self.batches.append(batch)
            failing = self.fail_on is not None and any(p.name == self.fail_on for p in batch)
            return ManagedProcess(
                FakePopen(self.fail_code if failing else 0),
                command_line=shlex.join(command.argv(batch)),
                batch=batch,
            )

        return spawn

    @property
    def files(self) -> set[str]:
        return {p.name for batch in self.batches for p in batch}


def write(path: Path, text: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def formatter(tmp_path) -> Path:
    script = write(tmp_path / "bin" / "rustfmt", f"#!/bin/sh\necho '{FAKE_VERSION}'\n")
    script.chmod(0o755)
    return script


@pytest.fixture
def repo(tmp_path) -> Path:
    root = tmp_path / "repo"
    write(root / "rustfmt.toml", 'edition = "2021"\n')
    return root


def make_config(repo, formatter, **kwargs) -> FormatRunConfig:
    kwargs.setdefault("jobs", 2)
    return FormatRunConfig(repo_root=repo, formatter=formatter, **kwargs)


def make_engine(vcs=None, recorder=None) -> DefaultFormatEngine:
    return DefaultFormatEngine(
        vcs=vcs if vcs is not None else FakeVCS(remote=None),
        progress=Progress(quiet=True),
        spawner=recorder if recorder is not None else SpawnRecorder(),
    )


def test_no_matching_files_spawns_nothing(repo, formatter):
    write(repo / "README.md", "docs")
    write(repo / "src" / "notes.txt", "notes")
    recorder = SpawnRecorder()

    result = make_engine(recorder=recorder).run(make_config(repo, formatter))

    assert result.skipped is False
    assert result.files == 0
    assert result.batches == 0
    assert recorder.batches == []


def test_twenty_files_are_batched_within_the_pool_bound(repo, formatter):
    for i in range(20):
        write(repo / "src" / f"m{i:02}.rs", "fn f() {}\n")
    recorder = SpawnRecorder()

    result = make_engine(recorder=recorder).run(make_config(repo, formatter, jobs=2, batch_size=8))

    assert result.files == 20
    assert result.batches >= 3
    assert result.batches == len(recorder.batches)
    assert all(1 <= len(b) <= 8 for b in recorder.batches)
    assert sorted(p.name for b in recorder.batches for p in b) == sorted(f"m{i:02}.rs" for i in range(20))
    assert 1 <= result.peak_processes <= 4


def test_failing_batch_aborts_the_run(repo, formatter):
    write(repo / "good.rs")
    write(repo / "bad.rs")
    recorder = SpawnRecorder(fail_on="bad.rs", fail_code=2)

    with pytest.raises(FormatterFailed) as exc:
        make_engine(recorder=recorder).run(make_config(repo, formatter))

    assert exc.value.exit_code == 2
    assert "bad.rs" in exc.value.command_line
    assert f"Running `{exc.value.command_line}` failed." in str(exc.value)


def test_without_upstream_remote_the_whole_tree_is_formatted(repo, formatter):
    write(repo / "src" / "lib.rs")
    write(repo / "src" / "nested" / "mod.rs")
    vcs = FakeVCS(remote=None, modified=["src/lib.rs"])
    recorder = SpawnRecorder()

    result = make_engine(vcs=vcs, recorder=recorder).run(make_config(repo, formatter))

    assert result.selection.fast_path is False
    assert recorder.files == {"lib.rs", "mod.rs"}
    assert vcs.diffed == 0


def test_second_run_uses_modified_files(repo, formatter):
    write(repo / "src" / "lib.rs")
    write(repo / "src" / "main.rs")
    vcs = FakeVCS(modified=["src/lib.rs"])
    config = make_config(repo, formatter)

    first = SpawnRecorder()
    result = make_engine(vcs=vcs, recorder=first).run(config)
    assert result.selection.fast_path is False
    assert result.stamp_updated is True
    assert first.files == {"lib.rs", "main.rs"}

    second = SpawnRecorder()
    result = make_engine(vcs=vcs, recorder=second).run(config)
    assert result.selection.fast_path is True
    assert second.files == {"lib.rs"}


def test_no_modified_files_spawns_nothing(repo, formatter):
    write(repo / "src" / "lib.rs")
    write(repo / "build" / "rustfmt.stamp", FAKE_VERSION + "\n")
    recorder = SpawnRecorder()

    result = make_engine(vcs=FakeVCS(modified=[]), recorder=recorder).run(make_config(repo, formatter))

    assert result.selection.nothing_to_format is True
    assert result.files == 0
    assert recorder.batches == []


def test_stamp_records_formatter_version(repo, formatter):
    write(repo / "lib.rs")

    result = make_engine().run(make_config(repo, formatter))

    assert result.stamp_updated is True
    assert (repo / "build" / "rustfmt.stamp").read_text(encoding="utf-8") == FAKE_VERSION + "\n"


def test_stamp_honours_out_dir(repo, formatter, tmp_path):
    write(repo / "lib.rs")
    out_dir = tmp_path / "out"

    make_engine().run(make_config(repo, formatter, out_dir=out_dir))

    assert (out_dir / "rustfmt.stamp").is_file()
    assert not (repo / "build").exists()


def test_check_mode_does_not_write_stamp(repo, formatter):
    write(repo / "lib.rs")
    recorder = SpawnRecorder()

    result = make_engine(recorder=recorder).run(make_config(repo, formatter, check=True))

    assert result.stamp_updated is False
    assert not (repo / "build" / "rustfmt.stamp").exists()
    assert recorder.commands[0].check is True
    assert "--check" in recorder.commands[0].argv([repo / "lib.rs"])


def test_explicit_paths_only_format_those_paths(repo, formatter):
    write(repo / "src" / "lib.rs")
    write(repo / "src" / "main.rs")
    write(repo / "tests" / "it.rs")
    recorder = SpawnRecorder()

    result = make_engine(recorder=recorder).run(
        make_config(repo, formatter, paths=(repo / "src" / "lib.rs", repo / "tests"))
    )

    assert recorder.files == {"lib.rs", "it.rs"}
    assert result.stamp_updated is False


def test_missing_explicit_path_is_fatal(repo, formatter):
    with pytest.raises(DiscoveryError, match="nope.rs"):
        make_engine().run(make_config(repo, formatter, paths=(repo / "nope.rs",)))


def test_unreadable_directory_aborts_the_run(repo, formatter, monkeypatch):
    for i in range(300):
        write(repo / "src" / f"m{i:03}.rs")
    write(repo / "locked" / "x.rs")
    real_scandir = os.scandir

    def scandir(path):
        if Path(path).name == "locked":
            raise PermissionError(errno.EACCES, "Permission denied", str(path))
        return real_scandir(path)

    monkeypatch.setattr("batchfmt.walk.discovery.os.scandir", scandir)
    recorder = SpawnRecorder()

    with pytest.raises(DiscoveryError, match="locked: Permission denied"):
        make_engine(recorder=recorder).run(make_config(repo, formatter, jobs=2, queue_capacity=2))

    assert not any(t.name == "batchfmt-dispatch" for t in threading.enumerate())
    assert not (repo / "build" / "rustfmt.stamp").exists()


def test_config_ignore_is_respected(repo, formatter):
    write(repo / "rustfmt.toml", 'ignore = ["vendor", "/src/generated.rs"]\n')
    write(repo / "src" / "lib.rs")
    write(repo / "src" / "generated.rs")
    write(repo / "vendor" / "dep" / "lib2.rs")
    recorder = SpawnRecorder()

    make_engine(recorder=recorder).run(make_config(repo, formatter))

    assert recorder.files == {"lib.rs"}


def test_gitignore_applies_only_inside_git(repo, formatter):
    write(repo / ".gitignore", "target/\n")
    write(repo / "src" / "lib.rs")
    write(repo / "target" / "out.rs")

    in_git = SpawnRecorder()
    make_engine(vcs=FakeVCS(remote=None), recorder=in_git).run(make_config(repo, formatter))
    assert in_git.files == {"lib.rs"}

    no_git = SpawnRecorder()
    make_engine(vcs=FakeVCS(available=False), recorder=no_git).run(make_config(repo, formatter))
    assert no_git.files == {"lib.rs", "out.rs"}


def test_untracked_files_are_skipped(repo, formatter):
    write(repo / "src" / "lib.rs")
    write(repo / "scratch.rs")
    recorder = SpawnRecorder()

    make_engine(vcs=FakeVCS(remote=None, untracked=["scratch.rs"]), recorder=recorder).run(
        make_config(repo, formatter)
    )

    assert recorder.files == {"lib.rs"}


def test_command_pins_config_dir_and_edition(repo, formatter):
    write(repo / "lib.rs")
    recorder = SpawnRecorder()

    make_engine(recorder=recorder).run(make_config(repo, formatter, edition="2018"))

    argv = recorder.commands[0].argv([])
    assert argv[:7] == [
        str(formatter),
        "--config-path",
        str(repo.resolve()),
        "--edition",
        "2018",
        "--unstable-features",
        "--skip-children",
    ]


def test_missing_config_skips_the_run(repo, formatter, capsys):
    (repo / "rustfmt.toml").unlink()
    write(repo / "lib.rs")
    recorder = SpawnRecorder()
    engine = DefaultFormatEngine(vcs=FakeVCS(), spawner=recorder)

    result = engine.run(make_config(repo, formatter))

    assert result.skipped is True
    assert result.reason == "config file missing"
    assert recorder.batches == []
    err = capsys.readouterr().err
    assert "Not running formatting checks; rustfmt.toml does not exist." in err
    assert "This may happen in distributed tarballs." in err


def test_dry_run_does_nothing(repo, formatter):
    write(repo / "lib.rs")
    recorder = SpawnRecorder()

    result = make_engine(recorder=recorder).run(make_config(repo, formatter, dry_run=True))

    assert result.skipped is True
    assert result.reason == "dry run"
    assert recorder.commands == []
    assert not (repo / "build").exists()


def test_unparseable_config_is_fatal(repo, formatter):
    write(repo / "rustfmt.toml", "ignore = [")

    with pytest.raises(ConfigLoadError):
        make_engine().run(make_config(repo, formatter))


def test_unknown_file_type_is_fatal(repo, formatter):
    with pytest.raises(ConfigLoadError) as exc:
        make_engine().run(make_config(repo, formatter, file_type="cobol"))
    assert exc.value.code == "invalid_file_type"


def test_missing_formatter_is_fatal(repo, tmp_path):
    with pytest.raises(FormatterNotFound):
        make_engine().run(make_config(repo, tmp_path / "no-such-rustfmt"))


def test_formatter_not_on_path(repo, monkeypatch):
    monkeypatch.setattr("batchfmt.core.engine.shutil.which", lambda name: None)

    with pytest.raises(FormatterNotFound, match="rustfmt"):
        resolve_formatter(FormatRunConfig(repo_root=repo))


def test_formatter_found_on_path(repo, formatter, monkeypatch):
    monkeypatch.setattr("batchfmt.core.engine.shutil.which", lambda name: str(formatter))

    assert resolve_formatter(FormatRunConfig(repo_root=repo)) == formatter


def test_run_format_helper(repo, formatter):
    write(repo / "lib.rs")
    recorder = SpawnRecorder()

    result = run_format(
        make_config(repo, formatter),
        vcs=FakeVCS(remote=None),
        progress=Progress(quiet=True),
        spawner=recorder,
    )

    assert result.files == 1
    assert recorder.files == {"lib.rs"}
