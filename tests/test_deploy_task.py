from pathlib import Path
from types import SimpleNamespace

import pytest

from tests.archives import write_mod_archive
from modules.deploy import (
    ArchiveTransformer,
    ConfigurationError,
    DeployModsTask,
    DeployReport,
    TransformError,
    deploy_mods,
    read_extension_name,
)
from modules.deploy.task import DEFAULT_ARCHIVE_NAME


class RecordingTransformer(ArchiveTransformer):
    """Copies like the default transformer and remembers every call."""

    name = "recording"

    def __init__(self, fail_for=()):
        self.calls = []
        self.fail_for = set(fail_for)

    def transform(self, source, target):
        self.calls.append((source, target))
        if source.name in self.fail_for:
            raise TransformError(f"refusing {source.name}")
        target.write_bytes(source.read_bytes())


def _snapshot(directory: Path):
    return {child.name: child.read_bytes() for child in directory.iterdir() if child.is_file()}


@pytest.fixture()
def mods_dir(tmp_path):
    return tmp_path / "run" / "mods"


def test_deploy_copies_valid_mods(make_mod, mods_dir, collecting_logger, messages):
    alpha = make_mod("alpha.jar", "Alpha")
    beta = make_mod("beta.jar", "Beta")

    report = DeployModsTask(mod_directory=mods_dir, logger=collecting_logger).from_(alpha, beta).deploy()

    assert report.ok
    assert [item.name for item in report.deployed] == ["Alpha", "Beta"]
    assert (mods_dir / "alpha.jar").read_bytes() == alpha.read_bytes()
    assert (mods_dir / "beta.jar").read_bytes() == beta.read_bytes()
    assert any("Copying target" in message for message in messages)


def test_deploy_is_idempotent(make_mod, mods_dir, collecting_logger):
    alpha = make_mod("alpha.jar", "Alpha")
    beta = make_mod("beta.jar", "Beta")
    task = DeployModsTask(mod_directory=mods_dir, logger=collecting_logger).from_(alpha, beta)

    task.deploy()
    first = _snapshot(mods_dir)
    second_report = task.deploy()

    assert _snapshot(mods_dir) == first
    assert sorted(path.name for path in second_report.removed) == ["alpha.jar", "beta.jar"]


def test_replaces_previous_deployment_by_logical_name(make_mod, mods_dir, collecting_logger):
    old = write_mod_archive(mods_dir / "old.jar", "Foo", entries=[("old.txt", b"old")])
    new = make_mod("new.jar", "Foo", entries=[("new.txt", b"new")])

    report = DeployModsTask(mod_directory=mods_dir, logger=collecting_logger).from_(new).deploy()

    assert not old.exists()
    assert (mods_dir / "new.jar").read_bytes() == new.read_bytes()
    assert sorted(child.name for child in mods_dir.iterdir()) == ["new.jar"]
    assert report.removed == [old]


def test_unrelated_deployments_are_kept(make_mod, mods_dir, collecting_logger):
    other = write_mod_archive(mods_dir / "other.jar", "Other")
    new = make_mod("new.jar", "Foo")

    DeployModsTask(mod_directory=mods_dir, logger=collecting_logger).from_(new).deploy()

    assert other.exists()
    assert read_extension_name(mods_dir / "new.jar") == "Foo"


def test_invalid_archives_are_excluded(make_mod, tmp_path, mods_dir, collecting_logger):
    plain = make_mod("plain.jar")
    broken = make_mod("broken.jar", manifest=b"{oops")
    text = tmp_path / "build" / "readme.jar"
    text.write_text("not a zip", encoding="utf8")
    good = make_mod("good.jar", "Good")

    report = (
        DeployModsTask(mod_directory=mods_dir, logger=collecting_logger)
        .from_(plain, broken, text, good)
        .deploy()
    )

    assert sorted(child.name for child in mods_dir.iterdir()) == ["good.jar"]
    assert plain.resolve() in report.skipped
    assert {failure.path for failure in report.failures} == {broken.resolve(), text.resolve()}
    assert {failure.stage for failure in report.failures} == {"inspect"}


def test_scan_is_not_recursive_and_ignores_other_files(make_mod, mods_dir, collecting_logger):
    nested = write_mod_archive(mods_dir / "config" / "foo.jar", "Foo")
    upper = write_mod_archive(mods_dir / "foo.JAR", "Foo")
    zipped = write_mod_archive(mods_dir / "foo.zip", "Foo")
    notes = mods_dir / "notes.txt"
    notes.write_text("keep", encoding="utf8")
    jar_directory = mods_dir / "exploded.jar"
    jar_directory.mkdir()
    new = make_mod("foo-2.jar", "Foo")

    report = DeployModsTask(mod_directory=mods_dir, logger=collecting_logger).from_(new).deploy()

    assert nested.exists()
    assert upper.exists()
    assert zipped.exists()
    assert notes.read_text(encoding="utf8") == "keep"
    assert jar_directory.is_dir()
    assert report.ok


def test_corrupt_deployed_jar_is_reported_and_kept(make_mod, mods_dir, collecting_logger):
    mods_dir.mkdir(parents=True)
    corrupt = mods_dir / "corrupt.jar"
    corrupt.write_bytes(b"garbage")
    new = make_mod("foo.jar", "Foo")

    report = DeployModsTask(mod_directory=mods_dir, logger=collecting_logger).from_(new).deploy()

    assert corrupt.exists()
    assert [failure.stage for failure in report.failures] == ["cleanup"]
    assert (mods_dir / "foo.jar").exists()


def test_same_file_via_two_references_deploys_once(make_mod, mods_dir, collecting_logger):
    alpha = make_mod("alpha.jar", "Alpha")
    transformer = RecordingTransformer()
    artifact = SimpleNamespace(file=alpha)
    task = SimpleNamespace(archive_file=alpha)

    report = (
        DeployModsTask(mod_directory=mods_dir, transformer=transformer, logger=collecting_logger)
        .from_(alpha, artifact, task, str(alpha))
        .deploy()
    )

    assert len(transformer.calls) == 1
    assert len(report.deployed) == 1


def test_missing_sources_are_skipped(make_mod, tmp_path, mods_dir, collecting_logger):
    missing = tmp_path / "build" / "ghost.jar"
    alpha = make_mod("alpha.jar", "Alpha")

    report = DeployModsTask(mod_directory=mods_dir, logger=collecting_logger).from_(missing, alpha).deploy()

    assert report.ok
    assert report.skipped == [missing.resolve()]
    assert [item.name for item in report.deployed] == ["Alpha"]


def test_transform_failure_does_not_abort(make_mod, mods_dir, collecting_logger, messages):
    alpha = make_mod("alpha.jar", "Alpha")
    beta = make_mod("beta.jar", "Beta")
    transformer = RecordingTransformer(fail_for={"alpha.jar"})

    report = (
        DeployModsTask(mod_directory=mods_dir, transformer=transformer, logger=collecting_logger)
        .from_(alpha, beta)
        .deploy()
    )

    assert not report.ok
    assert report.failures[0].stage == "transform"
    assert isinstance(report.failures[0].error, TransformError)
    assert [item.name for item in report.deployed] == ["Beta"]
    assert (mods_dir / "beta.jar").exists()
    assert any("refusing alpha.jar" in message for message in messages)


def test_existing_destination_is_deleted_before_transform(make_mod, mods_dir, collecting_logger):
    mods_dir.mkdir(parents=True)
    stale = mods_dir / "alpha.jar"
    stale.write_bytes(b"stale, not a mod")
    alpha = make_mod("alpha.jar", "Alpha")
    seen = []

    class AssertingTransformer(ArchiveTransformer):
        name = "asserting"

        def transform(self, source, target):
            seen.append(target.exists())
            target.write_bytes(source.read_bytes())

    DeployModsTask(mod_directory=mods_dir, transformer=AssertingTransformer(), logger=collecting_logger).from_(
        alpha
    ).deploy()

    assert seen == [False]
    assert stale.read_bytes() == alpha.read_bytes()


def test_mod_directory_falls_back_to_run_directory(make_mod, tmp_path, collecting_logger):
    alpha = make_mod("alpha.jar", "Alpha")
    run_directory = tmp_path / "run"

    report = DeployModsTask(run_directory=run_directory, logger=collecting_logger).from_(alpha).deploy()

    assert report.mod_directory == run_directory / "mods"
    assert (run_directory / "mods" / "alpha.jar").exists()


def test_unresolvable_mod_directory_is_fatal(make_mod, collecting_logger):
    task = DeployModsTask(logger=collecting_logger).from_(make_mod("alpha.jar", "Alpha"))

    with pytest.raises(ConfigurationError):
        task.deploy()


def test_empty_task_creates_directory_and_deploys_nothing(mods_dir, collecting_logger):
    report = DeployModsTask(mod_directory=mods_dir, logger=collecting_logger).deploy()

    assert mods_dir.is_dir()
    assert report.deployed == []
    assert report.ok


def test_deploy_broadcasts_plugin_hooks(make_mod, mods_dir, isolated_manager, collecting_logger):
    record = isolated_manager.register_plugin("tests.sample_plugins.plugin_alpha")
    write_mod_archive(mods_dir / "old.jar", "Foo")
    new = make_mod("new.jar", "Foo")

    report = DeployModsTask(
        mod_directory=mods_dir, logger=collecting_logger, plugin_manager=isolated_manager
    ).from_(new).deploy()

    kinds = [kind for kind, _ in record.obj.events]
    assert kinds == ["removed", "deployed", "finished"]
    assert record.obj.events[0][1] == (mods_dir / "old.jar", "Foo")
    assert record.obj.events[-1][1][0] is report


def test_deploy_mods_helper(make_mod, mods_dir, collecting_logger):
    report = deploy_mods(make_mod("alpha.jar", "Alpha"), mod_directory=mods_dir, logger=collecting_logger)

    assert report.as_dict()["deployed"][0]["name"] == "Alpha"


def test_failing_plugin_hook_does_not_abort(make_mod, mods_dir, isolated_manager, collecting_logger, messages):
    record = isolated_manager.register_plugin("tests.sample_plugins.faulty")
    old = write_mod_archive(mods_dir / "old.jar", "Alpha")
    alpha = make_mod("alpha.jar", "Alpha")
    beta = make_mod("beta.jar", "Beta")

    report = DeployModsTask(
        mod_directory=mods_dir, logger=collecting_logger, plugin_manager=isolated_manager
    ).from_(alpha, beta).deploy()

    assert not old.exists()
    assert report.removed == [old]
    assert sorted(child.name for child in mods_dir.iterdir()) == ["alpha.jar", "beta.jar"]
    assert [item.name for item in report.deployed] == ["Alpha", "Beta"]
    assert record.obj.deployed == ["Beta"]
    assert [(failure.stage, failure.path) for failure in report.failures] == [
        ("hook", old),
        ("hook", alpha.resolve()),
    ]
    assert any("plugin rejected Alpha" in message for message in messages)


def test_source_without_filename_uses_default_archive_name(mods_dir, collecting_logger):
    mods_dir.mkdir(parents=True)
    targets = []

    class TargetOnlyTransformer(ArchiveTransformer):
        name = "target-only"

        def transform(self, source, target):
            targets.append((source, target))

    transformer = TargetOnlyTransformer()
    task = DeployModsTask(mod_directory=mods_dir, transformer=transformer, logger=collecting_logger)
    report = DeployReport(mod_directory=mods_dir)

    task._place(Path("/"), "Rootless", mods_dir, transformer, report)

    assert targets == [(Path("/"), mods_dir / DEFAULT_ARCHIVE_NAME)]
    assert report.deployed[0].target == mods_dir / "extension.jar"
