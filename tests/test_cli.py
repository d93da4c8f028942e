from __future__ import annotations

import pytest
from click.testing import CliRunner

from conftest import RecordingActions, RecordingExecutor
from espobuild.cli import EXIT_CONFIG_ERROR, EXIT_STEP_FAILED, EXIT_UNKNOWN_COMMAND, cli
from espobuild.executor import ProcessFailure
from espobuild.lock import LOCK_NAME
from espobuild.tasks import Tasks


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def invoke(runner, args, actions, cwd):
    return runner.invoke(cli, args, obj={"actions": actions, "cwd": str(cwd)})


def test_unknown_flag_exits_1_and_runs_nothing(runner, tmp_path):
    actions = RecordingActions()
    result = invoke(runner, ["--bogus"], actions, tmp_path)

    assert result.exit_code == EXIT_UNKNOWN_COMMAND == 1
    assert actions.invoked == []


def test_modifier_only_is_unknown(runner, tmp_path):
    actions = RecordingActions()
    result = invoke(runner, ["--local", "--branch=fix"], actions, tmp_path)

    assert result.exit_code == 1
    assert actions.invoked == []


def test_no_flags_prints_help(runner, tmp_path):
    actions = RecordingActions()
    result = invoke(runner, [], actions, tmp_path)

    assert result.exit_code == 0
    assert "Available flags" in result.output
    assert "--copy-to-end" in result.output
    assert actions.invoked == []


def test_only_highest_priority_flag_runs(runner, tmp_path):
    actions = RecordingActions()
    result = invoke(runner, ["--rebuild", "--copy", "--all"], actions, tmp_path)

    assert result.exit_code == 0, result.output
    assert actions.invoked == [
        "fetch", "install", "install-extensions", "copy-extension", "before-install",
        "composer-install", "rebuild", "after-install", "set-owner",
    ]
    assert "Done" in result.output


def test_recognized_flag_wins_over_unknown(runner, tmp_path):
    actions = RecordingActions()
    result = invoke(runner, ["--bogus", "--rebuild"], actions, tmp_path)

    assert result.exit_code == 0
    assert actions.invoked == ["rebuild"]


def test_branch_and_local_reach_the_context(runner, tmp_path):
    actions = RecordingActions()
    result = invoke(runner, ["--fetch", "--local", "--branch=stable"], actions, tmp_path)

    assert result.exit_code == 0
    ctx = actions.contexts[0]
    assert ctx.branch == "stable"
    assert ctx.local is True
    assert ctx.cwd == tmp_path.resolve()


def test_branch_defaults_to_config(runner, tmp_path, config):
    actions = RecordingActions()
    actions.config = config.model_copy(update={"espocrm": config.espocrm.model_copy(update={"branch": "8.4"})})

    result = invoke(runner, ["--composer-install"], actions, tmp_path)

    assert result.exit_code == 0, result.output
    assert actions.contexts[0].branch == "8.4"


def test_step_failure_exit_code(runner, tmp_path):
    actions = RecordingActions(fail={"composer-install": ProcessFailure(cmd="composer install", exit_code=1)})
    result = invoke(runner, ["--copy-to-end"], actions, tmp_path)

    assert result.exit_code == EXIT_STEP_FAILED
    assert actions.invoked == ["copy-extension", "before-install", "composer-install"]
    assert not (tmp_path / LOCK_NAME).exists()


def test_step_failure_is_reported_once(runner, tmp_path):
    actions = RecordingActions(fail={"rebuild": ProcessFailure(cmd="php rebuild.php", exit_code=255)})
    result = invoke(runner, ["--rebuild"], actions, tmp_path)

    assert result.exit_code == EXIT_STEP_FAILED
    assert result.output.count("php rebuild.php") == 1
    assert result.output.count("STEP FAILED: rebuild") == 1


def test_set_owner_failure_still_succeeds(runner, tmp_path):
    actions = RecordingActions(fail={"set-owner": ProcessFailure(cmd="chown -R a:b .", exit_code=1)})
    result = invoke(runner, ["--copy"], actions, tmp_path)

    assert result.exit_code == 0
    assert actions.invoked == ["copy-extension", "set-owner"]


def test_copy_file_without_file_is_config_error(runner, tmp_path):
    actions = RecordingActions()
    result = invoke(runner, ["--copy-file"], actions, tmp_path)

    assert result.exit_code == EXIT_CONFIG_ERROR
    assert actions.invoked == []


def test_copy_file_copies_single_test_file(runner, project, config, extension):
    executor = RecordingExecutor()
    tasks = Tasks(config, extension, executor)
    old = project / "site" / "custom" / "Espo" / "Modules" / "MyModule" / "Old.php"
    old.parent.mkdir(parents=True)
    old.write_text("old", encoding="utf-8")
    (project / "tests").mkdir()
    (project / "tests" / "Foo.php").write_text("<?php\n", encoding="utf-8")

    result = invoke(runner, ["--copy-file", "--file=tests/Foo.php"], tasks, project)

    assert result.exit_code == 0, result.output
    assert (project / "site" / "tests" / "Foo.php").exists()
    assert old.exists()
    assert executor.calls == []


def test_held_lock_is_config_error(runner, tmp_path):
    (tmp_path / LOCK_NAME).write_text("999", encoding="utf-8")
    actions = RecordingActions()

    result = invoke(runner, ["--rebuild"], actions, tmp_path)

    assert result.exit_code == EXIT_CONFIG_ERROR
    assert actions.invoked == []


def test_no_lock_flag(runner, tmp_path):
    (tmp_path / LOCK_NAME).write_text("999", encoding="utf-8")
    actions = RecordingActions()

    result = invoke(runner, ["--rebuild", "--no-lock"], actions, tmp_path)

    assert result.exit_code == 0
    assert actions.invoked == ["rebuild"]


def test_missing_config_is_config_error(runner, tmp_path):
    result = runner.invoke(cli, ["--rebuild"], obj={"cwd": str(tmp_path)})
    assert result.exit_code == EXIT_CONFIG_ERROR


def test_config_loaded_from_cwd(runner, project, monkeypatch):
    calls = []
    monkeypatch.setattr(Tasks, "rebuild", lambda self, ctx: calls.append((ctx.branch, self.extension.module)))

    result = runner.invoke(cli, ["--rebuild"], obj={"cwd": str(project)})

    assert result.exit_code == 0, result.output
    assert calls == [("master", "MyModule")]


def test_extension_without_version_changes_nothing(runner, project, config, extension):
    (project / "package.json").unlink()
    executor = RecordingExecutor()
    tasks = Tasks(config, extension.model_copy(update={"scripts": ["echo hi"]}), executor)

    result = invoke(runner, ["--extension"], tasks, project)

    assert result.exit_code == EXIT_CONFIG_ERROR
    assert executor.calls == []
    assert not (project / "build").exists()
