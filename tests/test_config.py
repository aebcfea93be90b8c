"""Settings and trigger/platform detection."""

from pathlib import Path

import pytest

from pipegate.config import DEFAULT_WORKFLOW, detect_branch, detect_platform, detect_trigger, load_settings
from pipegate.model import Platform, TriggerKind


class TestDetection:
    def test_platform_from_override(self):
        assert detect_platform({"PIPEGATE_PLATFORM": "windows", "RUNNER_OS": "Linux"}) is Platform.WINDOWS

    def test_platform_from_runner_os(self):
        assert detect_platform({"RUNNER_OS": "macOS"}) is Platform.MACOS

    @pytest.mark.parametrize("sys_platform,expected", [
        ("linux", Platform.LINUX),
        ("darwin", Platform.MACOS),
        ("win32", Platform.WINDOWS),
    ])
    def test_platform_from_host(self, sys_platform, expected):
        assert detect_platform({}, sys_platform=sys_platform) is expected

    def test_unknown_host(self):
        with pytest.raises(ValueError, match="PIPEGATE_PLATFORM"):
            detect_platform({}, sys_platform="sunos5")

    def test_unmapped_ci_event_gives_no_trigger(self):
        assert detect_trigger({"GITHUB_EVENT_NAME": "workflow_dispatch"}) is None
        assert detect_trigger({
            "GITHUB_EVENT_NAME": "schedule",
            "PIPEGATE_TRIGGER": "push",
        }) is TriggerKind.PUSH

    def test_bad_explicit_trigger_is_an_error(self):
        with pytest.raises(ValueError):
            detect_trigger({"PIPEGATE_TRIGGER": "nightly"})

    def test_trigger(self):
        assert detect_trigger({}) is TriggerKind.PUSH
        assert detect_trigger({"GITHUB_EVENT_NAME": "pull_request"}) is TriggerKind.PULL_REQUEST
        assert detect_trigger({
            "PIPEGATE_TRIGGER": "workflow_call",
            "GITHUB_EVENT_NAME": "push",
        }) is TriggerKind.WORKFLOW_CALL

    def test_branch_prefers_head_ref(self):
        env = {"GITHUB_HEAD_REF": "feature", "GITHUB_REF_NAME": "12/merge"}
        assert detect_branch(env) == "feature"
        assert detect_branch({"GITHUB_REF_NAME": "main"}) == "main"
        assert detect_branch({}) is None


class TestLoadSettings:
    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        settings = load_settings({"RUNNER_OS": "Linux"})
        assert settings.platform is Platform.LINUX
        assert settings.trigger is TriggerKind.PUSH
        assert settings.workdir == Path(".")
        assert settings.workflow_path is None
        assert settings.max_workers is None
        assert settings.log_level == "WARNING"

    def test_default_workflow_file_is_picked_up(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / DEFAULT_WORKFLOW).write_text("", encoding="utf-8")
        settings = load_settings({"RUNNER_OS": "Linux"})
        assert settings.workflow_path == Path(DEFAULT_WORKFLOW)

    def test_explicit_values(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        settings = load_settings({
            "PIPEGATE_PLATFORM": "windows",
            "PIPEGATE_WORKFLOW": "ci.py",
            "PIPEGATE_WORKDIR": "/src",
            "PIPEGATE_MAX_WORKERS": "2",
            "LOG_LEVEL": "debug",
            "LOG_FORMAT": "JSON",
        })
        assert settings.platform is Platform.WINDOWS
        assert settings.workflow_path == Path("ci.py")
        assert settings.workdir == Path("/src")
        assert settings.max_workers == 2
        assert settings.log_level == "DEBUG"
        assert settings.log_format == "json"

    def test_unmapped_event_does_not_break_settings(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        settings = load_settings({"RUNNER_OS": "Linux", "GITHUB_EVENT_NAME": "pull_request_target"})
        assert settings.trigger is None
        assert settings.event_name == "pull_request_target"
