"""ShellExecutor against the host shell."""

import os
import sys

import pytest

from pipegate.executor import ExecResult, ShellExecutor, shell_argv

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX sh")


@posix_only
class TestShellExecutor:
    def test_captures_output(self, tmp_path):
        result = ShellExecutor().execute("echo hello", shell=None, env=dict(os.environ), cwd=tmp_path)
        assert result.exit_code == 0
        assert result.stdout.strip() == "hello"

    def test_exit_code(self, tmp_path):
        result = ShellExecutor().execute("exit 4", shell=None, env=dict(os.environ), cwd=tmp_path)
        assert result.exit_code == 4

    def test_env_and_cwd(self, tmp_path):
        env = dict(os.environ, GREETING="hi")
        result = ShellExecutor().execute('echo "$GREETING" && pwd', shell=None, env=env, cwd=tmp_path)
        lines = result.stdout.splitlines()
        assert lines[0] == "hi"
        assert os.path.realpath(lines[1]) == os.path.realpath(tmp_path)

    def test_undecodable_output_is_replaced(self, tmp_path):
        result = ShellExecutor().execute("printf '\\377\\376ok'", shell=None, env=dict(os.environ), cwd=tmp_path)
        assert result.exit_code == 0
        assert result.stdout.endswith("ok")
        assert "\ufffd" in result.stdout

    def test_bash_pipefail(self, tmp_path):
        result = ShellExecutor().execute("false | true", shell="bash", env=dict(os.environ), cwd=tmp_path)
        assert result.exit_code != 0


class TestShellArgv:
    def test_default_shell_is_string(self):
        assert shell_argv("echo hi", None) == "echo hi"

    def test_pwsh(self):
        argv = shell_argv("Write-Host hi", "pwsh")
        assert argv[0] == "pwsh"
        assert "-Command" in argv
        assert "Write-Host hi" in argv[-1]

    def test_unsupported(self):
        with pytest.raises(ValueError, match="Unsupported shell"):
            shell_argv("x", "fish")


def test_tail_keeps_last_lines():
    result = ExecResult(exit_code=1, stdout="\n".join(str(i) for i in range(50)), stderr="err")
    tail = result.tail(3).splitlines()
    assert tail == ["48", "49", "err"]


def test_tail_masks_before_cutting():
    # a secret spanning the cut would otherwise leave its second half visible
    secret = "s3cr3t\nvalue-tail"
    result = ExecResult(exit_code=1, stdout=f"token {secret}\nlast")
    tail = result.tail(2, secret_values=[secret])
    assert tail.splitlines() == ["token ***", "last"]
    assert "value-tail" not in result.tail(2, secret_values=[secret])
