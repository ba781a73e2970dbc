"""Unit tests for CommandRunner."""

import subprocess
from unittest.mock import Mock, patch

import pytest

from cf_tunnel.common.exceptions import BinaryNotFoundError, ProcessError
from cf_tunnel.common.process import CommandResult, CommandRunner


class TestCommandResult:
    """Test CommandResult helpers."""

    def test_ok(self):
        assert CommandResult(args=("true",), returncode=0).ok
        assert not CommandResult(args=("false",), returncode=1).ok

    def test_output_combines_streams(self):
        result = CommandResult(args=("x",), returncode=1, stdout="out", stderr="err")
        assert result.output == "out\nerr"
        assert CommandResult(args=("x",), returncode=1, stderr="err").output == "err"


class TestCommandRunner:
    """Test cases for CommandRunner."""

    @patch("subprocess.run")
    def test_run_captures_output(self, mock_run):
        mock_run.return_value = Mock(returncode=0, stdout="cloudflared\n", stderr="")

        result = CommandRunner(timeout=10).run(["docker", "ps"])

        assert result.ok
        assert result.stdout == "cloudflared\n"
        assert result.args == ("docker", "ps")
        mock_run.assert_called_once_with(
            ["docker", "ps"], capture_output=True, text=True, check=False, timeout=10
        )

    @patch("subprocess.run")
    def test_non_zero_exit_is_returned(self, mock_run):
        mock_run.return_value = Mock(returncode=2, stdout="", stderr="boom")

        result = CommandRunner().run(["systemctl", "start", "x"])

        assert result.returncode == 2
        assert result.stderr == "boom"

    @patch("subprocess.run")
    def test_interactive_disables_capture_and_timeout(self, mock_run):
        mock_run.return_value = Mock(returncode=0, stdout=None, stderr=None)

        result = CommandRunner(timeout=5).run(["cloudflared", "tunnel", "login"], interactive=True)

        assert result.stdout == ""
        _, kwargs = mock_run.call_args
        assert kwargs["capture_output"] is False
        assert kwargs["timeout"] is None

    @patch("subprocess.run", side_effect=FileNotFoundError("no such file"))
    def test_missing_binary(self, mock_run):
        with pytest.raises(BinaryNotFoundError, match="docker"):
            CommandRunner().run(["docker", "ps"])

    @patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="docker", timeout=1))
    def test_timeout(self, mock_run):
        with pytest.raises(ProcessError, match="timed out"):
            CommandRunner(timeout=1).run(["docker", "pull", "image"])

    @patch("subprocess.run", side_effect=PermissionError("denied"))
    def test_os_error(self, mock_run):
        with pytest.raises(ProcessError, match="Failed to execute"):
            CommandRunner().run(["/usr/local/bin/cloudflared"])
