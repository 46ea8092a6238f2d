"""
Unit tests for ciboot_tunnel.process module.

subprocess is mocked throughout; no provider binary is needed.
"""

import subprocess
import sys
from unittest.mock import Mock, patch

import pytest

from ciboot_tunnel.process import TunnelProcess, install_command

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="POSIX process handling")


@pytest.fixture
def tunnel_process():
    return TunnelProcess("ngrok")


class TestLaunch:
    """Test suite for TunnelProcess.launch."""

    @posix_only
    @patch("ciboot_tunnel.process.subprocess.Popen")
    def test_launch_is_detached(self, mock_popen, tunnel_process):
        """Test that the provider runs in its own session with no inherited stdio."""
        mock_popen.return_value = Mock(pid=4242)

        tunnel_process.launch(8080)

        args, kwargs = mock_popen.call_args
        assert args[0] == ["ngrok", "http", "8080"]
        assert kwargs["start_new_session"] is True
        assert kwargs["stdin"] == subprocess.DEVNULL
        assert kwargs["stdout"] == subprocess.DEVNULL
        assert kwargs["stderr"] == subprocess.DEVNULL
        assert tunnel_process.pid == 4242

    @patch("ciboot_tunnel.process.subprocess.Popen")
    def test_launch_missing_executable_raises(self, mock_popen, tunnel_process):
        mock_popen.side_effect = FileNotFoundError("ngrok")

        with pytest.raises(OSError):
            tunnel_process.launch(8080)


class TestHealth:
    """Test suite for is_running and stop."""

    @patch("ciboot_tunnel.process.subprocess.Popen")
    def test_running_when_launched_process_alive(self, mock_popen, tunnel_process):
        mock_popen.return_value = Mock(pid=1, poll=Mock(return_value=None))
        tunnel_process.launch(8080)

        assert tunnel_process.is_running() is True

    @posix_only
    @patch("ciboot_tunnel.process.subprocess.run")
    def test_running_detected_by_name(self, mock_run, tunnel_process):
        """Test that a provider started by an earlier run is detected."""
        mock_run.return_value = Mock(returncode=0, stdout="123\n")

        assert tunnel_process.is_running() is True
        assert mock_run.call_args[0][0] == ["pgrep", "-x", "ngrok"]

    @posix_only
    @patch("ciboot_tunnel.process.subprocess.run")
    def test_not_running(self, mock_run, tunnel_process):
        mock_run.return_value = Mock(returncode=1, stdout="")
        assert tunnel_process.is_running() is False

    @posix_only
    @patch("ciboot_tunnel.process.subprocess.run")
    def test_stop_by_name(self, mock_run, tunnel_process):
        mock_run.return_value = Mock(returncode=0)

        assert tunnel_process.stop() is True
        assert mock_run.call_args[0][0] == ["pkill", "-x", "ngrok"]

    @posix_only
    @patch("ciboot_tunnel.process.subprocess.run")
    def test_stop_nothing_running_is_not_an_error(self, mock_run, tunnel_process):
        mock_run.return_value = Mock(returncode=1)
        assert tunnel_process.stop() is False

    @patch("ciboot_tunnel.process.subprocess.run")
    def test_stop_without_pkill(self, mock_run, tunnel_process):
        mock_run.side_effect = FileNotFoundError("pkill")
        assert tunnel_process.stop() is False

    def test_process_name_from_full_path(self):
        assert TunnelProcess("/opt/tools/ngrok").process_name == "ngrok"


class TestAuthentication:
    """Test suite for provider token handling."""

    @patch("ciboot_tunnel.process.subprocess.run")
    def test_add_authtoken_success(self, mock_run, tunnel_process):
        mock_run.return_value = Mock(returncode=0, stderr="")

        assert tunnel_process.add_authtoken("tok") is True
        assert mock_run.call_args[0][0] == ["ngrok", "config", "add-authtoken", "tok"]

    @patch("ciboot_tunnel.process.subprocess.run")
    def test_add_authtoken_rejected(self, mock_run, tunnel_process):
        mock_run.return_value = Mock(returncode=1, stderr="ERR_NGROK_105")
        assert tunnel_process.add_authtoken("tok") is False

    @patch("ciboot_tunnel.process.subprocess.run")
    def test_add_authtoken_missing_executable(self, mock_run, tunnel_process):
        mock_run.side_effect = FileNotFoundError("ngrok")
        assert tunnel_process.add_authtoken("tok") is False

    def test_authenticated_via_environment(self, tunnel_process, monkeypatch):
        monkeypatch.setenv("NGROK_AUTHTOKEN", "tok")
        assert tunnel_process.is_authenticated() is True

    def test_authenticated_via_config_file(self, tunnel_process, monkeypatch, tmp_path):
        monkeypatch.delenv("NGROK_AUTHTOKEN", raising=False)
        config = tmp_path / "ngrok.yml"
        config.write_text('version: "2"\nauthtoken: abc\n')

        with patch("ciboot_tunnel.process.provider_config_paths", return_value=[config]):
            assert tunnel_process.is_authenticated() is True

    def test_not_authenticated(self, tunnel_process, monkeypatch, tmp_path):
        monkeypatch.delenv("NGROK_AUTHTOKEN", raising=False)
        config = tmp_path / "ngrok.yml"
        config.write_text('version: "2"\n')

        with patch(
            "ciboot_tunnel.process.provider_config_paths",
            return_value=[config, tmp_path / "missing.yml"],
        ):
            assert tunnel_process.is_authenticated() is False


class TestInstallCommand:
    @pytest.mark.parametrize(
        "platform, expected",
        [
            ("win32", "winget install --id Ngrok.Ngrok -e"),
            ("darwin", "brew install ngrok"),
            ("linux", "npm install -g ngrok"),
        ],
    )
    def test_per_platform(self, platform, expected):
        with patch("ciboot_tunnel.process.sys.platform", platform):
            assert install_command() == expected
