"""Tests for the lfsync.cli.track module."""

from pathlib import Path

from click.testing import CliRunner

from lfsync.cli import cli


class TestTrack:
    """track appends patterns to .gitattributes."""

    def test_track(self, tmp_path: Path):
        result = CliRunner().invoke(cli, ["track", "-C", str(tmp_path), "*.psd", "*.bin"])
        assert result.exit_code == 0, result.output
        assert "Tracking *.psd" in result.output
        lines = (tmp_path / ".gitattributes").read_text().splitlines()
        assert [line.split()[0] for line in lines] == ["*.psd", "*.bin"]

    def test_track_twice(self, tmp_path: Path):
        runner = CliRunner()
        runner.invoke(cli, ["track", "-C", str(tmp_path), "*.psd"])
        result = runner.invoke(cli, ["track", "-C", str(tmp_path), "*.psd"])
        assert result.exit_code == 0
        assert "already tracked" in result.output

    def test_requires_pattern(self, tmp_path: Path):
        result = CliRunner().invoke(cli, ["track", "-C", str(tmp_path)])
        assert result.exit_code == 2

    def test_invalid_pattern(self, tmp_path: Path):
        result = CliRunner().invoke(cli, ["track", "-C", str(tmp_path), " "])
        assert result.exit_code == 2


class TestUntrack:
    """untrack removes patterns from .gitattributes."""

    def test_untrack(self, tmp_path: Path):
        runner = CliRunner()
        runner.invoke(cli, ["track", "-C", str(tmp_path), "*.psd", "*.bin"])
        result = runner.invoke(cli, ["untrack", "-C", str(tmp_path), "*.psd"])
        assert result.exit_code == 0
        assert "Untracking *.psd" in result.output
        assert (tmp_path / ".gitattributes").read_text().split()[0] == "*.bin"

    def test_untrack_unknown(self, tmp_path: Path):
        result = CliRunner().invoke(cli, ["untrack", "-C", str(tmp_path), "*.psd"])
        assert result.exit_code == 0
        assert "was not tracked" in result.output
