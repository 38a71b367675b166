"""
CLI interface tests for grml-changelog.
Tests the command-line interface and main entry points.
"""

import json
from unittest.mock import patch

from click.testing import CliRunner

from conftest import NEW_PACKAGE_LIST, OLD_PACKAGE_LIST, FakeGitRunner
from src.grml_changelog.main import cli


class TestCLIBasics:
    """Test basic CLI functionality."""

    def test_cli_help(self):
        """Test CLI help output."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "grml-changelog" in result.output.lower()

    def test_cli_version(self):
        """Test version display."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "1.0.0" in result.output

    def test_info_command(self):
        """Test info command."""
        runner = CliRunner()
        result = runner.invoke(cli, ["info"])

        assert result.exit_code == 0
        assert "GRML_CHANGELOG_GIT_URL_BASE" in result.output

    def test_invalid_command(self):
        """Test handling of invalid commands."""
        runner = CliRunner()
        result = runner.invoke(cli, ["invalid-command"])

        assert result.exit_code != 0


class TestGenerateCommand:
    """Test the generate command."""

    def test_generate_changelog(self, workspace, fake_runner):
        """Test generating a changelog from the CLI."""
        runner = CliRunner()
        with patch(
            "src.grml_changelog.git_mirror.SubprocessRunner", return_value=fake_runner
        ):
            result = runner.invoke(
                cli,
                [
                    "generate",
                    str(workspace),
                    "--package-prefix",
                    "grml-",
                    "--git-url-base",
                    "git://git.grml.org",
                    "--job-name",
                    "grml64",
                    "--build-id",
                    "42",
                ],
            )

        assert result.exit_code == 0, result.output
        changelog = (workspace / "changelog.txt").read_text(encoding="utf-8")
        assert "grml64 42" in changelog
        assert "grml-etc-core v0.19.1..v0.19.2" in changelog
        assert ("git", "log", "--oneline", "v0.3") in fake_runner.commands()

    def test_job_identity_from_environment(self, workspace):
        """Test job identity from JOB_NAME and BUILD_ID."""
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["generate", str(workspace), "--package-prefix", "no-match-", "--quiet"],
            env={"JOB_NAME": "nightly", "BUILD_ID": "2024-01-01_00-00-00"},
        )

        assert result.exit_code == 0, result.output
        changelog = (workspace / "changelog.txt").read_text(encoding="utf-8")
        assert "nightly 2024-01-01_00-00-00\n" in changelog

    def test_custom_output_name(self, workspace):
        """Test the output file name option."""
        runner = CliRunner()
        result = runner.invoke(
            cli,
            [
                "generate",
                str(workspace),
                "--package-prefix",
                "no-match-",
                "-o",
                "changes.txt",
                "--quiet",
            ],
        )

        assert result.exit_code == 0, result.output
        assert (workspace / "changes.txt").exists()
        assert not (workspace / "changelog.txt").exists()

    def test_missing_package_list(self, temp_dir):
        """Test that a missing package list is fatal."""
        runner = CliRunner()
        result = runner.invoke(cli, ["generate", str(temp_dir), "--quiet"])

        assert result.exit_code == 1
        assert not (temp_dir / "changelog.txt").exists()

    def test_git_failure_exit_code(self, workspace):
        """Test exit code on git failure."""
        failing_runner = FakeGitRunner(failures={("git", "clone"): 128})
        runner = CliRunner()
        with patch(
            "src.grml_changelog.git_mirror.SubprocessRunner", return_value=failing_runner
        ):
            result = runner.invoke(
                cli,
                [
                    "generate",
                    str(workspace),
                    "--package-prefix",
                    "grml-",
                    "--git-url-base",
                    "git://git.grml.org",
                ],
            )

        assert result.exit_code == 1
        assert not (workspace / "changelog.txt").exists()

    def test_nonexistent_workspace(self):
        """Test a workspace that does not exist."""
        runner = CliRunner()
        result = runner.invoke(cli, ["generate", "does-not-exist"])

        assert result.exit_code != 0
        assert "does not exist" in result.output.lower()

    def test_invalid_timeout(self, workspace):
        """Test a non-numeric timeout option."""
        runner = CliRunner()
        result = runner.invoke(cli, ["generate", str(workspace), "--timeout", "soon"])

        assert result.exit_code != 0


    def test_unusable_mirror_directory(self, workspace):
        """Test the error message when the mirror directory cannot be created."""
        (workspace / "packages").write_text("not a directory", encoding="utf-8")

        runner = CliRunner()
        result = runner.invoke(
            cli, ["generate", str(workspace), "--quiet", "--package-prefix", "no-match-"]
        )

        assert result.exit_code == 1
        assert not isinstance(result.exception, OSError)
        assert "Error creating mirror directory" in result.output
        assert not (workspace / "changelog.txt").exists()


class TestDiffCommand:
    """Test the diff command."""

    def test_diff_json_output(self, temp_dir):
        """Test diff JSON output."""
        new_list = temp_dir / "dpkg.list"
        old_list = temp_dir / "dpkg.list.old"
        new_list.write_text(NEW_PACKAGE_LIST, encoding="utf-8")
        old_list.write_text(OLD_PACKAGE_LIST, encoding="utf-8")

        runner = CliRunner()
        result = runner.invoke(
            cli,
            [
                "diff",
                str(new_list),
                str(old_list),
                "--package-prefix",
                "grml-",
                "--output-format",
                "json",
            ],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["tracked_removals"] == ["grml-old-tool"]
        assert data["tracked_changes"][0]["revision_range"] == "v0.19.1..v0.19.2"
        assert data["generic"]["removed"] == ["libfoo1"]

    def test_diff_without_old_list(self, temp_dir):
        """Test diff without an old package list."""
        new_list = temp_dir / "dpkg.list"
        new_list.write_text(NEW_PACKAGE_LIST, encoding="utf-8")

        runner = CliRunner()
        result = runner.invoke(
            cli, ["diff", str(new_list), "--output-format", "json"]
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert len(data["tracked_changes"]) == 6
        assert data["generic"]["added"] == []

    def test_diff_console_output(self, temp_dir):
        """Test diff console output for identical lists."""
        new_list = temp_dir / "dpkg.list"
        new_list.write_text(NEW_PACKAGE_LIST, encoding="utf-8")

        runner = CliRunner()
        result = runner.invoke(
            cli, ["diff", str(new_list), str(new_list), "--package-prefix", "grml-"]
        )

        assert result.exit_code == 0
        assert "identical" in result.output


    def test_diff_empty_prefix_warning(self, temp_dir):
        """Test the empty prefix warning of the diff command."""
        new_list = temp_dir / "dpkg.list"
        new_list.write_text(NEW_PACKAGE_LIST, encoding="utf-8")

        runner = CliRunner()
        result = runner.invoke(cli, ["diff", str(new_list)])

        assert result.exit_code == 0
        assert "every package is tracked" in result.output

    def test_diff_json_warnings(self, temp_dir):
        """Test warnings in diff JSON output."""
        new_list = temp_dir / "dpkg.list"
        new_list.write_text(NEW_PACKAGE_LIST, encoding="utf-8")

        runner = CliRunner()
        tracked = runner.invoke(
            cli, ["diff", str(new_list), "--package-prefix", "grml-", "--output-format", "json"]
        )
        untracked = runner.invoke(cli, ["diff", str(new_list), "--output-format", "json"])

        assert json.loads(tracked.output)["warnings"] == []
        assert len(json.loads(untracked.output)["warnings"]) == 1


class TestConfigCommands:
    """Test configuration management commands."""

    def test_config_init(self, temp_dir):
        """Test config file creation."""
        config_file = temp_dir / "grml-changelog.toml"

        runner = CliRunner()
        result = runner.invoke(cli, ["config", "init", "--path", str(config_file)])

        assert result.exit_code == 0
        assert config_file.exists()
        assert "[changelog]" in config_file.read_text(encoding="utf-8")

    def test_config_show(self):
        """Test showing the effective configuration."""
        runner = CliRunner()
        result = runner.invoke(cli, ["config", "show"])

        assert result.exit_code == 0
        assert "output_filename" in result.output

    def test_config_validate_valid_file(self, temp_dir):
        """Test validation of a valid config file."""
        config_file = temp_dir / "valid.json"
        config_file.write_text(
            json.dumps({"package_prefix": "grml-", "git_url_base": "git://git.grml.org"})
        )

        runner = CliRunner()
        result = runner.invoke(cli, ["config", "validate", str(config_file)])

        assert result.exit_code == 0
        assert "valid" in result.output.lower()

    def test_config_validate_invalid_file(self, temp_dir):
        """Test validation of an unparsable config file."""
        config_file = temp_dir / "invalid.json"
        config_file.write_text("invalid json content")

        runner = CliRunner()
        result = runner.invoke(cli, ["config", "validate", str(config_file)])

        assert result.exit_code == 1

    def test_config_validate_invalid_values(self, temp_dir):
        """Test validation of invalid config values."""
        config_file = temp_dir / "invalid.toml"
        config_file.write_text("command_timeout_seconds = -1\n")

        runner = CliRunner()
        result = runner.invoke(cli, ["config", "validate", str(config_file)])

        assert result.exit_code == 1
