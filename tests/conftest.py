"""
Shared fixtures for grml-changelog tests.
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from src.grml_changelog.git_mirror import CommandResult, CommandRunner

OLD_PACKAGE_LIST = """Desired=Unknown/Install/Remove/Purge/Hold
| Status=Not/Inst/Conf-files/Unpacked/halF-conf/Half-inst/trig-aWait/Trig-pend
|/ Err?=(none)/Reinst-required (Status,Err: uppercase=bad)
||/ Name                 Version          Architecture Description
+++-====================-================-============-=================================
ii  bash                 5.2.15-2+b2      amd64        GNU Bourne Again SHell
ii  grml-etc-core        0.19.1           all          core configuration files for grml
ii  grml-scripts         2.12.3           all          various scripts for grml
ii  grml-old-tool        0.1              all          tool that is going away
ii  libfoo1              1.0-1            amd64        foo library
ii  vim                  2:9.0.1378-2     amd64        Vi IMproved
"""

NEW_PACKAGE_LIST = """Desired=Unknown/Install/Remove/Purge/Hold
| Status=Not/Inst/Conf-files/Unpacked/halF-conf/Half-inst/trig-aWait/Trig-pend
|/ Err?=(none)/Reinst-required (Status,Err: uppercase=bad)
||/ Name                 Version          Architecture Description
+++-====================-================-============-=================================
ii  bash                 5.2.15-2+b2      amd64        GNU Bourne Again SHell
ii  grml-etc-core        0.19.2           all          core configuration files for grml
ii  grml-scripts         2.12.3           all          various scripts for grml
ii  grml-paste           0.3              all          pastebin client
ii  libbar2              2.0-1            amd64        bar library
ii  vim                  2:9.0.1378-3     amd64        Vi IMproved
rc  removed-config       1.0              amd64        only config files left
"""


class FakeGitRunner(CommandRunner):
    """
    CommandRunner returning canned results per command.

    ``failures`` maps a command prefix to the exit code it should return,
    ``logs`` maps a revision range to the ``git log`` output.
    """

    def __init__(
        self,
        logs: Optional[Dict[str, str]] = None,
        failures: Optional[Dict[Tuple[str, ...], int]] = None,
        create_on_clone: bool = True,
    ):
        self.logs = logs or {}
        self.failures = failures or {}
        self.create_on_clone = create_on_clone
        self.calls: List[Tuple[Tuple[str, ...], Path]] = []

    def run(
        self, args: Sequence[str], cwd: Path, timeout: Optional[float] = None
    ) -> CommandResult:
        args = tuple(args)
        self.calls.append((args, Path(cwd)))

        for prefix, returncode in self.failures.items():
            if args[: len(prefix)] == prefix:
                return CommandResult(returncode, "", f"fatal: {' '.join(args)} failed")

        if args[:3] == ("git", "clone", "--mirror") and self.create_on_clone:
            repo_name = args[3].rstrip("/").rsplit("/", 1)[-1]
            (Path(cwd) / f"{repo_name}.git").mkdir(parents=True)
        if args[:3] == ("git", "log", "--oneline"):
            return CommandResult(0, self.logs.get(args[3], ""), "")
        return CommandResult(0, "", "")

    def commands(self) -> List[Tuple[str, ...]]:
        return [args for args, _ in self.calls]


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path_factory, monkeypatch):
    """Keep user config files and GRML_CHANGELOG_* variables out of tests."""
    home = tmp_path_factory.mktemp("home")
    cwd = tmp_path_factory.mktemp("cwd")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(cwd)
    for env_name in (
        "GRML_CHANGELOG_OUTPUT",
        "GRML_CHANGELOG_OLD_LIST",
        "GRML_CHANGELOG_PACKAGE_PREFIX",
        "GRML_CHANGELOG_GIT_URL_BASE",
        "GRML_CHANGELOG_TIMEOUT",
        "GRML_CHANGELOG_LOG_LEVEL",
        "JOB_NAME",
        "BUILD_ID",
    ):
        monkeypatch.delenv(env_name, raising=False)
    return cwd


@pytest.fixture
def temp_dir(tmp_path):
    return tmp_path


@pytest.fixture
def workspace(tmp_path):
    """A grml-live build workspace with this build's and the last build's lists."""
    ws = tmp_path / "workspace"
    list_dir = ws / "grml_logs" / "fai"
    list_dir.mkdir(parents=True)
    (list_dir / "dpkg.list").write_text(NEW_PACKAGE_LIST, encoding="utf-8")
    (ws / "dpkg.list.old").write_text(OLD_PACKAGE_LIST, encoding="utf-8")
    return ws


@pytest.fixture
def fake_runner():
    return FakeGitRunner(
        logs={
            "v0.19.1..v0.19.2": "abc1234 zshrc: fix prompt\ndef5678 Release new version 0.19.2\n",
            "v0.3": "1234567 Initial release\n",
        }
    )
