"""CLI parser and entrypoint behaviour tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import List

import pytest

from repospider import cli
from repospider.cli import _build_parser
from repospider.commands import SpiderRequest
from repospider.errors import EnumerationError
from repospider.models import SpiderFailure, SpiderSummary


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "local", "."])
    assert args.verbose is True
    assert args.command == "local"


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["github", "--owner", "acme", "--verbose"])
    assert args.verbose is True
    assert args.command == "github"


def test_cli_github_options() -> None:
    parser = _build_parser()
    args = parser.parse_args(
        [
            "github",
            "--owner",
            "acme",
            "--search",
            "widget",
            "--clone-under",
            "/tmp/clones",
            "--workspace",
            "team",
            "--update",
            "--pool-size",
            "4",
            "--extractor",
            "language",
            "--extractor",
            "stack",
        ]
    )
    assert args.owner == "acme"
    assert args.search == "widget"
    assert args.clone_under == Path("/tmp/clones")
    assert args.workspace_id == "team"
    assert args.update is True
    assert args.pool_size == 4
    assert args.extractors == ["language", "stack"]


def test_cli_local_directory_defaults_to_cwd() -> None:
    args = _build_parser().parse_args(["local"])
    assert args.directory == Path(".")
    assert args.update is False


def test_main_prints_summary_json(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    requests: List[SpiderRequest] = []

    async def fake_run_spider(request: SpiderRequest, *, config=None) -> SpiderSummary:
        requests.append(request)
        return SpiderSummary(
            repositories_detected=1,
            failed=[SpiderFailure("https://home", "clone", "cannot clone")],
        )

    monkeypatch.setattr(cli, "run_spider", fake_run_spider)

    cli.main(["local", str(tmp_path), "--config", str(tmp_path), "--workspace", "w1"])

    output = json.loads(capsys.readouterr().out)
    assert output["repositoriesDetected"] == 1
    assert output["failed"] == [
        {"repoUrl": "https://home", "whileTryingTo": "clone", "message": "cannot clone"}
    ]
    assert requests[0].source == "local"
    assert requests[0].local_directory == tmp_path
    assert requests[0].workspace_id == "w1"


def test_main_exits_nonzero_on_enumeration_error(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    async def failing_run_spider(request: SpiderRequest, *, config=None) -> SpiderSummary:
        raise EnumerationError("GitHub search failed after retries")

    monkeypatch.setattr(cli, "run_spider", failing_run_spider)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["github", "--owner", "acme", "--config", str(tmp_path)])

    assert excinfo.value.code == 1


def test_main_exits_nonzero_on_bad_config(tmp_path: Path) -> None:
    (tmp_path / ".repospider.yml").write_text("- not a mapping\n", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["local", str(tmp_path), "--config", str(tmp_path)])

    assert excinfo.value.code == 1


def test_github_requires_owner_or_query(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["github", "--config", str(tmp_path)])

    assert excinfo.value.code == 1
