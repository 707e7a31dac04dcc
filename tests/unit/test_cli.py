from __future__ import annotations

from pathlib import Path

import pytest

from hookscan.checkpoint import CheckpointFile, ScanState
from hookscan.cli import main
from hookscan.storage import ChunkStore

from fakes import HOOK_A, HOOK_B


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    for name in ("GITHUB_TOKEN", "HOOKSCAN_DATA_DIR", "HOOKSCAN_PAGES"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOOKSCAN_LOG_FILE", "")
    return tmp_path


def test_count_and_chunks(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    ChunkStore(workdir / "data").save([HOOK_A, HOOK_B, HOOK_A])

    assert main(["count"]) == 0
    assert main(["chunks"]) == 0

    out = capsys.readouterr().out
    assert "Total webhooks: 2" in out
    assert "Available chunks: 1" in out


def test_data_dir_flag(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--data-dir", "elsewhere", "chunks"]) == 0

    assert "No chunks available." in capsys.readouterr().out


def test_reset_removes_checkpoint(workdir: Path) -> None:
    checkpoint = CheckpointFile(workdir / "data" / "scan_state.json")
    checkpoint.persist(ScanState(query_index=1))

    assert main(["reset"]) == 0
    assert not checkpoint.path.exists()


def test_scan_without_token_exits_nonzero(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--env-file", str(workdir / "missing.env"), "scan"]) == 1

    assert "GITHUB_TOKEN" in capsys.readouterr().out


def test_notify_rejects_unknown_chunk(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    ChunkStore(workdir / "data").save([HOOK_A])

    assert main(["notify", "--chunk", "5", "--message", "hi"]) == 1
    assert "Invalid chunk number." in capsys.readouterr().out


def test_bad_environment_value(workdir: Path, monkeypatch: pytest.MonkeyPatch,
                               capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setenv("HOOKSCAN_PAGES", "lots")

    assert main(["count"]) == 1
    assert "HOOKSCAN_PAGES" in capsys.readouterr().out
