from __future__ import annotations

from pathlib import Path

import pytest

from bartender.cli import main


def _config(tmp_path: Path, template: str) -> Path:
    path = tmp_path / "bartenderrc"
    path.write_text(
        f"format = '{template}'\n[fifos.mail]\nfifo_path = '{tmp_path / 'mail'}'\ndefault = 'x'\n",
        encoding="utf-8",
    )
    return path


def test_check_accepts_a_valid_config(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = _config(tmp_path, "mail: {{mail}}")

    assert main(["-c", str(path), "--check"]) == 0
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "is valid (1 source(s))" in captured.err
    # Checking never starts sources.
    assert not (tmp_path / "mail").exists()


def test_check_uses_bartender_config_env(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("BARTENDER_CONFIG", str(_config(tmp_path, "{{mail}}")))

    assert main(["--check"]) == 0
    assert "is valid" in capsys.readouterr().err


def test_malformed_template_exits_with_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = _config(tmp_path, "{{#mail}}unclosed")

    assert main(["-c", str(path), "--check"]) == 1
    err = capsys.readouterr().err
    assert err.startswith("bartender: malformed template")


def test_missing_config_exits_with_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["-c", str(tmp_path / "missing")]) == 1
    assert "bartender: cannot read" in capsys.readouterr().err


def test_verbose_and_quiet_are_exclusive() -> None:
    with pytest.raises(SystemExit) as info:
        main(["-v", "-q", "--check"])
    assert info.value.code == 2
