from __future__ import annotations

from pathlib import Path

import pytest

from bartender.config import BartenderConfig, resolve_config_path
from bartender.exceptions import BartenderConfigError
from bartender.models import FifoConfig, ProcessConfig, TimerConfig

_SAMPLE = """
format = '''
{{time}} |
{{#mail}}{{mail}}{{/mail}}{{^mail}}-{{/mail}}
'''

[settings]
command_timeout = 5
backoff_max = 30

[timers.time]
command = "date +%H:%M"
minutes = 1
align = true

[fifos.mail]
fifo_path = "~/.bartender/mail"
default = "x"

[processes.volume]
command = ["pactl", "subscribe"]
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "bartenderrc"
    path.write_text(text, encoding="utf-8")
    return path


def test_from_file_parses_all_source_tables(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    config = BartenderConfig.from_file(_write(tmp_path, _SAMPLE))

    assert config.format == "{{time}} |{{#mail}}{{mail}}{{/mail}}{{^mail}}-{{/mail}}"
    assert config.command_timeout == 5
    assert config.backoff.maximum == 30
    assert config.keys == ("time", "mail", "volume")

    timer, fifo, process = config.sources
    assert isinstance(timer, TimerConfig)
    assert timer.interval == 60
    assert timer.align is True
    assert isinstance(fifo, FifoConfig)
    assert fifo.path == tmp_path / ".bartender" / "mail"
    assert fifo.default == "x"
    assert fifo.create is True
    assert isinstance(process, ProcessConfig)
    assert process.command == ("pactl", "subscribe")


def test_timer_period_parts_are_summed() -> None:
    timer = TimerConfig.model_validate({"key": "t", "command": "true", "seconds": 30, "minutes": 1, "hours": 1})
    assert timer.interval == 3690


@pytest.mark.parametrize(
    ("table", "message"),
    [
        ('[timers.t]\ncommand = "true"\nseconds = 0', "positive period"),
        ("[timers.t]\nseconds = 5", "command"),
        ("[fifos.f]\ndefault = 'x'", "fifo_path"),
        ('[processes.p]\ncommand = "x"\nbogus = 1', "bogus"),
        ('[processes."a.b"]\ncommand = "x"', "may only contain"),
        ('[processes.p]\ncommand = ""', "non-empty"),
    ],
)
def test_invalid_sources_are_reported(tmp_path: Path, table: str, message: str) -> None:
    path = _write(tmp_path, f'format = "x"\n{table}\n')
    with pytest.raises(BartenderConfigError, match=message):
        BartenderConfig.from_file(path)


def test_duplicate_keys_across_tables_are_rejected(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        'format = "{{a}}"\n[timers.a]\ncommand = "true"\nseconds = 1\n[fifos.a]\nfifo_path = "/tmp/a"\n',
    )
    with pytest.raises(BartenderConfigError, match="duplicate"):
        BartenderConfig.from_file(path)


def test_missing_format_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(BartenderConfigError, match="format"):
        BartenderConfig.from_file(_write(tmp_path, "[timers]\n"))


def test_unreadable_and_malformed_files(tmp_path: Path) -> None:
    with pytest.raises(BartenderConfigError, match="cannot read"):
        BartenderConfig.from_file(tmp_path / "missing")
    with pytest.raises(BartenderConfigError, match="parsing"):
        BartenderConfig.from_file(_write(tmp_path, "format = \n"))


def test_env_overrides_settings_and_explicit_overrides_win(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write(tmp_path, 'format = "x"\n[settings]\ncommand_timeout = 5\nbackoff_initial = 2\n')
    monkeypatch.setenv("BARTENDER_COMMAND_TIMEOUT", "7.5")
    monkeypatch.setenv("BARTENDER_BACKOFF_INITIAL", "3")

    config = BartenderConfig.from_file(path, backoff_initial=0.5)
    assert config.command_timeout == 7.5
    assert config.backoff_initial == 0.5

    monkeypatch.setenv("BARTENDER_BACKOFF_MAX", "soon")
    with pytest.raises(BartenderConfigError, match="BARTENDER_BACKOFF_MAX"):
        BartenderConfig.from_file(path)


def test_resolve_config_path_precedence(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("BARTENDER_CONFIG", raising=False)
    assert resolve_config_path() == tmp_path / ".bartenderrc"

    monkeypatch.setenv("BARTENDER_CONFIG", "~/conf.toml")
    assert resolve_config_path() == tmp_path / "conf.toml"
    assert resolve_config_path("/etc/bar.toml") == Path("/etc/bar.toml")
