from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from bartender.exceptions import SourceError, SourceRuntimeFailure, SourceStartupFailure
from bartender.models import TimerConfig
from bartender.sources.timer import Timer, first_tick_delay, next_tick_index


@dataclass
class RecordingContext:
    key: str = "t"
    updates: list[str] = field(default_factory=list)
    errors: list[SourceError] = field(default_factory=list)

    def update(self, value: str) -> None:
        self.updates.append(value)

    def report(self, error: SourceError) -> None:
        self.errors.append(error)


def _timer(command: str | list[str], *, interval: float = 60.0, align: bool = False, **kwargs: object) -> Timer:
    config = TimerConfig(key="t", command=command, interval=interval, align=align)
    return Timer(config, **kwargs)  # type: ignore[arg-type]


def test_unaligned_timer_ticks_immediately() -> None:
    assert first_tick_delay(60.0, False, 1_000_017.25) == 0.0


@pytest.mark.parametrize("offset", [0.001, 17.25, 42.0, 59.999])
def test_aligned_minute_timer_fires_on_next_minute_boundary(offset: float) -> None:
    now = 60.0 * 28_000_000 + offset
    delay = first_tick_delay(60.0, True, now)

    assert 0 < delay <= 60.0
    assert now + delay == pytest.approx(60.0 * 28_000_001, abs=1.0)


def test_aligned_timer_on_boundary_fires_now() -> None:
    assert first_tick_delay(60.0, True, 60.0 * 1000) == 0.0


def test_next_tick_skips_slots_missed_by_slow_commands() -> None:
    # Finished within its slot: next slot.
    assert next_tick_index(0, 0.5, 10.0) == 1
    # Took 25s on a 10s timer started at the anchor: slots 1 and 2 passed.
    assert next_tick_index(0, 25.0, 10.0) == 3
    # Still anchored: tick 3 ran at 30s and took 1s.
    assert next_tick_index(3, 31.0, 10.0) == 4


class _FakeClocks:
    """Wall and monotonic clocks that only move when the timer sleeps or runs."""

    def __init__(self, wall: float, monotonic: float) -> None:
        self.wall_start = wall
        self.mono_start = monotonic
        self.elapsed = 0.0
        self.sleeps: list[float] = []

    def wall(self) -> float:
        return self.wall_start + self.elapsed

    def monotonic(self) -> float:
        return self.mono_start + self.elapsed

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.elapsed += delay
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_run_keeps_ticks_on_the_aligned_grid_and_skips_missed_slots(monkeypatch: pytest.MonkeyPatch) -> None:
    # 10s past a minute boundary: first tick 50s later.
    clocks = _FakeClocks(wall=60.0 * 100 + 10.0, monotonic=500.0)
    timer = _timer(
        "unused",
        interval=60.0,
        align=True,
        clock=clocks.wall,
        monotonic=clocks.monotonic,
        sleep=clocks.sleep,
    )

    durations = iter([1.0, 130.0, 1.0])
    started: list[float] = []
    parked = asyncio.Event()

    async def fake_execute() -> str:
        started.append(clocks.monotonic())
        try:
            clocks.elapsed += next(durations)
        except StopIteration:
            parked.set()
            await asyncio.Event().wait()
        return str(len(started))

    monkeypatch.setattr(timer, "execute", fake_execute)
    context = RecordingContext()
    task = asyncio.create_task(timer.run(context))
    try:
        await asyncio.wait_for(parked.wait(), 1.0)
    finally:
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    anchor = 550.0
    # The 130s run on tick 1 overran the slots of ticks 2 and 3.
    assert started == [anchor, anchor + 60, anchor + 4 * 60, anchor + 5 * 60]
    assert clocks.sleeps == [50.0, 59.0, 50.0, 59.0]
    assert context.updates == ["1", "2", "3"]


@pytest.mark.asyncio
async def test_execute_returns_single_line_output() -> None:
    timer = _timer("printf 'a\\nb\\n\\n'")
    assert await timer.execute() == "ab"


@pytest.mark.asyncio
async def test_execute_accepts_argv_commands() -> None:
    timer = _timer(["echo", "hello world"])
    assert await timer.execute() == "hello world"


@pytest.mark.asyncio
async def test_execute_non_zero_exit_is_runtime_failure() -> None:
    timer = _timer("echo out; echo oops >&2; exit 3")
    with pytest.raises(SourceRuntimeFailure, match="exited with code 3: oops") as info:
        await timer.execute()
    assert info.value.returncode == 3
    assert info.value.key == "t"


@pytest.mark.asyncio
async def test_execute_times_out_and_kills_command() -> None:
    timer = _timer("sleep 5", timeout=0.2)
    with pytest.raises(SourceRuntimeFailure, match="timed out"):
        await asyncio.wait_for(timer.execute(), 3.0)


@pytest.mark.asyncio
async def test_execute_unspawnable_command_is_startup_failure() -> None:
    timer = _timer(["/nonexistent/bartender-test-command"])
    with pytest.raises(SourceStartupFailure):
        await timer.execute()


@pytest.mark.asyncio
async def test_run_keeps_ticking_after_failures(tmp_path: Path) -> None:
    counter = tmp_path / "n"
    # Tick 1 prints 1, tick 2 fails, later ticks print their number.
    script = f'n=$(cat {counter} 2>/dev/null || echo 0); n=$((n+1)); echo $n > {counter}; [ $n -eq 2 ] && exit 1; echo $n'
    timer = _timer(script, interval=0.05)
    context = RecordingContext()

    task = asyncio.create_task(timer.run(context))
    try:
        for _ in range(200):
            if len(context.updates) >= 2:
                break
            await asyncio.sleep(0.01)
    finally:
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    assert context.updates[:2] == ["1", "3"]
    assert len(context.errors) >= 1
    assert isinstance(context.errors[0], SourceRuntimeFailure)
