"""Tests for compensating rollback."""

from __future__ import annotations

import pytest

from packages.pbx_shared.saga import Saga


def test_compensate_runs_undos_newest_first() -> None:
    calls: list[str] = []
    saga = Saga("create_user")
    saga.record("pbx_endpoint", lambda: calls.append("pbx_endpoint"))
    saga.record("user_row", lambda: calls.append("user_row"))

    report = saga.compensate()

    assert calls == ["user_row", "pbx_endpoint"]
    assert report.undone == ("user_row", "pbx_endpoint")
    assert report.clean


def test_failing_undo_does_not_stop_the_rest(caplog) -> None:
    calls: list[str] = []

    def broken() -> None:
        raise RuntimeError("pbx gone")

    saga = Saga("create_trunk")
    saga.record("pbx_trunk", lambda: calls.append("pbx_trunk"))
    saga.record("trunk_row", broken)

    report = saga.compensate()

    assert calls == ["pbx_trunk"]
    assert report.failed == ("trunk_row",)
    assert not report.clean
    assert "Saga undo failed" in caplog.text


def test_compensation_happens_once() -> None:
    calls: list[str] = []
    saga = Saga("create_user")
    saga.record("step", lambda: calls.append("step"))

    saga.compensate()
    second = saga.compensate()

    assert calls == ["step"]
    assert second.undone == ()


def test_no_steps_can_be_recorded_after_compensation() -> None:
    saga = Saga("create_user")
    saga.compensate()

    with pytest.raises(RuntimeError, match="already compensated"):
        saga.record("late", lambda: None)


def test_completed_lists_recorded_steps_in_order() -> None:
    saga = Saga("update_user")
    saga.record("endpoints", lambda: None)
    saga.record("user_row", lambda: None)

    assert saga.completed == ("endpoints", "user_row")
