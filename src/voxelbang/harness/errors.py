"""Failure taxonomy for scenario runs.

Every failure bubbles up to the scenario boundary; nothing here is retried.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional


class HarnessError(Exception):
    """Base class for all harness failures."""


class ScenarioTimeout(HarnessError, TimeoutError):
    """The scenario-wide wall-clock bound elapsed before the scenario finished."""

    def __init__(self, scenario: str, timeout: float) -> None:
        super().__init__(f"Scenario {scenario!r} did not finish within {timeout:.1f}s")
        self.scenario = scenario
        self.timeout = timeout


class UnexpectedEvent(HarnessError):
    """An exact-set wait received a message outside its expected set."""

    def __init__(self, received: str, expected: Iterable[str]) -> None:
        self.received = received
        self.expected = tuple(sorted(expected))
        super().__init__(
            f"Received {received!r}, expected to receive one of {list(self.expected)}"
        )


class DuplicateEvent(HarnessError):
    """An exact-set wait received an already-satisfied message a second time."""

    def __init__(self, received: str) -> None:
        self.received = received
        super().__init__(f"Received {received!r} two times")


class AssertionMismatch(HarnessError, AssertionError):
    """An observed value differs from the expected one."""

    def __init__(self, label: str, actual: Any, expected: Any, detail: Optional[str] = None) -> None:
        self.label = label
        self.actual = actual
        self.expected = expected
        message = f"{label}: expected {expected!r}, got {actual!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class SetupFailure(HarnessError):
    """The server never reached LISTENING or a client never reached LOGIN."""

    def __init__(self, stage: str, detail: str) -> None:
        self.stage = stage
        self.detail = detail
        super().__init__(f"Scenario setup failed during {stage}: {detail}")
