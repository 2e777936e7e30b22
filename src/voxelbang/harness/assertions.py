"""
Assertion helpers for scenario expectations.

Failures raise :class:`AssertionMismatch` so the runner can tell a wrong
observation apart from a setup or timing problem.
"""

from typing import Any, Optional

from voxelbang.harness.errors import AssertionMismatch
from voxelbang.utils.vec3 import POSITION_TOLERANCE, Vec3, positions_equal


def assert_equal(label: str, actual: Any, expected: Any) -> None:
    """
    Assert that an observed value equals the expected one.

    Args:
        label: What was observed (used in the failure message)
        actual: Observed value
        expected: Expected value

    Raises:
        AssertionMismatch: If the values differ
    """
    if actual != expected:
        raise AssertionMismatch(label, actual, expected)


def assert_pos_equal(
    actual: Vec3,
    expected: Vec3,
    label: str = "position",
    tolerance: float = POSITION_TOLERANCE,
) -> None:
    """
    Assert that two positions are within ``tolerance`` of each other.

    Raises:
        AssertionMismatch: If the distance is ``tolerance`` or more
    """
    if actual is None:
        raise AssertionMismatch(label, actual, expected, "no position known")
    if not positions_equal(actual, expected, tolerance):
        distance = actual.distance_to(expected)
        raise AssertionMismatch(label, actual, expected, f"distance {distance:.3f}")


def assert_block_type(block: Optional[Any], expected_type: int, label: str = "block type") -> None:
    """Assert that ``block`` exists and has block id ``expected_type``."""
    if block is None:
        raise AssertionMismatch(label, None, expected_type, "block not loaded")
    assert_equal(label, block.type, expected_type)


def assert_payload_fields(payload: dict, expected: dict, label: str = "payload") -> None:
    """Assert that every key in ``expected`` is present in ``payload`` with the same value."""
    for key, value in expected.items():
        if key not in payload:
            raise AssertionMismatch(f"{label}.{key}", None, value, "missing field")
        assert_equal(f"{label}.{key}", payload[key], value)
