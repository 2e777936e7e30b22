import pytest

from voxelbang.client.state import Block
from voxelbang.harness.assertions import (
    assert_block_type,
    assert_equal,
    assert_payload_fields,
    assert_pos_equal,
)
from voxelbang.harness.errors import AssertionMismatch, HarnessError
from voxelbang.utils.vec3 import Vec3


def test_assert_pos_equal_tolerates_sub_block_drift():
    assert_pos_equal(Vec3(2.5, 3.2, 3.9), Vec3(2, 3, 4))


def test_assert_pos_equal_reports_distance():
    with pytest.raises(AssertionMismatch) as excinfo:
        assert_pos_equal(Vec3(3, 3, 4), Vec3(2, 3, 4))
    assert "distance 1.000" in str(excinfo.value)
    assert isinstance(excinfo.value, AssertionError)
    assert isinstance(excinfo.value, HarnessError)


def test_assert_pos_equal_without_position():
    with pytest.raises(AssertionMismatch, match="no position known"):
        assert_pos_equal(None, Vec3(0, 0, 0))


def test_assert_block_type():
    assert_block_type(Block(95, Vec3(1, 2, 3)), 95)
    with pytest.raises(AssertionMismatch):
        assert_block_type(Block(0, Vec3(1, 2, 3)), 95)
    with pytest.raises(AssertionMismatch, match="block not loaded"):
        assert_block_type(None, 95)


def test_assert_equal_and_payload_fields():
    assert_equal("count", 3, 3)
    assert_payload_fields({"byte1": 1, "byte2": 0, "extra": True}, {"byte1": 1, "byte2": 0})
    with pytest.raises(AssertionMismatch) as excinfo:
        assert_payload_fields({"byte1": 1}, {"byte2": 0}, label="block_action")
    assert excinfo.value.label == "block_action.byte2"
