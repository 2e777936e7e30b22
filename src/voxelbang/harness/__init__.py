"""Scenario harness: wait primitives, assertions, the runner and the catalog."""

from voxelbang.harness.assertions import (
    assert_block_type,
    assert_equal,
    assert_payload_fields,
    assert_pos_equal,
)
from voxelbang.harness.catalog import SCENARIOS, scenarios_in
from voxelbang.harness.errors import (
    AssertionMismatch,
    DuplicateEvent,
    HarnessError,
    ScenarioTimeout,
    SetupFailure,
    UnexpectedEvent,
)
from voxelbang.harness.runner import (
    Scenario,
    ScenarioContext,
    execute,
    run_scenario,
    scenario_settings,
    selected_versions,
)
from voxelbang.harness.waits import (
    gather_payloads,
    on_ground,
    once,
    wait_count,
    wait_entity,
    wait_for,
    wait_message,
    wait_messages,
    wait_spawn_zone,
)

__all__ = [
    "AssertionMismatch",
    "DuplicateEvent",
    "HarnessError",
    "SCENARIOS",
    "Scenario",
    "ScenarioContext",
    "ScenarioTimeout",
    "SetupFailure",
    "UnexpectedEvent",
    "assert_block_type",
    "assert_equal",
    "assert_payload_fields",
    "assert_pos_equal",
    "execute",
    "gather_payloads",
    "on_ground",
    "once",
    "run_scenario",
    "scenario_settings",
    "scenarios_in",
    "selected_versions",
    "wait_count",
    "wait_entity",
    "wait_for",
    "wait_message",
    "wait_messages",
    "wait_spawn_zone",
]
