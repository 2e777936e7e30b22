"""Every catalog scenario against a live in-process server, once per selected version."""

import pytest

from voxelbang.harness.catalog import SCENARIOS
from voxelbang.harness.runner import execute, selected_versions

pytestmark = [pytest.mark.integration, pytest.mark.asyncio]


@pytest.mark.parametrize("version", selected_versions())
@pytest.mark.parametrize("name", sorted(SCENARIOS))
async def test_scenario(name, version):
    await execute(SCENARIOS[name], version)
