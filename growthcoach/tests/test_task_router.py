from __future__ import annotations

import pytest

from conftest import make_task
from growthcoach.services.catalog import EXECUTION_TOOLS, FOUNDATION_TOOLS, GROWTH_PLAN_ID
from growthcoach.services.task_router import route


@pytest.mark.parametrize("tool_id", sorted(FOUNDATION_TOOLS))
def test_foundation_tools_route_to_growth_plan(tool_id: str) -> None:
    assert route(make_task("t", source_module=tool_id)) == GROWTH_PLAN_ID


@pytest.mark.parametrize("tool_id", EXECUTION_TOOLS)
def test_execution_tools_route_to_themselves(tool_id: str) -> None:
    assert route(make_task("t", source_module=tool_id)) == tool_id


def test_source_module_is_matched_case_insensitively() -> None:
    assert route(make_task("t", source_module="  Social_Posts ")) == "social_posts"


@pytest.mark.parametrize("source", [None, "", "   ", "mystery_tool"])
def test_missing_or_unknown_source_falls_back_to_growth_plan(source: str | None) -> None:
    target = route(make_task("t", source_module=source))

    assert target == GROWTH_PLAN_ID
    assert target != ""


def test_route_without_task_is_safe() -> None:
    assert route(None) == GROWTH_PLAN_ID
