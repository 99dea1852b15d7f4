"""Tests for periodized plan generation."""

import re
from datetime import date, timedelta

import pytest

from training_load_server.core.config import PlannerConfig
from training_load_server.core.errors import InvalidInputError
from training_load_server.schemas.plan import MinimalGoal, PeriodizedPlan, Phase
from training_load_server.services.planner import (
    PeriodizationPlanner,
    collect_block_ramp_warnings,
    deterministic_uuid_from_seed,
    find_block_for_date,
    fnv1a32,
    goal_categories,
    normalize_goal_input,
    split_weeks,
    validate_plan_structure,
)

UUID_V4 = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$")
REFERENCE = date(2026, 1, 5)


def make_goal(
    weeks: int = 16,
    name: str = "Spring Marathon",
    priority: int | None = None,
    targets: list[dict] | None = None,
) -> MinimalGoal:
    return MinimalGoal.model_validate(
        {
            "name": name,
            "target_date": (REFERENCE + timedelta(weeks=weeks)).isoformat(),
            "priority": priority,
            "targets": targets
            or [
                {
                    "target_type": "race_performance",
                    "distance_m": 42195,
                    "target_time_s": 12600,
                    "activity_category": "run",
                }
            ],
        }
    )


@pytest.fixture
def planner() -> PeriodizationPlanner:
    return PeriodizationPlanner()


class TestDeterministicIds:
    """Tests for seeded ids."""

    def test_fnv1a_known_values(self):
        assert fnv1a32("") == 0x811C9DC5
        assert fnv1a32("a") == 0xE40C292C

    def test_uuid_shape(self):
        assert UUID_V4.match(deterministic_uuid_from_seed("seed"))

    def test_uuid_is_stable_and_seed_sensitive(self):
        assert deterministic_uuid_from_seed("x") == deterministic_uuid_from_seed("x")
        assert deterministic_uuid_from_seed("x") != deterministic_uuid_from_seed("y")

    def test_goal_normalization(self):
        goal = make_goal()

        first = normalize_goal_input(goal)
        second = normalize_goal_input(goal)

        assert first.id == second.id
        assert first.priority == 1
        assert UUID_V4.match(first.id)

    def test_goal_id_depends_on_targets(self):
        a = normalize_goal_input(make_goal())
        b = normalize_goal_input(
            make_goal(targets=[{"target_type": "hr_threshold", "target_lthr_bpm": 170}])
        )
        assert a.id != b.id

    def test_caller_goal_id_is_kept(self):
        goal = make_goal().model_copy(update={"id": "my-goal-1"})

        normalized = normalize_goal_input(goal)

        assert normalized.id == "my-goal-1"
        plan = PeriodizationPlanner().expand_minimal_goal_to_plan([goal], REFERENCE, 40.0)
        assert all(block.goal_ids == ["my-goal-1"] for block in plan.blocks)


class TestHelpers:
    """Tests for planner helpers."""

    @pytest.mark.parametrize(
        ("weeks", "phases"),
        [
            (1, [Phase.TAPER]),
            (2, [Phase.TAPER]),
            (5, [Phase.BUILD, Phase.TAPER]),
            (10, [Phase.BASE, Phase.BUILD, Phase.TAPER]),
            (20, [Phase.BASE, Phase.BUILD, Phase.BUILD, Phase.PEAK, Phase.TAPER]),
        ],
    )
    def test_split_weeks_phases(self, weeks, phases):
        specs = split_weeks(weeks)
        assert [s.phase for s in specs] == phases
        if weeks > 2:
            assert sum(s.weeks for s in specs) == weeks

    def test_split_weeks_floor(self):
        """Ten weeks: base floor(3.0), build floor(5.5), taper remainder."""
        assert [s.weeks for s in split_weeks(10)] == [3, 5, 2]

    def test_goal_categories(self):
        goals = [
            normalize_goal_input(make_goal()),
            normalize_goal_input(
                make_goal(
                    name="FTP test",
                    targets=[
                        {
                            "target_type": "power_threshold",
                            "target_watts": 280,
                            "test_duration_s": 1200,
                            "activity_category": "bike",
                        }
                    ],
                )
            ),
        ]
        assert goal_categories(goals) == ["run", "bike"]

    def test_hr_goal_counts_as_run(self):
        goal = normalize_goal_input(
            make_goal(targets=[{"target_type": "hr_threshold", "target_lthr_bpm": 170}])
        )
        assert goal_categories([goal]) == ["run"]


class TestExpandMinimalGoal:
    """Tests for PeriodizationPlanner.expand_minimal_goal_to_plan."""

    def test_same_input_same_plan(self, planner):
        first = planner.expand_minimal_goal_to_plan([make_goal()], REFERENCE, 45.0, "athlete")
        second = planner.expand_minimal_goal_to_plan([make_goal()], REFERENCE, 45.0, "athlete")

        assert first == second
        assert UUID_V4.match(first.id)
        assert all(UUID_V4.match(b.id) for b in first.blocks)

    def test_owner_changes_plan_id(self, planner):
        a = planner.expand_minimal_goal_to_plan([make_goal()], REFERENCE, 45.0, "a")
        b = planner.expand_minimal_goal_to_plan([make_goal()], REFERENCE, 45.0, "b")
        assert a.id != b.id

    def test_blocks_are_contiguous_and_cover_plan(self, planner):
        plan = planner.expand_minimal_goal_to_plan([make_goal(weeks=20)], REFERENCE, 45.0)

        assert plan.blocks[0].start_date == REFERENCE
        assert plan.blocks[-1].end_date == plan.end_date
        for previous, current in zip(plan.blocks, plan.blocks[1:], strict=False):
            assert current.start_date == previous.end_date + timedelta(days=1)

    def test_plan_shape(self, planner):
        goal = make_goal(weeks=16)
        plan = planner.expand_minimal_goal_to_plan([goal], REFERENCE, 45.0)

        assert plan.name == "Road to Spring Marathon"
        assert plan.start_date == REFERENCE
        assert plan.end_date == goal.target_date
        assert plan.activity_distribution == {"run": 1.0}
        assert plan.blocks[-1].phase == Phase.TAPER
        assert plan.fitness_progression.starting_ctl == 45.0
        assert plan.fitness_progression.target_ctl_at_peak > 45.0

    def test_peak_ctl_is_capped(self, planner):
        plan = planner.expand_minimal_goal_to_plan([make_goal(weeks=40)], REFERENCE, 240.0)
        assert plan.fitness_progression.target_ctl_at_peak == 250.0

    def test_taper_is_lighter_than_peak(self, planner):
        plan = planner.expand_minimal_goal_to_plan([make_goal(weeks=20)], REFERENCE, 45.0)
        by_phase = {b.phase: b for b in plan.blocks}

        peak = by_phase[Phase.PEAK].target_weekly_tss_range
        taper = by_phase[Phase.TAPER].target_weekly_tss_range
        assert taper.max < peak.max

    def test_tss_range_spread(self, planner):
        plan = planner.expand_minimal_goal_to_plan([make_goal(weeks=1)], REFERENCE, 40.0)
        block = plan.blocks[0]

        assert block.phase == Phase.TAPER
        # 7 x 40 x 0.6 = 168, +/- 15%
        assert block.target_weekly_tss_range.min == 143.0
        assert block.target_weekly_tss_range.max == 193.0

    def test_goal_in_past_rejected(self, planner):
        with pytest.raises(InvalidInputError):
            planner.expand_minimal_goal_to_plan([make_goal(weeks=-1)], REFERENCE, 45.0)

    def test_no_goals_rejected(self, planner):
        with pytest.raises(InvalidInputError):
            planner.expand_minimal_goal_to_plan([], REFERENCE, 45.0)

    def test_plan_round_trips_through_validation(self, planner):
        plan = planner.expand_minimal_goal_to_plan([make_goal()], REFERENCE, 45.0)

        result = validate_plan_structure(plan.model_dump(mode="json"))

        assert result.success
        assert result.value == plan


class TestFeasibilityChecks:
    """Tests for structural plan checks."""

    def test_generated_plan_is_valid(self, planner):
        plan = planner.expand_minimal_goal_to_plan([make_goal(weeks=16)], REFERENCE, 45.0)
        check = planner.validate_plan_feasibility(plan)

        assert check.valid
        assert check.warnings == []

    def test_gap_between_blocks_warns(self, planner):
        plan = planner.expand_minimal_goal_to_plan([make_goal(weeks=16)], REFERENCE, 45.0)
        data = plan.model_dump(mode="json")
        data["blocks"][1]["start_date"] = (
            plan.blocks[1].start_date + timedelta(days=3)
        ).isoformat()

        check = planner.validate_plan_feasibility(PeriodizedPlan.model_validate(data))

        assert not check.valid
        assert any("Gap of 4 days" in w for w in check.warnings)

    def test_steep_ctl_ramp_warns(self, planner):
        plan = planner.expand_minimal_goal_to_plan([make_goal(weeks=10)], REFERENCE, 45.0)
        data = plan.model_dump(mode="json")
        data["fitness_progression"]["target_ctl_at_peak"] = 200.0

        check = planner.validate_plan_feasibility(PeriodizedPlan.model_validate(data))

        assert any("too aggressive" in w for w in check.warnings)

    def test_block_ramp_warnings(self, planner):
        plan = planner.expand_minimal_goal_to_plan([make_goal(weeks=16)], REFERENCE, 45.0)
        data = plan.model_dump(mode="json")
        data["blocks"][0]["target_weekly_tss_range"] = {"min": 100.0, "max": 100.0}
        data["blocks"][1]["target_weekly_tss_range"] = {"min": 100.0, "max": 120.0}
        data["blocks"][2]["target_weekly_tss_range"] = {"min": 100.0, "max": 160.0}

        warnings = collect_block_ramp_warnings(PeriodizedPlan.model_validate(data).blocks)
        reasons = [w.reason for w in warnings]

        assert reasons[:2] == [
            "block_to_block_tss_ramp_exceeds_15pct",
            "block_to_block_tss_ramp_exceeds_25pct",
        ]
        assert warnings[0].increase_pct == 20.0

    def test_block_ramp_thresholds_from_config(self, planner):
        plan = planner.expand_minimal_goal_to_plan([make_goal(weeks=16)], REFERENCE, 45.0)
        data = plan.model_dump(mode="json")
        data["blocks"][0]["target_weekly_tss_range"] = {"min": 100.0, "max": 100.0}
        data["blocks"][1]["target_weekly_tss_range"] = {"min": 100.0, "max": 120.0}
        data["blocks"][2]["target_weekly_tss_range"] = {"min": 100.0, "max": 160.0}
        blocks = PeriodizedPlan.model_validate(data).blocks

        warnings = collect_block_ramp_warnings(
            blocks, PlannerConfig(block_ramp_caution_pct=30.0, block_ramp_exceeded_pct=50.0)
        )

        assert warnings[0].from_block_id == blocks[1].id
        assert warnings[0].increase_pct == 33.3

    def test_find_block_inclusive_bounds(self, planner):
        plan = planner.expand_minimal_goal_to_plan([make_goal(weeks=10)], REFERENCE, 45.0)
        first = plan.blocks[0]

        assert find_block_for_date(plan.blocks, first.start_date) == first
        assert find_block_for_date(plan.blocks, first.end_date) == first
        assert find_block_for_date(plan.blocks, plan.end_date + timedelta(days=1)) is None


class TestCtlProjection:
    """Tests for week-by-week CTL projection."""

    def test_one_point_per_week(self, planner):
        plan = planner.expand_minimal_goal_to_plan([make_goal(weeks=12)], REFERENCE, 45.0)
        projection = planner.calculate_ctl_projection(plan)

        assert len(projection) == 13
        assert projection[0]["week_start"] == REFERENCE.isoformat()

    def test_every_third_loading_week_is_recovery(self, planner):
        plan = planner.expand_minimal_goal_to_plan([make_goal(weeks=12)], REFERENCE, 45.0)
        projection = planner.calculate_ctl_projection(plan)

        assert projection[2]["recovery_week"] is True
        assert projection[0]["recovery_week"] is False
        assert projection[2]["weekly_tss"] < projection[1]["weekly_tss"]

    def test_recovery_factor_from_config(self):
        planner = PeriodizationPlanner(PlannerConfig(recovery_week_factor=1.0))
        plan = planner.expand_minimal_goal_to_plan([make_goal(weeks=12)], REFERENCE, 45.0)

        projection = planner.calculate_ctl_projection(plan)

        assert projection[2]["recovery_week"] is True
        assert projection[2]["weekly_tss"] == projection[1]["weekly_tss"]

    def test_fitness_builds_before_taper(self, planner):
        plan = planner.expand_minimal_goal_to_plan([make_goal(weeks=12)], REFERENCE, 30.0)
        projection = planner.calculate_ctl_projection(plan, starting_ctl=30.0)

        assert max(p["ctl"] for p in projection) > 30.0


class TestValidatePlanStructure:
    """Tests for validate_plan_structure."""

    def test_collects_issues_instead_of_raising(self):
        result = validate_plan_structure({"plan_type": "periodized", "id": "x"})

        assert not result.success
        assert result.issues
        with pytest.raises(InvalidInputError):
            result.unwrap()

    def test_overlapping_blocks_rejected(self, planner):
        plan = planner.expand_minimal_goal_to_plan([make_goal(weeks=16)], REFERENCE, 45.0)
        data = plan.model_dump(mode="json")
        data["blocks"][1]["start_date"] = data["blocks"][0]["start_date"]

        result = validate_plan_structure(data)

        assert not result.success
        assert any("overlap" in issue.message for issue in result.issues)

    def test_maintenance_plan(self):
        result = validate_plan_structure(
            {
                "plan_type": "maintenance",
                "id": "m1",
                "name": "Off season",
                "start_date": "2026-01-01",
                "target_weekly_tss_range": {"min": 300, "max": 400},
                "activity_distribution": {"run": 0.5, "bike": 0.5},
            }
        )
        assert result.success

    def test_distribution_must_sum_to_one(self):
        result = validate_plan_structure(
            {
                "plan_type": "maintenance",
                "id": "m1",
                "name": "Off season",
                "start_date": "2026-01-01",
                "target_weekly_tss_range": {"min": 300, "max": 400},
                "activity_distribution": {"run": 0.5, "bike": 0.3},
            }
        )
        assert not result.success
