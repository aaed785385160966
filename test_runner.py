"""
Tests for running batches of price scenarios

Checks order preservation, isolation of broken scenarios, batch-wide
failures and the generation counter used to drop superseded batches.
"""

import logging
from datetime import date

import pytest

from sim import (
    BatchGenerations,
    HalvingSchedule,
    InvalidConfig,
    InvalidParameter,
    LinearSchedule,
    PriceScenario,
    ScenarioRunner,
    TokenomicsConfig,
    UnsupportedScheduleType,
    combine_results,
    compute,
    run_all,
)

CONFIG = TokenomicsConfig()
SCHEDULE = LinearSchedule(max_rate=0.15, min_rate=0.02)
START = date(2024, 1, 1)


def make_scenarios():
    return [
        PriceScenario('Bear Case', [1.0, 0.8, 0.5], '#ef4444'),
        PriceScenario('Broken', []),
        PriceScenario('Base Case', [1.0, 1.5, 2.0], '#3b82f6'),
        PriceScenario('Negative', [1.0, -1.0]),
        PriceScenario('Bull Case', [1.0, 3.0, 5.0], '#10b981'),
    ]


def test_results_follow_input_order_and_skip_invalid(caplog):
    with caplog.at_level(logging.WARNING, logger='sim'):
        results = run_all(CONFIG, SCHEDULE, make_scenarios(), horizon_days=365, start_date=START)

    assert [r.scenario for r in results] == ['Bear Case', 'Base Case', 'Bull Case']
    assert [r.color for r in results] == ['#ef4444', '#3b82f6', '#10b981']
    assert 'Broken' in caplog.text
    assert 'Negative' in caplog.text


def test_batch_matches_single_scenario_runs():
    scenarios = [s for s in make_scenarios() if s.multipliers and min(s.multipliers) >= 0]
    results = ScenarioRunner(CONFIG, SCHEDULE, horizon_days=200, start_date=START, max_workers=2).run_all(scenarios)
    for scenario, result in zip(scenarios, results):
        assert result == compute(CONFIG, SCHEDULE, scenario, horizon_days=200, start_date=START)


def test_scenarios_share_start_date():
    results = run_all(CONFIG, SCHEDULE, make_scenarios(), horizon_days=10)
    assert len({r.data_points[0].date for r in results}) == 1


def test_empty_batch():
    assert run_all(CONFIG, SCHEDULE, []) == []


def test_all_invalid_scenarios_give_empty_results():
    assert run_all(CONFIG, SCHEDULE, [PriceScenario('Broken', [])]) == []


def test_invalid_config_aborts_batch():
    with pytest.raises(InvalidConfig):
        run_all(TokenomicsConfig(tge_percentage=120), SCHEDULE, make_scenarios())


def test_invalid_schedule_aborts_batch():
    with pytest.raises(InvalidParameter):
        run_all(CONFIG, HalvingSchedule(halving_period=0), make_scenarios())


def test_unsupported_schedule_aborts_batch():
    with pytest.raises(UnsupportedScheduleType):
        run_all(CONFIG, None, make_scenarios())


def test_final_inflation_rate_of_each_result():
    for result in run_all(CONFIG, SCHEDULE, make_scenarios(), horizon_days=100):
        assert result.final_inflation_rate == result.data_points[-1].inflation_rate


def test_combine_results():
    results = run_all(CONFIG, SCHEDULE, make_scenarios(), horizon_days=30, start_date=START)
    df = combine_results(results)
    assert len(df) == 90
    assert list(df['Scenario'].unique()) == ['Bear Case', 'Base Case', 'Bull Case']
    assert combine_results([]).empty


def test_generations_publish_latest_batch():
    generations = BatchGenerations()
    scenarios = make_scenarios()[:1]

    results = generations.run(CONFIG, SCHEDULE, scenarios, horizon_days=10)
    assert results is not None
    assert generations.results == results
    assert generations.published_generation == 1


def test_generations_discard_stale_batch():
    generations = BatchGenerations()
    old = generations.begin()
    new = generations.begin()
    assert new > old

    fresh = run_all(CONFIG, SCHEDULE, make_scenarios(), horizon_days=10)
    assert generations.publish(new, fresh)
    assert not generations.publish(old, [])
    assert generations.results == fresh
    assert generations.published_generation == new
