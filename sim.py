"""
Core Inflation Emission Simulation Module

This module contains the core simulation logic for token inflation modeling.
It includes the inflation-rate decay schedules, monthly price scenarios, the
daily emission engine that tracks emitted supply and its USD value, and the
runner that evaluates a batch of price scenarios side by side.
"""

import logging
import math
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, fields
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365
DAYS_PER_MONTH = 30  # Price multipliers change every 30 days
DEFAULT_HORIZON_DAYS = DAYS_PER_YEAR * 6  # 6 years


class TokenomicsError(ValueError):
    """Base class for invalid simulation inputs"""


class InvalidConfig(TokenomicsError):
    """Token supply configuration is out of range"""


class InvalidParameter(TokenomicsError):
    """Inflation schedule parameter is out of range"""


class InvalidScenario(TokenomicsError):
    """Price scenario cannot be simulated"""


class UnsupportedScheduleType(TokenomicsError):
    """Schedule is not one of the known decay variants"""


@dataclass(frozen=True)
class TokenomicsConfig:
    """Token supply parameters shared by every price scenario"""

    total_supply: float = 1_000_000_000  # 1B tokens
    tge_percentage: float = 40.8  # Percentage of supply unlocked at TGE
    inflation_period_years: float = 6  # Length of the inflation schedule
    initial_price: float = 1.0  # Token price in USD at day 0

    @property
    def tge_supply(self) -> float:
        """Tokens circulating at day 0"""
        return self.total_supply * self.tge_percentage / 100

    @property
    def emission_budget(self) -> float:
        """Tokens left to be emitted after TGE"""
        return self.total_supply - self.tge_supply

    def validate(self):
        """Raise InvalidConfig if any parameter is out of range"""
        if not (math.isfinite(self.total_supply) and self.total_supply > 0):
            raise InvalidConfig(f"total_supply must be a finite positive number, got {self.total_supply}")
        if not 0 <= self.tge_percentage <= 100:
            raise InvalidConfig(f"tge_percentage must be within [0, 100], got {self.tge_percentage}")
        if not (math.isfinite(self.inflation_period_years) and self.inflation_period_years > 0):
            raise InvalidConfig(
                f"inflation_period_years must be a finite positive number, got {self.inflation_period_years}"
            )
        if not (math.isfinite(self.initial_price) and self.initial_price > 0):
            raise InvalidConfig(f"initial_price must be a finite positive number, got {self.initial_price}")


def _require_rate(name: str, value: float):
    if not (math.isfinite(value) and value >= 0):
        raise InvalidParameter(f"{name} must be a finite non-negative number, got {value}")


class InflationSchedule(ABC):
    """Abstract base class for annual inflation-rate decay schedules"""

    kind = ''
    # Schedules only defined up to the end of the inflation period hold their final value after it
    ends_with_period = False

    @abstractmethod
    def get_rate(self, normalized_time: float, inflation_period_years: float) -> float:
        """Get the annual inflation rate (fraction) at a point of the inflation period"""
        pass

    @abstractmethod
    def get_description(self) -> str:
        """Get description of the schedule"""
        pass

    def validate(self):
        """Raise InvalidParameter if any parameter is out of range"""
        for f in fields(self):
            _require_rate(f.name, getattr(self, f.name))


@dataclass(frozen=True)
class LinearSchedule(InflationSchedule):
    """Rate falls in a straight line from max_rate to min_rate"""

    kind = 'linear'
    ends_with_period = True

    max_rate: float = 0.2  # 20% at the start
    min_rate: float = 0.01  # 1% at the end

    def get_rate(self, normalized_time: float, inflation_period_years: float) -> float:
        return self.max_rate - (self.max_rate - self.min_rate) * normalized_time

    def get_description(self) -> str:
        return f"Linear decay: {self.max_rate:.1%} to {self.min_rate:.1%}"


@dataclass(frozen=True)
class HalvingSchedule(InflationSchedule):
    """Bitcoin-style schedule, rate halves every halving_period years"""

    kind = 'halving'

    initial_rate: float = 0.2
    halving_period: float = 1  # years

    def validate(self):
        super().validate()
        if not self.halving_period > 0:
            raise InvalidParameter(f"halving_period must be positive, got {self.halving_period}")

    def get_rate(self, normalized_time: float, inflation_period_years: float) -> float:
        if not self.halving_period > 0:
            raise InvalidParameter(f"halving_period must be positive, got {self.halving_period}")
        elapsed_periods = normalized_time * inflation_period_years / self.halving_period
        if not math.isfinite(elapsed_periods):
            return 0.0
        halvings = math.floor(elapsed_periods)
        # ldexp underflows to 0.0 where 2 ** halvings would overflow a float
        return math.ldexp(self.initial_rate, -halvings)

    def get_description(self) -> str:
        return f"Halving: {self.initial_rate:.1%} halved every {self.halving_period:g} years"


@dataclass(frozen=True)
class LogarithmicSchedule(InflationSchedule):
    """Rate decays as log_scale × e^(-t / log_base)"""

    kind = 'logarithmic'

    log_base: float = 0.1
    log_scale: float = 0.2

    def validate(self):
        super().validate()
        if not self.log_base > 0:
            raise InvalidParameter(f"log_base must be positive, got {self.log_base}")

    def get_rate(self, normalized_time: float, inflation_period_years: float) -> float:
        if not self.log_base > 0:
            raise InvalidParameter(f"log_base must be positive, got {self.log_base}")
        return self.log_scale * math.exp(-normalized_time / self.log_base)

    def get_description(self) -> str:
        return f"Logarithmic decay: {self.log_scale:.1%} × e^(-t / {self.log_base:g})"


@dataclass(frozen=True)
class ExponentialSchedule(InflationSchedule):
    """Rate decays as exp_scale × (1 - t)^decay_rate, reaching zero at t = 1"""

    kind = 'exponential'
    ends_with_period = True

    decay_rate: float = 2
    exp_scale: float = 0.2

    def get_rate(self, normalized_time: float, inflation_period_years: float) -> float:
        if not 0 <= normalized_time <= 1:
            raise ValueError(f"normalized_time must be clamped to [0, 1], got {normalized_time}")
        return self.exp_scale * (1 - normalized_time) ** self.decay_rate

    def get_description(self) -> str:
        return f"Exponential decay: {self.exp_scale:.1%} × (1 - t)^{self.decay_rate:g}"


SCHEDULE_TYPES = {
    cls.kind: cls
    for cls in (LinearSchedule, HalvingSchedule, LogarithmicSchedule, ExponentialSchedule)
}

DEFAULT_SCHEDULES: Dict[str, InflationSchedule] = {
    'linear': LinearSchedule(max_rate=0.15, min_rate=0.02),
    'halving': HalvingSchedule(initial_rate=0.12, halving_period=2),
    'logarithmic': LogarithmicSchedule(log_base=0.3, log_scale=0.15),
    'exponential': ExponentialSchedule(decay_rate=1.5, exp_scale=0.15),
}

DEFAULT_CONFIG = TokenomicsConfig()


def schedule_from_dict(kind: str, parameters: Optional[Dict[str, float]] = None) -> InflationSchedule:
    """
    Build a schedule from its kind name and a string-keyed parameter map

    Args:
        kind: One of 'linear', 'halving', 'logarithmic', 'exponential'
        parameters: Parameter values by field name; absent ones use the defaults

    Returns:
        The validated schedule
    """
    try:
        schedule_cls = SCHEDULE_TYPES[kind]
    except KeyError:
        raise UnsupportedScheduleType(f"Unsupported schedule type: {kind!r}") from None

    parameters = dict(parameters or {})
    unknown = sorted(set(parameters) - {f.name for f in fields(schedule_cls)})
    if unknown:
        raise InvalidParameter(f"Unknown parameters for {kind} schedule: {', '.join(unknown)}")

    schedule = schedule_cls(**parameters)
    schedule.validate()
    return schedule


def inflation_rate(normalized_time: float, schedule: InflationSchedule, config: TokenomicsConfig) -> float:
    """Annual inflation rate (fraction) of a schedule at a normalized time"""
    if not isinstance(schedule, InflationSchedule):
        raise UnsupportedScheduleType(f"Unsupported schedule: {schedule!r}")
    return schedule.get_rate(normalized_time, config.inflation_period_years)


@dataclass(frozen=True)
class PriceScenario:
    """Price trajectory as multipliers of the initial price, one per 30-day month"""

    name: str
    multipliers: Tuple[float, ...]
    color: str = '#3b82f6'

    def __post_init__(self):
        object.__setattr__(self, 'multipliers', tuple(float(m) for m in self.multipliers))

    def validate(self):
        """Raise InvalidScenario if the scenario cannot be simulated"""
        if not self.multipliers:
            raise InvalidScenario(f"Scenario {self.name!r} has no price multipliers")
        for month, multiplier in enumerate(self.multipliers):
            if not (math.isfinite(multiplier) and multiplier >= 0):
                raise InvalidScenario(
                    f"Scenario {self.name!r} has invalid multiplier {multiplier} at month {month}"
                )

    def get_multiplier(self, day: int) -> float:
        # The last multiplier is held once the scenario runs out of months
        month = min(day // DAYS_PER_MONTH, len(self.multipliers) - 1)
        return self.multipliers[month]

    def get_description(self) -> str:
        return (
            f"{self.name}: {self.multipliers[0]:.2f}x to {self.multipliers[-1]:.2f}x "
            f"over {len(self.multipliers)} months"
        )


# (name, color, final multiplier) of the demo scenarios
SCENARIO_PRESETS = [
    ('Bear Case', '#ef4444', 0.5),
    ('Base Case', '#3b82f6', 2.0),
    ('Bull Case', '#10b981', 5.0),
]


def generate_price_multipliers(start: float, end: float, periods: int,
                               rng: np.random.Generator, volatility: float = 0.2) -> List[float]:
    """
    Generate monthly price multipliers on a compound path with random noise

    Args:
        start: Multiplier at month 0
        end: Trend multiplier at the final month
        periods: Number of months after month 0
        rng: Random source, seed it for reproducible scenarios
        volatility: Width of the uniform noise band (0.2 = ±10%)

    Returns:
        List of periods + 1 multipliers, each at least 0.01
    """
    if not (start > 0 and end > 0):
        raise InvalidScenario(f"start and end multipliers must be positive, got {start} and {end}")
    if periods < 1:
        raise InvalidScenario(f"periods must be at least 1, got {periods}")

    growth = (end / start) ** (1 / periods)
    trend = start * growth ** np.arange(periods + 1)
    noise = 1 + (rng.random(periods + 1) - 0.5) * volatility
    return np.maximum(0.01, trend * noise).tolist()


def default_price_scenarios(rng: np.random.Generator, months: int = 72) -> List[PriceScenario]:
    """Bear, Base and Bull demo scenarios drawn from the given random source"""
    return [
        PriceScenario(name, generate_price_multipliers(1.0, end, months, rng), color)
        for name, color, end in SCENARIO_PRESETS
    ]


@dataclass(frozen=True)
class EmissionDataPoint:
    """State of the emission schedule at the end of one simulated day"""

    day: int
    date: date
    tokens_emitted: float
    cumulative_tokens: float
    token_price: float
    usd_value_emitted: float
    cumulative_usd_value: float
    inflation_rate: float  # Annual percentage


@dataclass(frozen=True)
class ModelResults:
    """Daily emission series of one price scenario"""

    scenario: str
    data_points: Tuple[EmissionDataPoint, ...]
    color: str = '#3b82f6'

    @property
    def total_tokens_emitted(self) -> float:
        return self.data_points[-1].cumulative_tokens if self.data_points else 0.0

    @property
    def total_usd_value(self) -> float:
        return self.data_points[-1].cumulative_usd_value if self.data_points else 0.0

    @property
    def final_inflation_rate(self) -> float:
        return self.data_points[-1].inflation_rate if self.data_points else 0.0

    @property
    def duration_years(self) -> int:
        return math.ceil(len(self.data_points) / DAYS_PER_YEAR)

    def to_dataframe(self) -> pd.DataFrame:
        """Daily series as a DataFrame, one row per simulated day"""
        return pd.DataFrame({
            'Scenario': self.scenario,
            'Day': [p.day for p in self.data_points],
            'Date': [pd.Timestamp(p.date) for p in self.data_points],
            'Tokens_Emitted': [p.tokens_emitted for p in self.data_points],
            'Cumulative_Tokens': [p.cumulative_tokens for p in self.data_points],
            'Token_Price': [p.token_price for p in self.data_points],
            'USD_Value_Emitted': [p.usd_value_emitted for p in self.data_points],
            'Cumulative_USD_Value': [p.cumulative_usd_value for p in self.data_points],
            'Inflation_Rate': [p.inflation_rate for p in self.data_points],
        })

    def hardware_capacity(self, unit_cost_per_hour: float) -> np.ndarray:
        """
        Number of hardware units the daily USD emission could rent around the clock

        Args:
            unit_cost_per_hour: Rental cost of one unit in USD per hour

        Returns:
            Array with one capacity value per simulated day
        """
        if not unit_cost_per_hour > 0:
            raise ValueError(f"unit_cost_per_hour must be positive, got {unit_cost_per_hour}")
        usd = np.array([p.usd_value_emitted for p in self.data_points], dtype=float)
        return usd / (unit_cost_per_hour * 24)

    def get_summary_metrics(self) -> Dict[str, float]:
        """
        Calculate summary metrics from the emission series

        Returns:
            Dictionary of key performance indicators
        """
        if not self.data_points:
            return {
                'total_tokens_emitted': 0.0,
                'total_usd_value': 0.0,
                'final_inflation_rate': 0.0,
                'duration_years': 0,
                'days_simulated': 0,
                'initial_price': 0.0,
                'final_price': 0.0,
                'price_change_pct': 0.0,
                'peak_daily_usd_value': 0.0,
            }

        first, last = self.data_points[0], self.data_points[-1]
        price_change = (last.token_price / first.token_price - 1) * 100 if first.token_price > 0 else 0.0
        return {
            'total_tokens_emitted': self.total_tokens_emitted,
            'total_usd_value': self.total_usd_value,
            'final_inflation_rate': self.final_inflation_rate,
            'duration_years': self.duration_years,
            'days_simulated': len(self.data_points),
            'initial_price': first.token_price,
            'final_price': last.token_price,
            'price_change_pct': price_change,
            'peak_daily_usd_value': max(p.usd_value_emitted for p in self.data_points),
        }


class EmissionSimulation:
    """
    Core inflation emission engine

    This class steps through the schedule one day at a time, emitting new tokens
    in proportion to the circulating supply until the emission budget is spent.
    """

    def __init__(self, config: TokenomicsConfig, schedule: InflationSchedule):
        """
        Initialize simulation with supply configuration and inflation schedule

        Args:
            config: Token supply parameters
            schedule: Inflation-rate decay schedule
        """
        self.config = config
        self.schedule = schedule

    def validate(self):
        """Check the inputs shared by every scenario"""
        self.config.validate()
        if not isinstance(self.schedule, InflationSchedule):
            raise UnsupportedScheduleType(f"Unsupported schedule: {self.schedule!r}")
        self.schedule.validate()

    def run(self, scenario: PriceScenario, horizon_days: int = DEFAULT_HORIZON_DAYS,
            start_date: Optional[date] = None) -> ModelResults:
        """
        Run the daily emission schedule for one price scenario

        Args:
            scenario: Monthly price multipliers
            horizon_days: Maximum number of days to simulate
            start_date: Calendar date of day 0, defaults to today

        Returns:
            ModelResults, shorter than horizon_days if the budget runs out first
        """
        self.validate()
        scenario.validate()
        if horizon_days < 0:
            raise InvalidConfig(f"horizon_days must be non-negative, got {horizon_days}")

        config = self.config
        start_date = start_date or date.today()
        period_days = DAYS_PER_YEAR * config.inflation_period_years
        tge_supply = config.tge_supply
        emission_budget = config.emission_budget

        cumulative_tokens = 0.0
        cumulative_usd_value = 0.0
        data_points = []

        for day in range(horizon_days):
            normalized_time = day / period_days
            if self.schedule.ends_with_period:
                normalized_time = min(normalized_time, 1.0)
            annual_rate = inflation_rate(normalized_time, self.schedule, config)
            daily_rate = annual_rate / DAYS_PER_YEAR

            # New tokens are proportional to what is already circulating
            circulating_supply = tge_supply + cumulative_tokens
            tokens_emitted = circulating_supply * daily_rate

            headroom = emission_budget - cumulative_tokens
            if tokens_emitted >= headroom:
                tokens_emitted = headroom
                cumulative_tokens = emission_budget
            else:
                cumulative_tokens += tokens_emitted

            token_price = config.initial_price * scenario.get_multiplier(day)
            usd_value_emitted = tokens_emitted * token_price
            cumulative_usd_value += usd_value_emitted

            data_points.append(EmissionDataPoint(
                day=day,
                date=start_date + timedelta(days=day),
                tokens_emitted=tokens_emitted,
                cumulative_tokens=cumulative_tokens,
                token_price=token_price,
                usd_value_emitted=usd_value_emitted,
                cumulative_usd_value=cumulative_usd_value,
                inflation_rate=annual_rate * 100,
            ))

            if cumulative_tokens >= emission_budget:
                break

        logger.debug(
            f"Scenario {scenario.name}: {len(data_points)} days, "
            f"{cumulative_tokens:,.0f} tokens, ${cumulative_usd_value:,.0f}"
        )
        return ModelResults(scenario=scenario.name, data_points=tuple(data_points), color=scenario.color)


def compute(config: TokenomicsConfig, schedule: InflationSchedule, scenario: PriceScenario,
            horizon_days: int = DEFAULT_HORIZON_DAYS, start_date: Optional[date] = None) -> ModelResults:
    """Simulate one price scenario"""
    return EmissionSimulation(config, schedule).run(scenario, horizon_days, start_date)


class ScenarioRunner:
    """Runs one simulation per price scenario and collects the results in input order"""

    def __init__(self, config: TokenomicsConfig, schedule: InflationSchedule,
                 horizon_days: int = DEFAULT_HORIZON_DAYS, start_date: Optional[date] = None,
                 max_workers: Optional[int] = None):
        self.simulation = EmissionSimulation(config, schedule)
        self.horizon_days = horizon_days
        self.start_date = start_date
        self.max_workers = max_workers

    def run_all(self, scenarios: Iterable[PriceScenario]) -> List[ModelResults]:
        """
        Simulate every scenario concurrently

        Config and schedule errors abort the whole batch. A scenario that fails
        its own validation is logged and left out of the results.
        """
        self.simulation.validate()
        scenarios = list(scenarios)
        if not scenarios:
            return []

        # All scenarios of a batch share the same calendar
        start_date = self.start_date or date.today()

        results = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(self.simulation.run, scenario, self.horizon_days, start_date)
                for scenario in scenarios
            ]
            for scenario, future in zip(scenarios, futures):
                try:
                    results.append(future.result())
                except InvalidScenario as e:
                    logger.warning(f"Skipping scenario {scenario.name!r}: {e}")
        return results


def run_all(config: TokenomicsConfig, schedule: InflationSchedule, scenarios: Sequence[PriceScenario],
            horizon_days: int = DEFAULT_HORIZON_DAYS, start_date: Optional[date] = None,
            max_workers: Optional[int] = None) -> List[ModelResults]:
    """Simulate a batch of price scenarios, see ScenarioRunner.run_all"""
    runner = ScenarioRunner(config, schedule, horizon_days, start_date, max_workers)
    return runner.run_all(scenarios)


def combine_results(results: Iterable[ModelResults]) -> pd.DataFrame:
    """Stack the daily series of several scenarios into one long DataFrame"""
    frames = [result.to_dataframe() for result in results]
    if not frames:
        return ModelResults(scenario='', data_points=()).to_dataframe()
    return pd.concat(frames, ignore_index=True)


class BatchGenerations:
    """
    Generation counter for recomputed scenario batches

    Every batch is stamped with a new generation when it starts. Only the
    newest generation may publish, so a slow batch finishing after a newer one
    was started is dropped instead of replacing fresher results.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._latest = 0
        self.published_generation = 0
        self.results: List[ModelResults] = []

    def begin(self) -> int:
        with self._lock:
            self._latest += 1
            return self._latest

    def publish(self, generation: int, results: List[ModelResults]) -> bool:
        with self._lock:
            if generation != self._latest:
                logger.debug(f"Discarding results of stale batch {generation} (latest {self._latest})")
                return False
            self.results = list(results)
            self.published_generation = generation
            return True

    def run(self, config: TokenomicsConfig, schedule: InflationSchedule,
            scenarios: Sequence[PriceScenario], **kwargs) -> Optional[List[ModelResults]]:
        """Run a batch as a new generation; returns None if it was superseded"""
        generation = self.begin()
        results = run_all(config, schedule, scenarios, **kwargs)
        if self.publish(generation, results):
            return results
        return None
