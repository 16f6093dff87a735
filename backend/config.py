"""
Game Configuration

Centralizes every numeric rule of the business game: plant capacity,
unit economics, market response, finance and the period calendar.
The engine reads these as fixed inputs; nothing here changes during a game.
"""

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np


@dataclass
class PlantConfig:
    """Machines and labour."""
    capacity_per_machine: float = 1000.0  # units/year per machine
    capacity_per_worker: float = 300.0  # units/year per worker
    machine_cost: float = 50000.0
    machine_life_years: float = 10.0  # straight-line depreciation


@dataclass
class CostConfig:
    """Unit economics and fixed operating costs."""
    unit_material_cost: float = 8.0
    unit_variable_cost: float = 4.0
    fixed_costs_annual: float = 210000.0  # excluding payroll
    salary_per_worker_annual: float = 30000.0

    # False: each step charges the full annual salary and monthly aggregation
    # divides it back by 12.
    # True: each step charges payroll for its own duration (like depreciation)
    # and aggregation sums it. Aggregated payroll is identical either way,
    # monthly cash, profit and bankruptcy timing are not.
    prorate_payroll_by_step: bool = False

    @property
    def unit_cost(self) -> float:
        return self.unit_material_cost + self.unit_variable_cost


@dataclass
class MarketConfig:
    """Demand and share allocation."""
    annual_demand: float = 18000.0
    price_sensitivity: float = 2.0  # k in exp(-k * (p/Pref - 1))
    marketing_alpha: float = 0.5  # diminishing returns exponent
    min_price: float = 0.01  # floor applied before any price division
    fallback_reference_price: float = 1.0  # used when the median is 0


@dataclass
class FinanceConfig:
    """Bank and tax rules."""
    interest_rate_annual: float = 0.06
    tax_rate: float = 0.25
    max_debt_multiple_of_equity: float = 2.0


@dataclass
class GameConfig:
    """Period calendar and starting position."""
    total_periods: int = 6
    monthly_periods: Tuple[int, ...] = (5, 6)
    months_per_year: int = 12

    # Seasonal curve for monthly-mode years (re-normalized before use)
    monthly_demand_weights: Tuple[float, ...] = (
        0.07, 0.075, 0.08, 0.085, 0.09, 0.095,
        0.095, 0.09, 0.085, 0.08, 0.075, 0.07,
    )

    # Starting balance sheet (machines are bought out of capital)
    initial_capital: float = 350000.0
    initial_machines: int = 5
    initial_workers: int = 10

    player_id: str = "player"
    player_name: str = "Player"
    competitor_names: Tuple[str, ...] = ("Competitor A", "Competitor B", "Competitor C")

    # Player form defaults
    default_player_price: float = 30.0
    default_player_marketing: float = 40000.0
    default_player_workers: int = 12
    default_player_production: float = 5000.0

    # Decisions assumed for competitors before their first period
    default_competitor_price: float = 30.0
    default_competitor_marketing: float = 35000.0
    default_competitor_workers: int = 10
    default_competitor_production: float = 5000.0


@dataclass
class CompetitorConfig:
    """Scripted competitor heuristics."""
    fallback_market_price: float = 30.0  # when no active firm has a price

    # Profile: balanced
    balanced_price_factor: float = 1.0
    balanced_marketing_fraction: float = 0.06  # of cash
    balanced_target_utilization: float = 0.85

    # Profile: aggressive
    aggressive_price_factor: float = 0.92
    aggressive_marketing_fraction: float = 0.10
    aggressive_target_utilization: float = 0.95

    # Profile: conservative
    conservative_price_factor: float = 1.08
    conservative_marketing_fraction: float = 0.045
    conservative_target_utilization: float = 0.75

    # Adaptation to last period
    loss_price_factor: float = 1.03
    loss_marketing_factor: float = 0.85
    loss_utilization_factor: float = 0.9
    low_share_threshold: float = 0.22
    low_share_marketing_factor: float = 1.10

    max_marketing_spend: float = 120000.0

    # Capex: one machine when rich and running hot
    capex_cash_threshold: float = 450000.0
    capex_utilization_threshold: float = 0.9
    capex_machines: int = 1

    # Banking
    loan_cash_threshold: float = 80000.0
    loan_equity_threshold: float = 150000.0
    loan_draw_amount: float = 50000.0
    repay_cash_threshold: float = 250000.0
    repay_max_amount: float = 50000.0


@dataclass
class SimulationConfig:
    """Master configuration for the whole game."""

    plant: PlantConfig = field(default_factory=PlantConfig)
    costs: CostConfig = field(default_factory=CostConfig)
    market: MarketConfig = field(default_factory=MarketConfig)
    finance: FinanceConfig = field(default_factory=FinanceConfig)
    game: GameConfig = field(default_factory=GameConfig)
    competitors: CompetitorConfig = field(default_factory=CompetitorConfig)

    def __post_init__(self):
        """Validation of the fixed rule set."""
        if self.plant.capacity_per_machine <= 0 or self.plant.capacity_per_worker <= 0:
            raise ValueError("capacities must be positive")
        if self.plant.machine_cost <= 0:
            raise ValueError("machine_cost must be positive")
        if self.plant.machine_life_years <= 0:
            raise ValueError("machine_life_years must be positive")

        if self.costs.unit_material_cost < 0 or self.costs.unit_variable_cost < 0:
            raise ValueError("unit costs cannot be negative")
        if self.costs.fixed_costs_annual < 0:
            raise ValueError("fixed_costs_annual cannot be negative")
        if self.costs.salary_per_worker_annual < 0:
            raise ValueError("salary_per_worker_annual cannot be negative")

        if self.market.annual_demand < 0:
            raise ValueError("annual_demand cannot be negative")
        if self.market.min_price <= 0:
            raise ValueError("min_price must be positive")

        if self.finance.interest_rate_annual < 0:
            raise ValueError("interest_rate_annual cannot be negative")
        if not (0.0 <= self.finance.tax_rate <= 1.0):
            raise ValueError(f"tax_rate must be in [0,1], got {self.finance.tax_rate}")
        if self.finance.max_debt_multiple_of_equity < 0:
            raise ValueError("max_debt_multiple_of_equity cannot be negative")

        if self.game.total_periods <= 0:
            raise ValueError("total_periods must be positive")
        if self.game.months_per_year <= 0:
            raise ValueError("months_per_year must be positive")
        if len(self.game.monthly_demand_weights) != self.game.months_per_year:
            raise ValueError(
                f"monthly_demand_weights needs {self.game.months_per_year} entries, "
                f"got {len(self.game.monthly_demand_weights)}"
            )
        if any(w < 0 for w in self.game.monthly_demand_weights):
            raise ValueError("monthly_demand_weights cannot be negative")
        for period in self.game.monthly_periods:
            if not (1 <= period <= self.game.total_periods):
                raise ValueError(f"monthly period {period} outside 1..{self.game.total_periods}")

    @property
    def monthly_weights(self) -> Tuple[float, ...]:
        """Seasonal curve re-normalized to sum to 1."""
        weights = np.asarray(self.game.monthly_demand_weights, dtype=np.float64)
        total = weights.sum() or 1.0
        return tuple(float(w) for w in weights / total)


# Global configuration instance
CONFIG = SimulationConfig()
