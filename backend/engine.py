"""
Period Simulation Engine

Turns every firm's decisions into new balance sheets and income statements.

A period is either one annual step or twelve monthly steps with seasonal
demand. Each step runs, per active firm and in this order: bank finance,
capex, production, sales, P&L, balance update and the bankruptcy check.
Market shares are computed once per step from the decisions, before any
firm is updated.

All behavior is deterministic. Steps never mutate their inputs: they
return new companies that the caller threads into the next step.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, NamedTuple, Optional, Sequence

from companies import (
    Balance,
    Company,
    CompanyStatus,
    Decisions,
    PeriodResult,
    PnL,
    StepMode,
    StepResult,
)
from config import CONFIG, SimulationConfig
from market import allocate_market

logger = logging.getLogger(__name__)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def step_mode_for_period(period: int, config: SimulationConfig = CONFIG) -> StepMode:
    if period in config.game.monthly_periods:
        return StepMode.MONTHLY
    return StepMode.ANNUAL


def step_years(mode: StepMode, config: SimulationConfig = CONFIG) -> float:
    """Duration of one step expressed in years."""
    if mode == StepMode.ANNUAL:
        return 1.0
    return 1.0 / config.game.months_per_year


def capacity_per_year(machines: int, workers: int, config: SimulationConfig = CONFIG) -> float:
    """Plant output is bound by whichever of machines or workers is scarcer."""
    by_machines = machines * config.plant.capacity_per_machine
    by_workers = max(0, workers) * config.plant.capacity_per_worker
    return min(by_machines, by_workers)


def depreciation_per_year(machines: int, config: SimulationConfig = CONFIG) -> float:
    return machines * config.plant.machine_cost / config.plant.machine_life_years


class FinanceOutcome(NamedTuple):
    balance: Balance
    drawn: float
    repaid: float
    interest_annual: float


def apply_bank_finance(
    balance: Balance, decisions: Decisions, config: SimulationConfig = CONFIG
) -> FinanceOutcome:
    """
    Draw and repay debt at the start of a step.

    New borrowing is capped so that debt stays within a multiple of
    (non-negative) equity. Repayment cannot exceed the debt or the cash on
    hand, both counted after the draw. Requests beyond the limits are
    clamped, never rejected.
    """
    max_debt = max(0.0, balance.equity) * config.finance.max_debt_multiple_of_equity
    allowed_draw = max(0.0, max_debt - balance.debt)
    draw = _clamp(max(0.0, decisions.loan_draw), 0.0, allowed_draw)

    allowed_repay = min(balance.debt + draw, balance.cash + draw)
    repay = _clamp(max(0.0, decisions.loan_repay), 0.0, allowed_repay)

    updated = balance.update(
        debt=balance.debt + draw - repay,
        cash=balance.cash + draw - repay,
    )
    interest_annual = updated.debt * config.finance.interest_rate_annual
    return FinanceOutcome(updated, draw, repay, interest_annual)


class CapexOutcome(NamedTuple):
    balance: Balance
    purchased: int
    fulfilled: bool


def requested_machines(decisions: Optional[Decisions]) -> int:
    if decisions is None:
        return 0
    return max(0, math.floor(decisions.machines_to_buy or 0))


def apply_investment(
    balance: Balance, decisions: Decisions, config: SimulationConfig = CONFIG
) -> CapexOutcome:
    """Buy machines all-or-nothing; a purchase the cash cannot cover is skipped."""
    buy = requested_machines(decisions)
    if buy <= 0:
        return CapexOutcome(balance, 0, True)

    cost = buy * config.plant.machine_cost
    if balance.cash < cost:
        logger.debug("Capex of %d machines skipped: cash %.2f < cost %.2f", buy, balance.cash, cost)
        return CapexOutcome(balance, 0, False)

    updated = balance.update(
        cash=balance.cash - cost,
        machines=balance.machines + buy,
        fixed_assets_net=balance.fixed_assets_net + cost,
    )
    return CapexOutcome(updated, buy, True)


def compute_pnl(
    *,
    revenue: float,
    sales_units: float,
    workers: int,
    marketing: float,
    fixed_costs: float,
    depreciation: float,
    interest: float,
    payroll_years: float = 1.0,
    config: SimulationConfig = CONFIG,
) -> PnL:
    """Build an income statement; taxes apply only to a positive pre-tax result."""
    cogs = sales_units * config.costs.unit_cost
    payroll = workers * config.costs.salary_per_worker_annual * payroll_years

    ebitda = revenue - cogs - payroll - marketing - fixed_costs
    ebit = ebitda - depreciation
    pre_tax = ebit - interest
    taxes = pre_tax * config.finance.tax_rate if pre_tax > 0 else 0.0
    profit = pre_tax - taxes

    return PnL(
        revenue=revenue,
        cogs=cogs,
        payroll=payroll,
        marketing=marketing,
        fixed_costs=fixed_costs,
        ebitda=ebitda,
        depreciation=depreciation,
        ebit=ebit,
        interest=interest,
        taxes=taxes,
        profit=profit,
    )


def _frozen_step(company: Company, decisions: Optional[Decisions]) -> StepResult:
    """Bankrupt firms keep their balances and report no activity."""
    return StepResult(
        market_share=0.0,
        demand_assigned=0.0,
        production=0.0,
        sales_units=0.0,
        end_inventory_units=company.balance.inventory_units,
        pnl=PnL.zero(),
        balance=company.balance,
        status=company.status,
        machines_purchased=0,
        capex_fulfilled=requested_machines(decisions) == 0,
    )


def _step_company(
    company: Company,
    decisions: Decisions,
    share: float,
    step_demand: float,
    fixed_costs: float,
    mode: StepMode,
    config: SimulationConfig,
) -> StepResult:
    years = step_years(mode, config)

    # Finance and capex happen at the start of the step
    finance = apply_bank_finance(company.balance, decisions, config)
    capex = apply_investment(finance.balance, decisions, config)
    balance = capex.balance

    # Operations
    workers = max(0, math.floor(decisions.workers))
    capacity = capacity_per_year(balance.machines, workers, config) * years
    production = min(max(0.0, decisions.production_target), capacity)
    available = balance.inventory_units + production

    demand_assigned = share * step_demand
    sales_units = min(available, demand_assigned)
    revenue = sales_units * max(config.market.min_price, decisions.price)

    # Depreciation and interest are pro-rated to the step
    depreciation = depreciation_per_year(balance.machines, config) * years
    interest = finance.interest_annual * years
    payroll_years = years if config.costs.prorate_payroll_by_step else 1.0

    pnl = compute_pnl(
        revenue=revenue,
        sales_units=sales_units,
        workers=workers,
        marketing=max(0.0, decisions.marketing),
        fixed_costs=fixed_costs,
        depreciation=depreciation,
        interest=interest,
        payroll_years=payroll_years,
        config=config,
    )

    # Profit is the only cash/equity driver after the finance and capex flows
    balance = balance.update(
        cash=balance.cash + pnl.profit,
        equity=balance.equity + pnl.profit,
        inventory_units=available - sales_units,
        fixed_assets_net=max(0.0, balance.fixed_assets_net - depreciation),
        workers=workers,
    )

    status = company.status
    if balance.cash < 0 or balance.equity <= 0:
        status = CompanyStatus.BANKRUPT
        logger.info(
            "Company %s went bankrupt (cash=%.2f, equity=%.2f)",
            company.id, balance.cash, balance.equity,
        )

    return StepResult(
        market_share=share,
        demand_assigned=demand_assigned,
        production=production,
        sales_units=sales_units,
        end_inventory_units=balance.inventory_units,
        pnl=pnl,
        balance=balance,
        status=status,
        machines_purchased=capex.purchased,
        capex_fulfilled=capex.fulfilled,
        loan_drawn=finance.drawn,
        loan_repaid=finance.repaid,
    )


class StepOutcome(NamedTuple):
    companies: List[Company]
    results: Dict[str, StepResult]


def simulate_step(
    companies: Sequence[Company],
    decisions: Mapping[str, Decisions],
    step_demand: float,
    fixed_costs: float,
    mode: StepMode,
    config: SimulationConfig = CONFIG,
) -> StepOutcome:
    """
    Apply one step (a year or a month) to every firm.

    Args:
        companies: Firms at the start of the step
        decisions: Decisions keyed by company id
        step_demand: Total market demand for this step, in units
        fixed_costs: Fixed operating cost charged to each firm for this step
        mode: ANNUAL or MONTHLY; sets capacity, depreciation and interest pro-ration

    Returns:
        StepOutcome with the updated companies (same order) and a StepResult per id
    """
    shares = allocate_market(companies, decisions, config)

    updated: List[Company] = []
    results: Dict[str, StepResult] = {}
    for company in companies:
        if not company.is_active:
            result = _frozen_step(company, decisions.get(company.id))
        else:
            result = _step_company(
                company,
                decisions[company.id],
                shares[company.id],
                step_demand,
                fixed_costs,
                mode,
                config,
            )
        results[company.id] = result
        updated.append(company.with_balance(result.balance, result.status))

    return StepOutcome(updated, results)


def _period_result_from_step(period: int, mode: StepMode, step: StepResult) -> PeriodResult:
    return PeriodResult(
        period=period,
        mode=mode,
        market_share=step.market_share,
        demand_assigned=step.demand_assigned,
        production=step.production,
        sales_units=step.sales_units,
        end_inventory_units=step.end_inventory_units,
        pnl=step.pnl,
        cash_end=step.balance.cash,
        equity_end=step.balance.equity,
        debt_end=step.balance.debt,
        machines_end=step.balance.machines,
        workers_end=step.balance.workers,
        status_end=step.status,
        machines_purchased=step.machines_purchased,
        capex_fulfilled=step.capex_fulfilled,
        loan_drawn=step.loan_drawn,
        loan_repaid=step.loan_repaid,
    )


@dataclass
class _MonthlyTotals:
    """Running sums of one firm's monthly steps."""

    market_share: float = 0.0
    demand_assigned: float = 0.0
    production: float = 0.0
    sales_units: float = 0.0
    pnl: PnL = field(default_factory=PnL.zero)
    machines_purchased: int = 0
    capex_fulfilled: bool = True
    loan_drawn: float = 0.0
    loan_repaid: float = 0.0

    def add(self, step: StepResult, weight: float, payroll_divisor: float) -> None:
        self.market_share += step.market_share * weight
        self.demand_assigned += step.demand_assigned
        self.production += step.production
        self.sales_units += step.sales_units
        self.pnl = self.pnl + replace(step.pnl, payroll=step.pnl.payroll / payroll_divisor)
        self.machines_purchased += step.machines_purchased
        self.capex_fulfilled = self.capex_fulfilled and step.capex_fulfilled
        self.loan_drawn += step.loan_drawn
        self.loan_repaid += step.loan_repaid

    def to_period_result(self, period: int, company: Company) -> PeriodResult:
        balance = company.balance
        return PeriodResult(
            period=period,
            mode=StepMode.MONTHLY,
            market_share=self.market_share,
            demand_assigned=self.demand_assigned,
            production=self.production,
            sales_units=self.sales_units,
            end_inventory_units=balance.inventory_units,
            pnl=self.pnl,
            cash_end=balance.cash,
            equity_end=balance.equity,
            debt_end=balance.debt,
            machines_end=balance.machines,
            workers_end=balance.workers,
            status_end=company.status,
            machines_purchased=self.machines_purchased,
            capex_fulfilled=self.capex_fulfilled,
            loan_drawn=self.loan_drawn,
            loan_repaid=self.loan_repaid,
        )


class PeriodOutcome(NamedTuple):
    companies: List[Company]
    results: Dict[str, PeriodResult]


def simulate_period(
    companies: Sequence[Company],
    decisions: Mapping[str, Decisions],
    period: int,
    config: SimulationConfig = CONFIG,
) -> PeriodOutcome:
    """
    Run one game period and summarize it per firm.

    Annual periods are a single step over the full year. Monthly periods
    run twelve steps with the same decisions, seasonal demand and a
    twelfth of the fixed costs each; flows are summed, market share is
    demand-weighted, and balances are those after the last month.
    """
    mode = step_mode_for_period(period, config)
    annual_demand = config.market.annual_demand
    annual_fixed = config.costs.fixed_costs_annual

    if mode == StepMode.ANNUAL:
        step = simulate_step(companies, decisions, annual_demand, annual_fixed, mode, config)
        results = {
            cid: _period_result_from_step(period, mode, result)
            for cid, result in step.results.items()
        }
        return PeriodOutcome(step.companies, results)

    months = config.game.months_per_year
    # Full-year payroll per step must be brought back to a monthly charge
    payroll_divisor = 1.0 if config.costs.prorate_payroll_by_step else float(months)

    totals = {c.id: _MonthlyTotals() for c in companies}
    current: List[Company] = list(companies)
    for weight in config.monthly_weights:
        step = simulate_step(
            current,
            decisions,
            annual_demand * weight,
            annual_fixed / months,
            mode,
            config,
        )
        current = step.companies
        for cid, result in step.results.items():
            totals[cid].add(result, weight, payroll_divisor)

    results = {c.id: totals[c.id].to_period_result(period, c) for c in current}
    return PeriodOutcome(current, results)
