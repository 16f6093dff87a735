"""
Game Loop

Holds the period counter, the companies, the last decisions and each
company's result history, and advances the game one period at a time.

Every executed period produces a new GameState; previous states are never
touched, so a caller can keep them for comparison or undo.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from companies import Balance, Company, Decisions, PeriodResult, StepMode
from config import CONFIG, SimulationConfig
from decisions import (
    DecisionSource,
    PlayerDecisionSource,
    ScriptedCompetitor,
    default_competitor_decisions,
    default_player_decisions,
    estimate_market_avg_price,
    profile_for_company_id,
)
from engine import capacity_per_year, simulate_period, step_mode_for_period

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GameState:
    period: int
    companies: Tuple[Company, ...]
    last_decisions: Mapping[str, Decisions]
    history: Mapping[str, Tuple[PeriodResult, ...]]

    def is_finished(self, config: SimulationConfig = CONFIG) -> bool:
        return self.period > config.game.total_periods

    def company(self, company_id: str) -> Company:
        for company in self.companies:
            if company.id == company_id:
                return company
        raise KeyError(company_id)

    def last_result(self, company_id: str) -> Optional[PeriodResult]:
        results = self.history.get(company_id, ())
        return results[-1] if results else None


def create_initial_companies(config: SimulationConfig = CONFIG) -> List[Company]:
    """Four identical firms whose starting machines were bought out of capital."""
    game = config.game
    plant_value = game.initial_machines * config.plant.machine_cost
    names = (game.player_name,) + tuple(game.competitor_names)

    companies = []
    for idx, name in enumerate(names):
        company_id = game.player_id if idx == 0 else f"ai{idx}"
        balance = Balance(
            cash=game.initial_capital - plant_value,
            inventory_units=0.0,
            fixed_assets_net=plant_value,
            equity=game.initial_capital,
            debt=0.0,
            machines=game.initial_machines,
            workers=game.initial_workers,
        )
        companies.append(Company(id=company_id, name=name, balance=balance))
    return companies


def new_game(config: SimulationConfig = CONFIG) -> GameState:
    companies = create_initial_companies(config)
    last_decisions: Dict[str, Decisions] = {}
    for company in companies:
        if company.id == config.game.player_id:
            last_decisions[company.id] = default_player_decisions(config)
        else:
            last_decisions[company.id] = default_competitor_decisions(config)

    return GameState(
        period=1,
        companies=tuple(companies),
        last_decisions=last_decisions,
        history={c.id: () for c in companies},
    )


def advance(
    state: GameState,
    decisions: Mapping[str, Decisions],
    config: SimulationConfig = CONFIG,
) -> GameState:
    """
    Execute the current period with the given decisions.

    Raises:
        ValueError: if the game is over or a company has no decision
    """
    if state.is_finished(config):
        raise ValueError(f"game already finished after period {config.game.total_periods}")
    missing = [c.id for c in state.companies if c.id not in decisions]
    if missing:
        raise ValueError(f"missing decisions for {', '.join(missing)}")

    outcome = simulate_period(state.companies, decisions, state.period, config)

    history = {
        c.id: tuple(state.history.get(c.id, ())) + (outcome.results[c.id],)
        for c in outcome.companies
    }
    return GameState(
        period=state.period + 1,
        companies=tuple(outcome.companies),
        last_decisions={**state.last_decisions, **decisions},
        history=history,
    )


@dataclass(frozen=True)
class RankingRow:
    company_id: str
    name: str
    status: str
    equity: float
    cash: float
    cumulative_profit: float
    last_result: Optional[PeriodResult]


def ranking(state: GameState) -> List[RankingRow]:
    """Leaderboard: equity first, then cash, then cumulative profit."""
    rows = [
        RankingRow(
            company_id=c.id,
            name=c.name,
            status=c.status.value,
            equity=c.balance.equity,
            cash=c.balance.cash,
            cumulative_profit=sum(r.pnl.profit for r in state.history.get(c.id, ())),
            last_result=state.last_result(c.id),
        )
        for c in state.companies
    ]
    rows.sort(key=lambda r: (r.equity, r.cash, r.cumulative_profit), reverse=True)
    return rows


@dataclass(frozen=True)
class DecisionPreview:
    """What the player's form can tell before running a period."""

    mode: StepMode
    capacity_by_machines: float
    capacity_by_workers: float
    effective_capacity: float
    debt_cap: float
    remaining_debt_room: float
    capex_cost: float
    capex_affordable: bool


def decision_preview(
    company: Company,
    decisions: Decisions,
    period: int,
    config: SimulationConfig = CONFIG,
) -> DecisionPreview:
    balance = company.balance
    workers = max(0, math.floor(decisions.workers))
    debt_cap = balance.equity * config.finance.max_debt_multiple_of_equity
    capex_cost = max(0, math.floor(decisions.machines_to_buy)) * config.plant.machine_cost
    cash_after_finance = balance.cash + max(0.0, decisions.loan_draw) - max(0.0, decisions.loan_repay)

    return DecisionPreview(
        mode=step_mode_for_period(period, config),
        capacity_by_machines=balance.machines * config.plant.capacity_per_machine,
        capacity_by_workers=workers * config.plant.capacity_per_worker,
        effective_capacity=capacity_per_year(balance.machines, workers, config),
        debt_cap=debt_cap,
        remaining_debt_room=max(0.0, debt_cap - balance.debt),
        capex_cost=capex_cost,
        capex_affordable=cash_after_finance >= capex_cost,
    )


class Game:
    """
    One single-player game: the player against scripted competitors.

    Competitors decide from the company as it stands before the period,
    their own last result and the average price of the previous decisions.
    """

    def __init__(
        self,
        config: SimulationConfig = CONFIG,
        competitor_sources: Optional[Dict[str, DecisionSource]] = None,
    ):
        self.config = config
        self._competitor_overrides = competitor_sources or {}
        self.reset()

    def reset(self) -> GameState:
        self.state = new_game(self.config)
        player_id = self.config.game.player_id
        self.player = PlayerDecisionSource(self.state.last_decisions[player_id])
        self.sources: Dict[str, DecisionSource] = {player_id: self.player}
        for company in self.state.companies:
            if company.id == player_id:
                continue
            source = self._competitor_overrides.get(company.id)
            if source is None:
                source = ScriptedCompetitor(profile_for_company_id(company.id), self.config)
            self.sources[company.id] = source
        logger.info("New game with %d companies", len(self.state.companies))
        return self.state

    @property
    def player_company(self) -> Company:
        return self.state.company(self.config.game.player_id)

    @property
    def can_play(self) -> bool:
        return not self.state.is_finished(self.config)

    def submit_player_decisions(self, decisions: Decisions) -> None:
        self.player.submit(decisions)

    def preview(self) -> DecisionPreview:
        return decision_preview(self.player_company, self.player.pending, self.state.period, self.config)

    def collect_decisions(self) -> Dict[str, Decisions]:
        state = self.state
        market_avg = estimate_market_avg_price(state.companies, state.last_decisions, self.config)
        return {
            company.id: self.sources[company.id].produce_decisions(
                company, state.history.get(company.id, ()), market_avg
            )
            for company in state.companies
        }

    def play_period(self) -> GameState:
        period = self.state.period
        decisions = self.collect_decisions()
        self.state = advance(self.state, decisions, self.config)

        statuses = ", ".join(f"{c.id}={c.status.value}" for c in self.state.companies)
        logger.info(
            "Period %d (%s) done: %s",
            period, step_mode_for_period(period, self.config).value, statuses,
        )
        return self.state

    def ranking(self) -> List[RankingRow]:
        return ranking(self.state)
