"""
Decision Sources

Anything that can fill in a firm's Decisions for the coming period: the
player's form or a scripted competitor. The engine never cares which.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Mapping, Optional, Sequence

from companies import Company, Decisions, PeriodResult
from config import CONFIG, SimulationConfig

PROFILES = ("balanced", "aggressive", "conservative")


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class DecisionSource(ABC):
    """Produces one firm's decisions from its state and its own history."""

    @abstractmethod
    def produce_decisions(
        self,
        company: Company,
        history: Sequence[PeriodResult],
        market_avg_price: float,
    ) -> Decisions:
        raise NotImplementedError


class PlayerDecisionSource(DecisionSource):
    """Returns whatever the player last submitted, within the form minimums."""

    def __init__(self, initial: Decisions):
        self.pending = sanitize_player_decisions(initial)

    def submit(self, decisions: Decisions) -> None:
        self.pending = sanitize_player_decisions(decisions)

    def produce_decisions(self, company, history, market_avg_price) -> Decisions:
        return self.pending


class ScriptedCompetitor(DecisionSource):
    """
    Rule-of-thumb competitor with a fixed behavioral profile.

    - balanced: prices at the market average
    - aggressive: undercuts, spends more on marketing, runs the plant hot
    - conservative: prices above average and protects cash

    After a loss it raises prices and cuts back; with a small share it
    pushes marketing. All behavior is deterministic.
    """

    def __init__(self, profile: str = "balanced", config: SimulationConfig = CONFIG):
        if profile not in PROFILES:
            raise ValueError(f"profile must be one of {PROFILES}, got {profile!r}")
        self.profile = profile
        self.config = config

    def _profile_parameters(self):
        cfg = self.config.competitors
        return (
            getattr(cfg, f"{self.profile}_price_factor"),
            getattr(cfg, f"{self.profile}_marketing_fraction"),
            getattr(cfg, f"{self.profile}_target_utilization"),
        )

    def produce_decisions(
        self,
        company: Company,
        history: Sequence[PeriodResult],
        market_avg_price: float,
    ) -> Decisions:
        cfg = self.config.competitors
        plant = self.config.plant
        balance = company.balance
        last: Optional[PeriodResult] = history[-1] if history else None

        base_price = market_avg_price if market_avg_price > 0 else cfg.fallback_market_price
        price_factor, marketing_fraction, target_util = self._profile_parameters()
        price = base_price * price_factor

        if last is not None:
            if last.pnl.profit < 0:
                price *= cfg.loss_price_factor
                marketing_fraction *= cfg.loss_marketing_factor
                target_util *= cfg.loss_utilization_factor
            if last.market_share < cfg.low_share_threshold:
                marketing_fraction *= cfg.low_share_marketing_factor

        marketing = math.floor(_clamp(balance.cash * marketing_fraction, 0.0, cfg.max_marketing_spend))

        max_by_machines = balance.machines * plant.capacity_per_machine
        production_target = math.floor(max_by_machines * target_util)
        workers = max(0, math.ceil(production_target / plant.capacity_per_worker))

        machines_to_buy = 0
        if balance.cash > cfg.capex_cash_threshold and target_util > cfg.capex_utilization_threshold:
            machines_to_buy = cfg.capex_machines

        loan_draw = 0.0
        if balance.cash < cfg.loan_cash_threshold and balance.equity > cfg.loan_equity_threshold:
            loan_draw = cfg.loan_draw_amount

        loan_repay = 0.0
        if balance.cash > cfg.repay_cash_threshold and balance.debt > 0:
            loan_repay = min(cfg.repay_max_amount, balance.debt)

        return Decisions(
            price=float(math.floor(price + 0.5)),
            marketing=float(marketing),
            workers=workers,
            production_target=float(production_target),
            machines_to_buy=machines_to_buy,
            loan_draw=loan_draw,
            loan_repay=loan_repay,
        )


def profile_for_company_id(company_id: str) -> str:
    if company_id == "ai1":
        return "balanced"
    if company_id == "ai2":
        return "aggressive"
    return "conservative"


def estimate_market_avg_price(
    companies: Sequence[Company],
    decisions: Mapping[str, Decisions],
    config: SimulationConfig = CONFIG,
) -> float:
    """Plain mean of the prices active firms last asked."""
    prices = [decisions[c.id].price for c in companies if c.is_active and c.id in decisions]
    if not prices:
        return config.competitors.fallback_market_price
    return sum(prices) / len(prices)


def default_player_decisions(config: SimulationConfig = CONFIG) -> Decisions:
    game = config.game
    return Decisions(
        price=game.default_player_price,
        marketing=game.default_player_marketing,
        workers=game.default_player_workers,
        production_target=game.default_player_production,
    )


def default_competitor_decisions(config: SimulationConfig = CONFIG) -> Decisions:
    game = config.game
    return Decisions(
        price=game.default_competitor_price,
        marketing=game.default_competitor_marketing,
        workers=game.default_competitor_workers,
        production_target=game.default_competitor_production,
    )


def sanitize_player_decisions(decisions: Decisions) -> Decisions:
    """Apply the form minimums: nothing negative, counts are whole numbers."""
    return replace(
        decisions,
        price=max(0.0, decisions.price),
        marketing=max(0.0, decisions.marketing),
        workers=max(0, math.floor(decisions.workers)),
        production_target=max(0.0, decisions.production_target),
        machines_to_buy=max(0, math.floor(decisions.machines_to_buy)),
        loan_draw=max(0.0, decisions.loan_draw),
        loan_repay=max(0.0, decisions.loan_repay),
    )
