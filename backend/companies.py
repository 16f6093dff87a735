"""
Business Game Data Model

Immutable records exchanged between the decision sources, the engine and
the game loop. A simulation step never edits a record: it builds new
balances and companies and hands them back to the caller.
"""

from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from typing import Dict, Optional


class CompanyStatus(str, Enum):
    ACTIVE = "active"
    BANKRUPT = "bankrupt"  # terminal


class StepMode(str, Enum):
    ANNUAL = "annual"
    MONTHLY = "monthly"


@dataclass(frozen=True, slots=True)
class Balance:
    """Abbreviated balance sheet plus the plant a firm operates."""

    cash: float
    inventory_units: float
    fixed_assets_net: float  # net book value of machines, never below 0
    equity: float
    debt: float
    machines: int
    workers: int

    def update(self, **changes) -> "Balance":
        return replace(self, **changes)


@dataclass(frozen=True, slots=True)
class Company:
    id: str
    name: str
    balance: Balance
    status: CompanyStatus = CompanyStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == CompanyStatus.ACTIVE

    def with_balance(self, balance: Balance, status: Optional[CompanyStatus] = None) -> "Company":
        return replace(self, balance=balance, status=status or self.status)


@dataclass(frozen=True, slots=True)
class Decisions:
    """
    One firm's commitments for a period.

    Values are taken as given; the engine clamps them where they are used
    (price floor, non-negative spend, integer headcount and machine counts).
    """

    # Commercial
    price: float
    marketing: float

    # Operations
    workers: float
    production_target: float

    # Capex
    machines_to_buy: float = 0

    # Finance
    loan_draw: float = 0.0  # new borrowing requested
    loan_repay: float = 0.0  # voluntary repayment requested


@dataclass(frozen=True, slots=True)
class PnL:
    """Income statement for one step or one aggregated period."""

    revenue: float = 0.0
    cogs: float = 0.0
    payroll: float = 0.0
    marketing: float = 0.0
    fixed_costs: float = 0.0
    ebitda: float = 0.0
    depreciation: float = 0.0
    ebit: float = 0.0
    interest: float = 0.0
    taxes: float = 0.0
    profit: float = 0.0

    @classmethod
    def zero(cls) -> "PnL":
        return cls()

    def __add__(self, other: "PnL") -> "PnL":
        if not isinstance(other, PnL):
            return NotImplemented
        return PnL(**{
            f.name: getattr(self, f.name) + getattr(other, f.name)
            for f in fields(PnL)
        })

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class StepResult:
    """What happened to one firm during one step (a year or a month)."""

    market_share: float
    demand_assigned: float
    production: float
    sales_units: float
    end_inventory_units: float
    pnl: PnL
    balance: Balance
    status: CompanyStatus

    # Outcome of the requests that the engine may clamp or cancel
    machines_purchased: int = 0
    capex_fulfilled: bool = True
    loan_drawn: float = 0.0
    loan_repaid: float = 0.0


@dataclass(frozen=True, slots=True)
class PeriodResult:
    """Snapshot of one firm at the end of one game period."""

    period: int
    mode: StepMode

    # Market & operations
    market_share: float
    demand_assigned: float
    production: float
    sales_units: float
    end_inventory_units: float

    # Financial statements
    pnl: PnL
    cash_end: float
    equity_end: float
    debt_end: float
    machines_end: int
    workers_end: int

    status_end: CompanyStatus

    # Request outcomes summed over the period's steps
    machines_purchased: int = 0
    capex_fulfilled: bool = True
    loan_drawn: float = 0.0
    loan_repaid: float = 0.0

    def to_dict(self) -> Dict[str, object]:
        data = asdict(self)
        data["mode"] = self.mode.value
        data["status_end"] = self.status_end.value
        return data
