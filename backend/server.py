import logging
import os
import sys

# Add current directory to path so we can import backend modules
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from companies import Decisions
from config import CONFIG
from game import Game, GameState

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Business Game", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class DecisionsModel(BaseModel):
    """Player form; minimums only, the engine clamps the rest."""
    price: float = Field(CONFIG.game.default_player_price, ge=0)
    marketing: float = Field(CONFIG.game.default_player_marketing, ge=0)
    workers: float = Field(CONFIG.game.default_player_workers, ge=0)
    productionTarget: float = Field(CONFIG.game.default_player_production, ge=0)
    machinesToBuy: float = Field(0, ge=0)
    loanDraw: float = Field(0.0, ge=0)
    loanRepay: float = Field(0.0, ge=0)

    def to_decisions(self) -> Decisions:
        return Decisions(
            price=self.price,
            marketing=self.marketing,
            workers=self.workers,
            production_target=self.productionTarget,
            machines_to_buy=self.machinesToBuy,
            loan_draw=self.loanDraw,
            loan_repay=self.loanRepay,
        )


def _decisions_payload(d: Decisions) -> Dict[str, float]:
    return {
        "price": d.price,
        "marketing": d.marketing,
        "workers": d.workers,
        "productionTarget": d.production_target,
        "machinesToBuy": d.machines_to_buy,
        "loanDraw": d.loan_draw,
        "loanRepay": d.loan_repay,
    }


def _result_payload(r) -> Dict[str, Any]:
    return {
        "period": r.period,
        "mode": r.mode.value,
        "marketShare": r.market_share,
        "demandAssigned": r.demand_assigned,
        "production": r.production,
        "salesUnits": r.sales_units,
        "endInventoryUnits": r.end_inventory_units,
        "pnl": r.pnl.to_dict(),
        "cashEnd": r.cash_end,
        "equityEnd": r.equity_end,
        "debtEnd": r.debt_end,
        "machinesEnd": r.machines_end,
        "workersEnd": r.workers_end,
        "statusEnd": r.status_end.value,
        "machinesPurchased": r.machines_purchased,
        "capexFulfilled": r.capex_fulfilled,
        "loanDrawn": r.loan_drawn,
        "loanRepaid": r.loan_repaid,
    }


class GameManager:
    def __init__(self):
        self.game = Game(CONFIG)

    def reset(self) -> GameState:
        logger.info("Resetting game")
        return self.game.reset()

    def submit(self, model: DecisionsModel) -> None:
        self.game.submit_player_decisions(model.to_decisions())

    def run(self) -> GameState:
        if self.game.state.is_finished(CONFIG):
            raise ValueError("game already finished")
        return self.game.play_period()

    def preview(self) -> Dict[str, Any]:
        p = self.game.preview()
        return {
            "mode": p.mode.value,
            "capacityByMachines": p.capacity_by_machines,
            "capacityByWorkers": p.capacity_by_workers,
            "effectiveCapacity": p.effective_capacity,
            "debtCap": p.debt_cap,
            "remainingDebtRoom": p.remaining_debt_room,
            "capexCost": p.capex_cost,
            "capexAffordable": p.capex_affordable,
        }

    def snapshot(self) -> Dict[str, Any]:
        state = self.game.state
        companies = []
        for c in state.companies:
            b = c.balance
            companies.append({
                "id": c.id,
                "name": c.name,
                "status": c.status.value,
                "balance": {
                    "cash": b.cash,
                    "inventoryUnits": b.inventory_units,
                    "fixedAssetsNet": b.fixed_assets_net,
                    "equity": b.equity,
                    "debt": b.debt,
                    "machines": b.machines,
                    "workers": b.workers,
                },
                "history": [_result_payload(r) for r in state.history.get(c.id, ())],
            })

        return {
            "period": min(state.period, CONFIG.game.total_periods),
            "totalPeriods": CONFIG.game.total_periods,
            "finished": state.is_finished(CONFIG),
            "canPlay": self.game.can_play,
            "playerDecisions": _decisions_payload(self.game.player.pending),
            "lastDecisions": {cid: _decisions_payload(d) for cid, d in state.last_decisions.items()},
            "companies": companies,
            "ranking": [
                {
                    "id": row.company_id,
                    "name": row.name,
                    "status": row.status,
                    "equity": row.equity,
                    "cash": row.cash,
                    "cumulativeProfit": row.cumulative_profit,
                }
                for row in self.game.ranking()
            ],
        }


manager = GameManager()


@app.get("/api/state")
def get_state():
    return manager.snapshot()


@app.get("/api/preview")
def get_preview():
    return manager.preview()


@app.post("/api/decisions")
def post_decisions(model: DecisionsModel):
    manager.submit(model)
    return manager.preview()


@app.post("/api/run")
def post_run(model: Optional[DecisionsModel] = None):
    if model is not None:
        manager.submit(model)
    try:
        manager.run()
    except ValueError as e:
        logger.warning("Run rejected: %s", e)
        raise HTTPException(status_code=409, detail=str(e))
    return manager.snapshot()


@app.post("/api/reset")
def post_reset():
    manager.reset()
    return manager.snapshot()


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()
    logger.info("WebSocket connected")

    try:
        while True:
            data = await websocket.receive_json()
            command = data.get("command")

            if command == "STATE":
                await websocket.send_json({"type": "STATE", "state": manager.snapshot()})
            elif command == "DECISIONS":
                try:
                    model = DecisionsModel(**data.get("decisions", {}))
                except ValueError as e:
                    await websocket.send_json({"type": "ERROR", "error": str(e)})
                    continue
                manager.submit(model)
                await websocket.send_json({"type": "PREVIEW", "preview": manager.preview()})
            elif command == "RUN":
                try:
                    manager.run()
                except ValueError as e:
                    await websocket.send_json({"type": "ERROR", "error": str(e)})
                    continue
                await websocket.send_json({"type": "STATE", "state": manager.snapshot()})
            elif command == "RESET":
                manager.reset()
                await websocket.send_json({"type": "STATE", "state": manager.snapshot()})
            else:
                await websocket.send_json({"type": "ERROR", "error": f"unknown command {command!r}"})

    except WebSocketDisconnect:
        logger.info("Client disconnected")
