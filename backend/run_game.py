"""
Run a complete business game from the command line.

The player seat is driven by a scripted profile so the whole game can be
played unattended. Each period's results are printed as a table, followed
by the final ranking. Use --summary to also write the results as JSON.
"""

import argparse
import json
import logging
import time
from pathlib import Path
from typing import Dict, List, Optional

from config import CONFIG
from decisions import PROFILES, ScriptedCompetitor, estimate_market_avg_price
from game import Game, GameState


def print_section(title):
    """Print a formatted section header."""
    print("\n" + "=" * 100)
    print(f"  {title}")
    print("=" * 100)


def print_period_table(state: GameState, period: int):
    """Print one row per company for the given period."""
    print(f"\n--- Period {period} ---")
    print(f"{'Company':<15} {'Mode':<8} {'Share':<7} {'Sold':<9} {'Revenue':<13} "
          f"{'Profit':<13} {'Cash':<13} {'Equity':<13} {'Status':<9}")
    print("-" * 100)

    for company in state.companies:
        result = state.history[company.id][period - 1]
        print(f"{company.name:<15} {result.mode.value:<8} {result.market_share:<7.1%} "
              f"{result.sales_units:<9,.0f} ${result.pnl.revenue:<12,.0f} "
              f"${result.pnl.profit:<12,.0f} ${result.cash_end:<12,.0f} "
              f"${result.equity_end:<12,.0f} {result.status_end.value:<9}")


def build_summary(game: Game, elapsed: float) -> Dict[str, object]:
    state = game.state
    return {
        "periods_played": state.period - 1,
        "elapsed_seconds": elapsed,
        "ranking": [
            {
                "id": row.company_id,
                "name": row.name,
                "status": row.status,
                "equity": row.equity,
                "cash": row.cash,
                "cumulative_profit": row.cumulative_profit,
            }
            for row in game.ranking()
        ],
        "history": {
            cid: [r.to_dict() for r in results]
            for cid, results in state.history.items()
        },
    }


def main(player_profile: str = "balanced", periods: Optional[int] = None, summary_path: Optional[str] = None):
    player_id = CONFIG.game.player_id
    game = Game(CONFIG)
    autopilot = ScriptedCompetitor(player_profile, CONFIG)

    total = CONFIG.game.total_periods if periods is None else min(periods, CONFIG.game.total_periods)
    print_section(f"BUSINESS GAME - {total} periods, player profile '{player_profile}'")

    start = time.time()
    played: List[int] = []
    while game.can_play and len(played) < total:
        state = game.state
        decisions = autopilot.produce_decisions(
            game.player_company,
            state.history.get(player_id, ()),
            estimate_market_avg_price(state.companies, state.last_decisions, CONFIG),
        )
        game.submit_player_decisions(decisions)
        period = state.period
        game.play_period()
        played.append(period)
        print_period_table(game.state, period)

    elapsed = time.time() - start
    if not game.player_company.is_active:
        print("\nPlayer company is bankrupt; competitors played on.")

    print_section("FINAL RANKING")
    for pos, row in enumerate(game.ranking(), start=1):
        print(f"  {pos}. {row.name:<15} equity ${row.equity:>12,.0f} | cash ${row.cash:>12,.0f} | "
              f"cumulative profit ${row.cumulative_profit:>12,.0f} | {row.status}")

    if summary_path:
        path = Path(summary_path)
        path.write_text(json.dumps(build_summary(game, elapsed), indent=2))
        print(f"\nSummary written to {path}")

    return game


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Run a business game with a scripted player.")
    parser.add_argument("--player-profile", choices=PROFILES, default="balanced",
                        help="Scripted profile used for the player seat")
    parser.add_argument("--periods", type=int, default=None, help="Stop after this many periods")
    parser.add_argument("--summary", type=str, default=None, help="Write a JSON summary to this path")
    args = parser.parse_args()

    main(
        player_profile=args.player_profile,
        periods=args.periods,
        summary_path=args.summary,
    )
