"""Simulate a guild sending parties on contracts for a stretch of game time.

Usage examples:
    python -m scripts.simulate_runs --contract rat_cellar --seconds 600
    python -m scripts.simulate_runs --plan-json '{"contract":"rat_cellar","recruits":["Mage"],"seconds":3600}'
    python -m scripts.simulate_runs --plan-file plan.json --model pressure --json
    python -m scripts.simulate_runs --contract goblin_camp --load save.json --save out.json
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from idle_contractor.engine.engine_config import RESOLUTION_MODELS, EngineConfig
from idle_contractor.engine.game_engine import GameEngine
from idle_contractor.models.catalog import Catalog
from idle_contractor.models.constants import Role
from idle_contractor.models.derived_stats import party_power
from idle_contractor.persistence.save_state import load_from_path, save_to_path

logger = logging.getLogger("simulate_runs")


@dataclass(slots=True)
class SimulationPlan:
    """What to do: who to hire and buy up front, then where to send everyone."""

    contract: str = "rat_cellar"
    seconds: float = 600.0
    step: float = 1.0
    recruits: list[Role] = field(default_factory=list)
    upgrades: list[str] = field(default_factory=list)
    starting_gold: int = 0
    seed: int | None = 0
    model: str = "instant"


@dataclass(slots=True)
class SimulationResult:
    contract: str
    seconds: float
    runs_completed: int
    gold: int
    total_gold_earned: int
    monsters_killed: int
    items_in_inventory: int
    materials: dict[str, int]
    party_power: int
    levels: dict[str, int]
    unlocked_contracts: list[str]
    messages: list[str] = field(default_factory=list)


class _SimClock:
    """Manually advanced clock handed to the engine."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def _json_safe(value: Any) -> Any:
    """Recursively normalize values for JSON serialization."""
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, set):
        return [_json_safe(v) for v in sorted(value)]
    if isinstance(value, Enum):
        return value.value
    return value


def _load_json_arg(raw_json: str | None, file_path: Path | None) -> dict[str, Any]:
    if raw_json is not None:
        payload = json.loads(raw_json)
    elif file_path is not None:
        payload = json.loads(file_path.read_text())
    else:
        return {}
    if not isinstance(payload, dict):
        raise ValueError("JSON payload must be an object")
    return payload


def _parse_role(value: Any) -> Role:
    if isinstance(value, Role):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        for role in Role:
            if role.value.lower() == text or role.name.lower() == text:
                return role
    raise ValueError(f"Unknown role: {value!r}")


def _plan_from_dict(data: dict[str, Any]) -> SimulationPlan:
    plan = SimulationPlan()
    if "contract" in data:
        plan.contract = str(data["contract"])
    if "seconds" in data:
        plan.seconds = float(data["seconds"])
    if "step" in data:
        plan.step = float(data["step"])
    if plan.seconds < 0 or plan.step <= 0:
        raise ValueError("seconds must be >= 0 and step must be > 0")
    plan.recruits = [_parse_role(r) for r in data.get("recruits", [])]
    plan.upgrades = [str(u) for u in data.get("upgrades", [])]
    if "starting_gold" in data:
        plan.starting_gold = int(data["starting_gold"])
    if "seed" in data:
        plan.seed = None if data["seed"] is None else int(data["seed"])
    if "model" in data:
        plan.model = str(data["model"])
    if plan.model not in RESOLUTION_MODELS:
        raise ValueError(f"model must be one of {RESOLUTION_MODELS}, got {plan.model!r}")
    return plan


def simulate(
    plan: SimulationPlan, *, engine: GameEngine | None = None
) -> tuple[SimulationResult, GameEngine]:
    """Run *plan* on a simulated clock. Returns the summary and the final engine."""
    clock = _SimClock()
    config = EngineConfig(resolution_model=plan.model, starting_gold=plan.starting_gold)
    catalog = Catalog.defaults()
    if engine is None:
        engine = GameEngine.new_game(catalog, config, seed=plan.seed, clock=clock)
    else:
        engine = GameEngine.from_state(engine.state, catalog, config, seed=plan.seed, clock=clock)
        clock.now = engine.state.last_tick
    messages: list[str] = []

    for role in plan.recruits:
        if not engine.recruit_adventurer(role):
            messages.append(f"could not recruit {role.value} (cost {engine.recruit_cost()})")
    for upgrade_id in plan.upgrades:
        if not engine.purchase_upgrade(upgrade_id):
            messages.append(f"could not buy upgrade {upgrade_id}")

    state = engine.state
    idle = [a.id for a in state.adventurers if a.id not in state.busy_ids()]
    party = idle[: config.max_party_size]
    if not engine.start_run(party, plan.contract, auto_repeat=True):
        messages.append(f"could not start {plan.contract} with {len(party)} adventurer(s)")

    end = clock.now + plan.seconds
    while clock.now < end:
        clock.now = min(end, clock.now + plan.step)
        engine.tick()
        engine.bus.clear()

    state = engine.state
    return SimulationResult(
        contract=plan.contract,
        seconds=plan.seconds,
        runs_completed=state.statistics.runs_completed,
        gold=state.gold,
        total_gold_earned=state.statistics.total_gold_earned,
        monsters_killed=state.statistics.monsters_killed,
        items_in_inventory=len(state.inventory),
        materials=dict(state.materials),
        party_power=party_power(state, catalog, party),
        levels={a.name: a.level for a in state.adventurers},
        unlocked_contracts=list(state.unlocked_contracts),
        messages=messages,
    ), engine


def _render_text_result(result: SimulationResult) -> str:
    lines = [
        f"contract: {result.contract}",
        f"simulated: {result.seconds:.0f}s",
        f"runs completed: {result.runs_completed}",
        f"monsters killed: {result.monsters_killed}",
        f"gold: {result.gold} (earned {result.total_gold_earned})",
        f"items in inventory: {result.items_in_inventory}",
        f"party power: {result.party_power}",
    ]
    if result.materials:
        mats = ", ".join(f"{mid}:{n}" for mid, n in sorted(result.materials.items()))
        lines.append(f"materials: {mats}")
    lines.append("levels:")
    lines.extend(f"  - {name}: {level}" for name, level in result.levels.items())
    lines.append(f"unlocked contracts: {', '.join(result.unlocked_contracts)}")
    if result.messages:
        lines.append("messages:")
        lines.extend(f"  - {msg}" for msg in result.messages)
    return "\n".join(lines)


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulate contract runs on a fake clock")
    plan_group = parser.add_mutually_exclusive_group(required=False)
    plan_group.add_argument("--plan-file", type=Path, help="Path to a simulation plan JSON file.")
    plan_group.add_argument("--plan-json", type=str, help="Inline simulation plan JSON object.")
    parser.add_argument("--contract", type=str, help="Contract id (overrides the plan).")
    parser.add_argument("--seconds", type=float, help="Game seconds to simulate.")
    parser.add_argument("--seed", type=int, help="RNG seed.")
    parser.add_argument("--model", choices=RESOLUTION_MODELS, help="Run resolution model.")
    parser.add_argument("--load", type=Path, help="Start from this save file.")
    parser.add_argument("--save", type=Path, help="Write the final state to this file.")
    parser.add_argument("--json", action="store_true", help="Emit machine-readable JSON output.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log engine activity.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    payload = _load_json_arg(args.plan_json, args.plan_file)
    for key in ("contract", "seconds", "seed", "model"):
        if getattr(args, key) is not None:
            payload[key] = getattr(args, key)
    plan = _plan_from_dict(payload)

    engine = None
    if args.load is not None:
        loaded = load_from_path(args.load)
        if loaded is None:
            parser.error(f"could not load save {args.load}")
        engine = GameEngine.from_state(loaded)

    result, engine = simulate(plan, engine=engine)
    if args.save is not None:
        save_to_path(engine.state, args.save)
        logger.info("state written to %s", args.save)

    if args.json:
        print(json.dumps(_json_safe(asdict(result)), indent=2))
        return
    print(_render_text_result(result))


if __name__ == "__main__":
    main()
