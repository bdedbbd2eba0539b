"""JSON save files for GameState.

A save is the whole state tree as plain JSON under a small envelope:

    {"version": 1, "state": {...}}

Loading is all-or-nothing. A payload that fails validation (missing or
non-numeric gold, adventurers not a list, malformed records) yields None
and the caller keeps its current state.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from enum import Enum
from pathlib import Path
from typing import Any

from idle_contractor.models.character import (
    SLOT_TYPES,
    BaseStats,
    Character,
    SkillNode,
    Trait,
)
from idle_contractor.models.constants import (
    CombatStatus,
    ItemType,
    Modifier,
    Rarity,
    Role,
    SkillEffectType,
    StatTarget,
    TraitType,
    WeaponType,
)
from idle_contractor.models.effect import Operation, StatModifier
from idle_contractor.models.game_state import (
    ActiveConsumable,
    ActiveRun,
    CombatantState,
    CombatState,
    EnemyCombatState,
    GameState,
    GuildMastery,
    LootFilter,
    MasteryProgress,
    RunReport,
    RunSnapshot,
    Statistics,
)
from idle_contractor.models.item import Item, ItemStat

logger = logging.getLogger(__name__)

SAVE_VERSION = 1


def _json_safe(value: Any) -> Any:
    """Recursively normalize values for JSON serialization."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {_json_safe(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, set):
        try:
            ordered = sorted(value)
        except TypeError:
            ordered = sorted(value, key=repr)
        return [_json_safe(v) for v in ordered]
    return value


# ---------------------------------------------------------------------------
# Dump
# ---------------------------------------------------------------------------


def state_to_dict(state: GameState) -> dict[str, Any]:
    return _json_safe(asdict(state))


def dump_state(state: GameState, *, indent: int | None = None) -> str:
    payload = {"version": SAVE_VERSION, "state": state_to_dict(state)}
    return json.dumps(payload, indent=indent, sort_keys=True)


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------


def _modifier(data: dict) -> StatModifier:
    return StatModifier(StatTarget(data["target"]), Operation(data["operation"]), data["value"])


def _item(data: dict) -> Item:
    return Item(
        id=data["id"],
        name=data["name"],
        type=ItemType(data["type"]),
        rarity=Rarity(data["rarity"]),
        level=int(data["level"]),
        stats=[
            ItemStat(s["name"], s["value"], bool(s.get("is_percentage", False)), int(s.get("tier", 5)))
            for s in data.get("stats", [])
        ],
        value=int(data.get("value", 0)),
        subtype=WeaponType(data.get("subtype", WeaponType.NONE.value)),
        class_restriction=[Role(r) for r in data.get("class_restriction", [])],
        potential=int(data.get("potential", 0)),
        visual_tier=data.get("visual_tier", "D"),
        set_id=data.get("set_id"),
        unique_effect_id=data.get("unique_effect_id"),
        identity_tag=data.get("identity_tag"),
    )


def _node(data: dict) -> SkillNode:
    modifier = data.get("modifier")
    return SkillNode(
        id=data["id"],
        name=data["name"],
        effect_type=SkillEffectType(data["effect_type"]),
        cost=int(data.get("cost", 1)),
        requires=list(data.get("requires", [])),
        requires_any=bool(data.get("requires_any", False)),
        effect_value=float(data.get("effect_value", 0.0)),
        stat_target=data.get("stat_target"),
        modifier=Modifier(modifier) if modifier else None,
        exclusive_group=data.get("exclusive_group"),
        description=data.get("description", ""),
    )


def _character(data: dict) -> Character:
    slots: dict[ItemType, Item | None] = {slot: None for slot in SLOT_TYPES}
    for key, raw in (data.get("slots") or {}).items():
        slots[ItemType(key)] = _item(raw) if raw else None
    return Character(
        id=data["id"],
        name=data["name"],
        role=Role(data["role"]),
        rarity=Rarity(data.get("rarity", Rarity.COMMON.value)),
        title=data.get("title", ""),
        archetype=data.get("archetype", ""),
        level=int(data.get("level", 1)),
        xp=int(data.get("xp", 0)),
        xp_to_next_level=int(data.get("xp_to_next_level", 100)),
        skill_points=int(data.get("skill_points", 0)),
        base_stats=BaseStats(**data.get("base_stats", {})),
        slots=slots,
        traits=[
            Trait(
                id=t["id"],
                name=t["name"],
                type=TraitType(t["type"]),
                modifiers=[_modifier(m) for m in t.get("modifiers", [])],
                description=t.get("description", ""),
            )
            for t in data.get("traits", [])
        ],
        skill_tree=[_node(n) for n in data.get("skill_tree", [])],
        unlocked_skills=list(data.get("unlocked_skills", [])),
    )


def _combat(data: dict | None) -> CombatState | None:
    if not data:
        return None
    return CombatState(
        status=CombatStatus(data["status"]),
        enemy=EnemyCombatState(**data["enemy"]),
        combatants={cid: CombatantState(**c) for cid, c in data["combatants"].items()},
        pressure_dps=data["pressure_dps"],
        total_duration=data["total_duration"],
        elapsed=data.get("elapsed", 0.0),
        time_remaining=data.get("time_remaining", 0.0),
        kills=int(data.get("kills", 0)),
        boss_spawned=bool(data.get("boss_spawned", False)),
    )


def _run(data: dict) -> ActiveRun:
    snap = data.get("snapshot", {})
    return ActiveRun(
        id=data["id"],
        contract_id=data["contract_id"],
        adventurer_ids=list(data["adventurer_ids"]),
        start_time=float(data["start_time"]),
        duration=float(data["duration"]),
        snapshot=RunSnapshot(
            dps=snap.get("dps", 0.0),
            power=int(snap.get("power", 0)),
            gold_bonus=snap.get("gold_bonus", 0.0),
            xp_bonus=snap.get("xp_bonus", 0.0),
            loot_bonus=snap.get("loot_bonus", 0.0),
            active_modifiers=[Modifier(m) for m in snap.get("active_modifiers", [])],
        ),
        adventurer_state={
            aid: _character(c) for aid, c in data.get("adventurer_state", {}).items()
        },
        modified_slots={
            aid: [ItemType(s) for s in slots]
            for aid, slots in data.get("modified_slots", {}).items()
        },
        auto_repeat=bool(data.get("auto_repeat", False)),
        runs_remaining=data.get("runs_remaining", 1),
        total_runs=int(data.get("total_runs", 1)),
        combat=_combat(data.get("combat")),
    )


def _report(data: dict) -> RunReport:
    return RunReport(
        id=data["id"],
        run_id=data["run_id"],
        contract_id=data["contract_id"],
        contract_name=data.get("contract_name", ""),
        success=bool(data.get("success", False)),
        kills=int(data.get("kills", 0)),
        gold_earned=int(data.get("gold_earned", 0)),
        xp_earned=int(data.get("xp_earned", 0)),
        items_found=[_item(i) for i in data.get("items_found", [])],
        materials_found=dict(data.get("materials_found", {})),
        auto_salvaged_count=int(data.get("auto_salvaged_count", 0)),
        auto_salvaged_gold=int(data.get("auto_salvaged_gold", 0)),
        timestamp=float(data.get("timestamp", 0.0)),
    )


def _loot_filter(data: dict) -> LootFilter:
    loot_filter = LootFilter()
    if "enabled" in data:
        if not isinstance(data["enabled"], bool):
            raise ValueError("loot_filter.enabled must be a bool")
        loot_filter.enabled = data["enabled"]
    if "min_rarity" in data:
        loot_filter.min_rarity = Rarity(data["min_rarity"])
    if "keep_types" in data:
        loot_filter.keep_types = [ItemType(t) for t in data["keep_types"]]
    if "match_any_stat" in data:
        loot_filter.match_any_stat = list(data["match_any_stat"])
    return loot_filter


def _mastery(data: dict) -> GuildMastery:
    def track(name: str) -> MasteryProgress:
        raw = data.get(name) or {}
        return MasteryProgress(level=int(raw.get("level", 0)), xp=int(raw.get("xp", 0)))

    return GuildMastery(
        combat=track("combat"), gathering=track("gathering"), fishing=track("fishing")
    )


def state_from_dict(data: dict[str, Any]) -> GameState:
    """Rebuild a GameState. Raises KeyError/TypeError/ValueError on bad data."""
    gold = data.get("gold")
    if isinstance(gold, bool) or not isinstance(gold, (int, float)):
        raise ValueError("gold must be a number")
    if not isinstance(data.get("adventurers"), list):
        raise ValueError("adventurers must be a list")

    return GameState(
        gold=int(gold),
        reset_currency=int(data.get("reset_currency", 0)),
        reset_count=int(data.get("reset_count", 0)),
        adventurers=[_character(c) for c in data["adventurers"]],
        inventory=[_item(i) for i in data.get("inventory", [])],
        materials={k: int(v) for k, v in data.get("materials", {}).items()},
        active_runs=[_run(r) for r in data.get("active_runs", [])],
        unlocked_contracts=list(data.get("unlocked_contracts", [])),
        upgrades={k: int(v) for k, v in data.get("upgrades", {}).items()},
        permanent_upgrades={k: int(v) for k, v in data.get("permanent_upgrades", {}).items()},
        loot_filter=_loot_filter(data.get("loot_filter", {})),
        statistics=Statistics(**data.get("statistics", {})),
        recent_reports=[_report(r) for r in data.get("recent_reports", [])],
        last_parties={k: list(v) for k, v in data.get("last_parties", {}).items()},
        legendary_pity=int(data.get("legendary_pity", 0)),
        active_consumables=[
            ActiveConsumable(c["consumable_id"], float(c["expires_at"]))
            for c in data.get("active_consumables", [])
        ],
        mastery=_mastery(data.get("mastery", {})),
        last_tick=float(data.get("last_tick", 0.0)),
    )


def load_state(text: str) -> GameState | None:
    """Parse a save. Returns None when the payload is not a valid save."""
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as exc:
        logger.warning("save rejected: not JSON (%s)", exc)
        return None
    if isinstance(payload, dict) and isinstance(payload.get("state"), dict):
        payload = payload["state"]
    if not isinstance(payload, dict):
        logger.warning("save rejected: top level is not an object")
        return None
    try:
        return state_from_dict(payload)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        logger.warning("save rejected: %s", exc)
        return None


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


def save_to_path(state: GameState, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_state(state, indent=2), encoding="utf-8")
    return path


def load_from_path(path: Path) -> GameState | None:
    if not path.exists():
        return None
    return load_state(path.read_text(encoding="utf-8"))
