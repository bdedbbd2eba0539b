"""Tests for the per-character skill tree."""

import random

import pytest

from idle_contractor.engine.recruitment import generate_skill_tree
from idle_contractor.graph.skill_tree import SkillTree
from idle_contractor.models.catalog import Catalog
from idle_contractor.models.character import Character, SkillNode
from idle_contractor.models.constants import Role, SkillEffectType


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _node(node_id: str, *requires: str, cost: int = 1, any_of: bool = False,
          group: str | None = None) -> SkillNode:
    return SkillNode(
        id=node_id,
        name=node_id.title(),
        effect_type=SkillEffectType.STAT,
        cost=cost,
        requires=list(requires),
        requires_any=any_of,
        effect_value=0.05,
        stat_target="damage",
        exclusive_group=group,
    )


def _diamond() -> list[SkillNode]:
    return [
        _node("root"),
        _node("left", "root", group="branch"),
        _node("right", "root", group="branch"),
        _node("cap", "left", "right", cost=3, any_of=True),
    ]


def _character(nodes: list[SkillNode], unlocked=(), points: int = 5) -> Character:
    return Character(id="c", name="Test", role=Role.WARRIOR, skill_tree=nodes,
                     unlocked_skills=list(unlocked), skill_points=points)


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------


def test_topological_order_puts_prerequisites_first():
    tree = SkillTree.build(_diamond())
    order = tree.topological_order()
    assert len(order) == 4
    assert order.index("root") < order.index("left") < order.index("cap")
    assert order.index("root") < order.index("right") < order.index("cap")
    assert tree.is_acyclic()


def test_roots_and_dependents():
    tree = SkillTree.build(_diamond())
    assert tree.roots() == ["root"]
    assert sorted(tree.dependents_of("root")) == ["left", "right"]
    assert tree.dependents_of("cap") == []


def test_cycle_is_detected():
    tree = SkillTree.build([_node("a", "b"), _node("b", "a"), _node("c")])
    assert not tree.is_acyclic()
    assert tree.topological_order() == ["c"]


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------


def test_root_available_from_start():
    nodes = _diamond()
    tree = SkillTree.build(nodes)
    assert tree.available_nodes(_character(nodes)) == ["root"]


def test_all_of_prerequisite_message():
    nodes = [_node("a"), _node("b"), _node("c", "a", "b")]
    tree = SkillTree.build(nodes)
    unmet = tree.unmet_requirements("c", _character(nodes, ["a"]))
    assert unmet == ["Requires a AND b"]


def test_any_of_prerequisite():
    nodes = _diamond()
    tree = SkillTree.build(nodes)
    assert tree.unmet_requirements("cap", _character(nodes, ["root"])) == ["Requires left OR right"]
    assert tree.can_unlock("cap", _character(nodes, ["root", "right"]))


def test_exclusive_group_blocks_sibling():
    nodes = _diamond()
    tree = SkillTree.build(nodes)
    unmet = tree.unmet_requirements("right", _character(nodes, ["root", "left"]))
    assert unmet == ["Excluded by left"]


def test_skill_point_and_duplicate_checks():
    nodes = _diamond()
    tree = SkillTree.build(nodes)
    poor = _character(nodes, ["root", "left"], points=2)
    assert tree.unmet_requirements("cap", poor) == ["Needs 3 skill point(s), has 2"]
    assert "Already unlocked" in tree.unmet_requirements("root", _character(nodes, ["root"]))
    assert tree.unmet_requirements("nope", poor) == ["Unknown skill node 'nope'"]


# ---------------------------------------------------------------------------
# Consistency
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "unlocked, expected",
    [
        ([], True),
        (["root"], True),
        (["root", "left", "cap"], True),
        (["left"], False),
        (["root", "cap"], False),
        (["root", "left", "right"], False),
        (["root", "ghost"], False),
    ],
)
def test_is_consistent(unlocked, expected):
    assert SkillTree.build(_diamond()).is_consistent(unlocked) is expected


@pytest.mark.parametrize("role", list(Role))
def test_generated_trees_are_well_formed(role):
    rng = random.Random(13)
    nodes, _archetype = generate_skill_tree(role, Catalog.defaults(), rng)
    tree = SkillTree.build(nodes)
    assert tree.is_acyclic()
    assert tree.roots() == ["root"]
    cap = tree.get_node("cap")
    assert cap is not None and cap.requires_any
    assert tree.get_node("t2_l").exclusive_group == tree.get_node("t2_r").exclusive_group
    assert tree.is_consistent(["root", "t2_l", "t3_l", "cap"])
    assert not tree.is_consistent(["root", "t2_l", "t2_r"])
