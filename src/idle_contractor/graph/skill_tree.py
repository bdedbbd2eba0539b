"""Per-character skill tree with prerequisite evaluation.

Each character owns a small DAG of SkillNodes. A node's prerequisites
are either all-of (requires_any=False) or any-of (requires_any=True)
its parents. Nodes in the same exclusive_group block each other once
one of them is unlocked.

The tree answers "can this character unlock node X right now?" and
"is this unlocked set still consistent?", the latter being the invariant
that unlocked nodes are reachable from roots through satisfied edges.
"""

from __future__ import annotations

from collections import defaultdict, deque

from idle_contractor.models.character import Character, SkillNode


def _prerequisites_met(node: SkillNode, unlocked: set[str]) -> bool:
    if not node.requires:
        return True
    if node.requires_any:
        return any(req in unlocked for req in node.requires)
    return all(req in unlocked for req in node.requires)


def _describe_prerequisites(node: SkillNode) -> str:
    if len(node.requires) == 1:
        return f"Requires {node.requires[0]}"
    joiner = " OR " if node.requires_any else " AND "
    return "Requires " + joiner.join(node.requires)


class SkillTree:
    """DAG view over a list of SkillNodes."""

    __slots__ = ("_nodes", "_reverse_deps")

    def __init__(self) -> None:
        self._nodes: dict[str, SkillNode] = {}
        self._reverse_deps: dict[str, list[str]] = defaultdict(list)

    # --- Construction --------------------------------------------------------

    @classmethod
    def build(cls, nodes: list[SkillNode]) -> SkillTree:
        tree = cls()
        for node in nodes:
            tree._nodes[node.id] = node
            for req in node.requires:
                if node.id not in tree._reverse_deps[req]:
                    tree._reverse_deps[req].append(node.id)
        return tree

    @classmethod
    def for_character(cls, character: Character) -> SkillTree:
        return cls.build(character.skill_tree)

    # --- Queries -------------------------------------------------------------

    def get_node(self, node_id: str) -> SkillNode | None:
        return self._nodes.get(node_id)

    def roots(self) -> list[str]:
        return [nid for nid, node in self._nodes.items() if not node.requires]

    def dependents_of(self, node_id: str) -> list[str]:
        return list(self._reverse_deps.get(node_id, []))

    def topological_order(self) -> list[str]:
        """All node ids, prerequisites before dependents (Kahn's algorithm)."""
        in_degree = {
            nid: sum(1 for req in node.requires if req in self._nodes)
            for nid, node in self._nodes.items()
        }
        queue: deque[str] = deque(nid for nid, deg in in_degree.items() if deg == 0)
        result: list[str] = []
        while queue:
            nid = queue.popleft()
            result.append(nid)
            for dependent in self._reverse_deps.get(nid, []):
                if dependent in in_degree:
                    in_degree[dependent] -= 1
                    if in_degree[dependent] == 0:
                        queue.append(dependent)
        return result

    def is_acyclic(self) -> bool:
        return len(self.topological_order()) == len(self._nodes)

    # --- Eligibility ---------------------------------------------------------

    def _exclusive_conflict(self, node: SkillNode, unlocked: set[str]) -> str | None:
        if node.exclusive_group is None:
            return None
        for other_id in unlocked:
            other = self._nodes.get(other_id)
            if other is not None and other.id != node.id and other.exclusive_group == node.exclusive_group:
                return other.id
        return None

    def can_unlock(self, node_id: str, character: Character) -> bool:
        return not self.unmet_requirements(node_id, character)

    def available_nodes(self, character: Character) -> list[str]:
        return [nid for nid in self._nodes if self.can_unlock(nid, character)]

    def unmet_requirements(self, node_id: str, character: Character) -> list[str]:
        """Human-readable reasons *node_id* cannot be unlocked (empty if it can)."""
        node = self._nodes.get(node_id)
        if node is None:
            return [f"Unknown skill node {node_id!r}"]

        unlocked = set(character.unlocked_skills)
        unmet: list[str] = []
        if node_id in unlocked:
            unmet.append("Already unlocked")
        if character.skill_points < node.cost:
            unmet.append(f"Needs {node.cost} skill point(s), has {character.skill_points}")
        if not _prerequisites_met(node, unlocked):
            unmet.append(_describe_prerequisites(node))
        conflict = self._exclusive_conflict(node, unlocked)
        if conflict is not None:
            unmet.append(f"Excluded by {conflict}")
        return unmet

    def is_consistent(self, unlocked_ids: list[str]) -> bool:
        """True if every unlocked node is reachable from a root.

        Walks the tree in topological order so each node is checked
        against prerequisites that are themselves already validated.
        """
        unlocked = set(unlocked_ids)
        if not unlocked <= set(self._nodes):
            return False
        reached: set[str] = set()
        groups: set[str] = set()
        for nid in self.topological_order():
            if nid not in unlocked:
                continue
            node = self._nodes[nid]
            if not _prerequisites_met(node, reached):
                return False
            if node.exclusive_group is not None:
                if node.exclusive_group in groups:
                    return False
                groups.add(node.exclusive_group)
            reached.add(nid)
        return reached == unlocked
