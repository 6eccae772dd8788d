"""
Stack resource view: exported state as nodes, and target expansion.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable
from typing import Any

from nebula.core.models.stack import ResourceNode

logger = logging.getLogger(__name__)

STACK_RESOURCE_TYPE = "pulumi:pulumi:Stack"


def _state_resources(state: Any) -> list[dict[str, Any]]:
    deployment = getattr(state, "deployment", None)
    if deployment is None and isinstance(state, dict):
        deployment = state.get("deployment", state)
    if not isinstance(deployment, dict):
        return []
    resources = deployment.get("resources") or []
    return [r for r in resources if isinstance(r, dict)]


def export_resources(stack: Any) -> list[ResourceNode]:
    """Export the stack's state and flatten it into resource nodes."""
    state = stack.export_stack()
    nodes: list[ResourceNode] = []
    for entry in _state_resources(state):
        node = ResourceNode.from_state(entry)
        if node is not None:
            nodes.append(node)
    logger.debug("[%s] exported %d resource(s)", getattr(stack, "name", "<stack>"), len(nodes))
    return nodes


def selectable_resources(nodes: Iterable[ResourceNode]) -> list[ResourceNode]:
    """Resources an operator may target: no stack root, composites first, then by type."""
    candidates = [n for n in nodes if n.type != STACK_RESOURCE_TYPE]
    return sorted(candidates, key=lambda n: (not n.is_composite, n.type))


def expand_targets(nodes: Iterable[ResourceNode], targets: Iterable[str]) -> list[str]:
    """Expand target URNs so composites carry their whole subtree.

    Every descendant of a target is added (breadth-first), then the
    ancestor chain of each resulting URN so enclosing components are
    present too. The stack root itself is never added. The result has
    no duplicates and lists the original targets first.
    """
    seeds = list(dict.fromkeys(t for t in targets if t))
    if not seeds:
        return []

    nodes = list(nodes)
    children: dict[str, list[str]] = {}
    parent_of: dict[str, str | None] = {}
    type_of: dict[str, str] = {}
    for node in nodes:
        parent_of[node.urn] = node.parent_urn
        type_of[node.urn] = node.type
        if node.parent_urn:
            children.setdefault(node.parent_urn, []).append(node.urn)

    result: dict[str, None] = dict.fromkeys(seeds)
    queue: deque[str] = deque(seeds)
    while queue:
        current = queue.popleft()
        for child in children.get(current, []):
            if child not in result:
                result[child] = None
                queue.append(child)

    for urn in list(result):
        parent = parent_of.get(urn)
        while parent and parent not in result:
            if type_of.get(parent) == STACK_RESOURCE_TYPE:
                break
            result[parent] = None
            parent = parent_of.get(parent)

    return list(result)
