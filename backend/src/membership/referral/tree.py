"""Referral tree assembly from a flat descendant list."""

from dataclasses import dataclass, field
from typing import Any, Iterable


@dataclass
class ReferralNode:
    """One profile in a referral tree."""
    id: int
    referred_by_id: int | None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    referral_code: str | None = None
    depth: int = 0
    children: list["ReferralNode"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "referred_by_id": self.referred_by_id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "referral_code": self.referral_code,
            "depth": self.depth,
            "children": [child.to_dict() for child in self.children],
        }


def build_tree(root_id: int, flat: Iterable[ReferralNode]) -> list[ReferralNode]:
    """Attach descendants to their parents.

    Args:
        root_id: Profile whose tree is built (not part of the result)
        flat: Descendants in any order

    Returns:
        Direct children of the root, each with nested children
    """
    nodes: dict[int, ReferralNode] = {}
    for node in flat:
        if node.id == root_id or node.id in nodes:
            continue
        node.children = []
        nodes[node.id] = node

    roots: list[ReferralNode] = []
    for node in nodes.values():
        if node.referred_by_id == root_id:
            roots.append(node)
        elif node.referred_by_id in nodes:
            nodes[node.referred_by_id].children.append(node)
    return roots


def count_referrals(nodes: Iterable[ReferralNode]) -> int:
    """Count every node at every depth."""
    return sum(1 + count_referrals(node.children) for node in nodes)
