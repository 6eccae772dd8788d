"""
Stack state models: a flattened view of exported stack resources.

Used only for interactive target selection; nothing here is persisted.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ResourceNode(BaseModel):
    """One resource from a stack's exported deployment."""

    urn: str
    type: str
    name: str = ""
    parent_urn: str | None = None
    is_composite: bool = False

    @classmethod
    def from_state(cls, entry: dict[str, Any]) -> ResourceNode | None:
        """Build a node from a raw ``deployment.resources`` entry.

        Returns None for entries missing a URN or type.
        """
        urn = entry.get("urn")
        rtype = entry.get("type")
        if not urn or not rtype:
            return None
        return cls(
            urn=urn,
            type=rtype,
            name=urn.split("::")[-1] or urn,
            parent_urn=entry.get("parent") or None,
            is_composite=entry.get("custom") is False,
        )

    @property
    def label(self) -> str:
        mark = "[C]" if self.is_composite else "   "
        return f"{mark} {self.type} :: {self.name}"
