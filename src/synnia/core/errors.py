"""
Exceptions raised by the core.
"""

from __future__ import annotations


class SynniaError(Exception):
    """Base exception for core errors."""
    pass


class NodeNotFoundError(SynniaError, KeyError):
    """A node id does not exist in the graph."""

    def __init__(self, node_id: str):
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id

    def __str__(self) -> str:
        return self.args[0]


class ConnectionRejected(SynniaError):
    """An edge was refused; no state was changed."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class DockingRejected(SynniaError):
    """A dock request was refused."""
    pass


class RecipeNotFoundError(SynniaError):
    """No recipe is registered under the requested id."""
    pass


class RecipeValidationError(SynniaError):
    """Resolved inputs violate the recipe's input schema."""
    pass


class RecipeExecutionError(SynniaError):
    """A recipe ran and reported failure."""
    pass


class ManifestError(SynniaError):
    """A recipe manifest could not be parsed."""
    pass


class ProjectFormatError(SynniaError):
    """A project document is malformed."""
    pass
