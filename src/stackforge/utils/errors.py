"""Custom exception classes for stackforge."""

from typing import List, Optional


class StackForgeError(Exception):
    """Base exception for all stackforge errors."""
    pass


class DeclarationError(StackForgeError):
    """Raised when the declared resource document cannot be loaded or is invalid."""
    pass


class ConfigError(StackForgeError):
    """Raised when configuration is invalid or missing."""
    pass


class UnresolvedReferenceError(StackForgeError):
    """Raised when a resource references a (kind, name) pair that is not declared."""

    def __init__(self, resource: str, field: str, target: str):
        self.resource = resource
        self.field = field
        self.target = target
        super().__init__(
            f"Unresolved reference in {resource} (field '{field}'): "
            f"'{target}' is not a declared resource"
        )


class CycleError(StackForgeError):
    """Raised when the dependency graph contains a cycle."""

    def __init__(self, path: List["ResourceRef"]):  # noqa: F821
        self.path = list(path)
        rendered = " -> ".join(ref.key for ref in self.path)
        super().__init__(f"Dependency cycle detected: {rendered}")


class GraphConstructionError(StackForgeError):
    """Raised when dependency graph construction fails unexpectedly."""
    pass


class ProviderError(StackForgeError):
    """Raised by a provider adapter when a remote call fails."""
    pass


class NotFoundError(ProviderError):
    """Raised when a remote object recorded in state no longer exists."""
    pass


class OutputNotAvailableError(StackForgeError):
    """Raised when a placeholder names an output that has not been produced yet."""
    pass


class StateStoreError(StackForgeError):
    """Raised when the state store cannot be read or written."""

    def __init__(self, message: str, report: Optional["ExecutionReport"] = None):  # noqa: F821
        self.report = report
        super().__init__(message)
