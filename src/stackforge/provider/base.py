"""Abstract base class for provider adapters."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Tuple


class ProviderAdapter(ABC):
    """
    Narrow interface the engine uses to talk to a cloud API.

    The engine treats adapters as an opaque capability set. It never retries:
    a raised ProviderError fails the action and skips its dependents.

    Implementations must tolerate concurrent calls for distinct resources,
    since the executor runs every action of a layer at the same time.
    """

    name: str = "abstract"

    @abstractmethod
    def create(self, kind: str, attributes: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        """
        Create a remote object.

        Args:
            kind: Resource kind (e.g. "iam_role")
            attributes: Fully interpolated desired attributes

        Returns:
            (remote_id, effective_attributes)

        Raises:
            ProviderError: If the remote call fails
        """
        pass

    @abstractmethod
    def read(self, kind: str, remote_id: str) -> Dict[str, Any]:
        """
        Read the effective attributes of a remote object.

        Raises:
            NotFoundError: If the object no longer exists
            ProviderError: If the remote call fails
        """
        pass

    @abstractmethod
    def update(self, kind: str, remote_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update a remote object in place and return its effective attributes.

        Raises:
            NotFoundError: If the object no longer exists
            ProviderError: If the remote call fails
        """
        pass

    @abstractmethod
    def destroy(self, kind: str, remote_id: str) -> None:
        """
        Delete a remote object.

        Raises:
            NotFoundError: If the object no longer exists
            ProviderError: If the remote call fails
        """
        pass
