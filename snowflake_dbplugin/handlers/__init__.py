from abc import ABC, abstractmethod
from typing import Any, Dict


class HandlerInterface(ABC):
    """
    Abstract base class for database credential handlers
    """

    @abstractmethod
    async def initialize(self, *args: Any, **kwargs: Any) -> Dict[str, Any]:
        """
        Method to validate the configuration and prepare the client
        """
        pass

    @abstractmethod
    async def new_user(self, *args: Any, **kwargs: Any) -> Any:
        """
        Abstract method to create a user
        To be implemented by the subclass
        """
        raise NotImplementedError("new_user method not implemented")

    @abstractmethod
    async def update_user(self, *args: Any, **kwargs: Any) -> None:
        """
        Abstract method to rotate or renew a user
        To be implemented by the subclass
        """
        raise NotImplementedError("update_user method not implemented")

    @abstractmethod
    async def delete_user(self, *args: Any, **kwargs: Any) -> None:
        """
        Abstract method to drop a user
        To be implemented by the subclass
        """
        raise NotImplementedError("delete_user method not implemented")

    @abstractmethod
    async def close(self) -> None:
        """
        Method to release the client connection
        """
        pass

    @abstractmethod
    def type(self) -> str:
        """
        Name of the database this handler manages
        """
        raise NotImplementedError("type method not implemented")
