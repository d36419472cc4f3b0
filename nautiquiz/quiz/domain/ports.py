from abc import ABC, abstractmethod


class IProgressRepository(ABC):
    """
    Storage for the progress aggregate: one serialized blob plus a separate
    schema version integer.
    """

    @abstractmethod
    def load_payload(self) -> str | None:
        """Returns the stored blob, or None when nothing was ever saved."""
        pass

    @abstractmethod
    def save_payload(self, payload: str) -> None:
        pass

    @abstractmethod
    def get_schema_version(self) -> int:
        """Returns 0 when no version was ever stored."""
        pass

    @abstractmethod
    def set_schema_version(self, version: int) -> None:
        pass
