from abc import ABC, abstractmethod


class UnitOfWork(ABC):
    """
    Transaction boundary shared by the repositories of one request

    Every ledger mutation (lot update, event append, cache delta) is flushed
    through the same session and only becomes visible on commit.
    """

    @abstractmethod
    async def commit(self) -> None:
        pass

    @abstractmethod
    async def rollback(self) -> None:
        """Discard pending work; identity-mapped rows are expired"""
        pass
