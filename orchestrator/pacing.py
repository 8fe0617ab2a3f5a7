"""Pacers used to slow long-running exports down between batches of pages."""

import logging
import time
from abc import ABC, abstractmethod

logger = logging.getLogger('semantic_json_export.orchestrator.pacing')


class Pacer(ABC):
    @abstractmethod
    def pause(self, microseconds: int) -> None:
        """Suspend the export for the given number of microseconds."""
        pass


class SleepPacer(Pacer):
    """Sleeps the current thread."""

    def pause(self, microseconds: int) -> None:
        if microseconds <= 0:
            return
        logger.debug(f"Pacing: sleeping for {microseconds}us")
        time.sleep(microseconds / 1_000_000)


class NullPacer(Pacer):
    """Never sleeps."""

    def pause(self, microseconds: int) -> None:
        pass


__all__ = ['Pacer', 'SleepPacer', 'NullPacer']
