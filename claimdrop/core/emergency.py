"""
Emergency Control - pause gate for every value-moving operation.

While paused, claims and push rounds fail for every input. Administrative
operations (funding, root rotation, emergency withdrawal) stay available so
the authority can remediate.
"""

from claimdrop.core.ledger import DistributionLedger
from claimdrop.utils.logger import get_logger

logger = get_logger("emergency")


class EmergencyControl:
    """
    Authority-only pause/resume.
    
    Both operations are idempotent and emit a StatusChanged event on every
    call, including no-op calls.
    """

    def __init__(self, ledger: DistributionLedger):
        self.ledger = ledger

    @property
    def is_paused(self) -> bool:
        return self.ledger.paused

    def pause(self, caller: str) -> None:
        was_paused = self.ledger.paused
        self.ledger.set_paused(caller, True)
        if not was_paused:
            logger.warning(f"Distribution paused by {caller}")

    def resume(self, caller: str) -> None:
        was_paused = self.ledger.paused
        self.ledger.set_paused(caller, False)
        if was_paused:
            logger.info(f"Distribution resumed by {caller}")
