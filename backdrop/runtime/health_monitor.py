from typing import Any, Dict, Optional

from backdrop.utils.logger import get_logger
from backdrop.utils.types import ModelTier


class HealthMonitor:
    """
    Inference latency watchdog.

    Config keys (runtime section):
      watchdog_ms        per-inference budget, 0 disables the check
      watchdog_patience  consecutive misses before a FAST-tier hint is logged
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.logger = get_logger(__name__)
        self.budget_ms = float(self.config.get("watchdog_ms", 0) or 0)
        self.patience = max(1, int(self.config.get("watchdog_patience", 30)))
        self.misses = 0
        self.streak = 0
        self._hinted = False

    def check_latency(self, latency_ms: float, tier: Optional[ModelTier] = None) -> bool:
        if not self.budget_ms or latency_ms <= self.budget_ms:
            self.streak = 0
            return True
        self.misses += 1
        self.streak += 1
        self.logger.debug("Inference over budget: %.1f ms > %.0f ms (streak %d)", latency_ms, self.budget_ms, self.streak)
        if self.streak >= self.patience and tier is ModelTier.HIGH_QUALITY and not self._hinted:
            self._hinted = True
            self.logger.warning(
                "Inference has missed the %.0f ms budget %d times in a row; consider model_tier: fast",
                self.budget_ms,
                self.streak,
            )
        return False

    def reset(self) -> None:
        self.misses = 0
        self.streak = 0
        self._hinted = False
