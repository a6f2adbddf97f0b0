import logging
from typing import Callable

from .event_data import MCEvent


LOGGER = logging.getLogger("emcpt.weights")


def power_law(norm: float, exponent: float) -> Callable[[float], float]:
    def model(pt_hard: float) -> float:
        return norm * pt_hard ** (-exponent) if pt_hard > 0 else 0.0

    return model


class WeightHandler:
    """Event weight from the generator information of the MC event."""

    def __init__(self, model: Callable[[float], float] | None = None, use_cross_section: bool = False) -> None:
        self.model = model
        self.use_cross_section = use_cross_section
        self._warned_zero = False

    def _warn_zero_weight(self, reason: str) -> None:
        if not self._warned_zero:
            LOGGER.warning("Event weight is 0: %s. Further zero weights are not reported.", reason)
            self._warned_zero = True

    def get_event_weight(self, mc_event: MCEvent) -> float:
        if self.use_cross_section:
            if mc_event.n_trials <= 0:
                self._warn_zero_weight(f"n_trials={mc_event.n_trials}")
                return 0.0
            return mc_event.cross_section / mc_event.n_trials
        if self.model is None:
            return 1.0
        if mc_event.pt_hard <= 0:
            self._warn_zero_weight(f"pt_hard={mc_event.pt_hard}")
        return float(self.model(mc_event.pt_hard))
