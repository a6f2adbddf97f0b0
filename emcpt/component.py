import logging
from typing import Any

from .binning import BinningComponent, AxisDefinition, define_axis, define_linear_axis
from .cuts import KineCuts
from .event_data import EventData
from .trigger import TriggerDecision, TriggerMethod, matching_trigger_names
from .weights import WeightHandler


LOGGER = logging.getLogger("emcpt.components")


class TracksAnalysisComponent:
    """Base class for components filling trigger-class sparse histograms.

    Collaborators (binning, kinematic cuts, weight handler) are shared by the
    task and may be left unset. The histogram manager is created by
    ``create_histos`` unless one is injected at construction.
    """

    def __init__(self, name: str, histos: Any = None) -> None:
        self.name = name
        self.binning: BinningComponent | None = None
        self.kine_cuts: KineCuts | None = None
        self.weight_handler: WeightHandler | None = None
        self.trigger_decision: TriggerDecision | None = None
        self.trigger_classes: list[tuple[str, str]] = []
        self._histos = histos
        self._histos_created = False

    @property
    def histos(self) -> Any:
        return self._histos

    def set_binning(self, binning: BinningComponent) -> None:
        self.binning = binning

    def set_kine_cuts(self, cuts: KineCuts | None) -> None:
        self.kine_cuts = cuts

    def set_weight_handler(self, handler: WeightHandler | None) -> None:
        self.weight_handler = handler

    def set_trigger_decision(self, decision: TriggerDecision | None) -> None:
        self.trigger_decision = decision

    def set_trigger_classes(self, trigger_classes: list[tuple[str, str]]) -> None:
        self.trigger_classes = [(str(name), str(title)) for name, title in trigger_classes]

    def create_histos(self) -> None:
        if self._histos_created:
            raise RuntimeError(f"Histograms for component '{self.name}' were already created")
        if self.binning is None:
            raise RuntimeError(f"No binning configured for component '{self.name}'")
        if self._histos is None:
            from .histograms import HistogramManager

            self._histos = HistogramManager(self.name)
        self._histos_created = True

    def process(self, data: EventData) -> None:
        raise NotImplementedError

    def define_axis(self, name: str, binning_name: str | None = None) -> AxisDefinition:
        return define_axis(name, self.binning.get_binning(binning_name or name))

    @staticmethod
    def define_mb_axis() -> AxisDefinition:
        return define_linear_axis("mbtrigger", 2, -0.5, 1.5)

    def matching_trigger_names(self, method: TriggerMethod) -> list[str]:
        return matching_trigger_names(self.trigger_decision, method, [name for name, _ in self.trigger_classes])

    def is_min_bias(self) -> bool:
        return bool(self.trigger_decision and self.trigger_decision.is_min_bias())

    def event_weight(self, data: EventData) -> float:
        if self.weight_handler is not None and data.mc_event is not None:
            return self.weight_handler.get_event_weight(data.mc_event)
        return 1.0

    def close(self) -> None:
        """Drop references to collaborators owned by this component."""
        self.kine_cuts = None
        self.weight_handler = None
        self.trigger_decision = None
