from dataclasses import dataclass
from enum import Enum
from typing import Iterable


class TriggerMethod(Enum):
    STRING = "string"
    PATCHES = "patches"
    MIXED = "mixed"


class TriggerType(Enum):
    EMCJHigh = 0
    EMCJLow = 1
    EMCGHigh = 2
    EMCGLow = 3


# Fired-class tokens of the EMCal L1 triggers.
TRIGGER_STRINGS = {
    TriggerType.EMCJHigh: "EJ1",
    TriggerType.EMCJLow: "EJ2",
    TriggerType.EMCGHigh: "EG1",
    TriggerType.EMCGLow: "EG2",
}


@dataclass(frozen=True)
class TriggerDecision:
    min_bias: bool = False
    fired_trigger_classes: str = ""
    patch_bits: int = 0

    def is_min_bias(self) -> bool:
        return self.min_bias


class StringTriggerSelector:
    method = TriggerMethod.STRING

    def is_triggered(self, decision: TriggerDecision, trigger: TriggerType) -> bool:
        return TRIGGER_STRINGS[trigger] in decision.fired_trigger_classes


class PatchTriggerSelector:
    method = TriggerMethod.PATCHES

    def is_triggered(self, decision: TriggerDecision, trigger: TriggerType) -> bool:
        return bool(decision.patch_bits & (1 << trigger.value))


class MixedTriggerSelector:
    """Requires the trigger string and an offline patch above threshold."""

    method = TriggerMethod.MIXED

    def __init__(self) -> None:
        self._string = StringTriggerSelector()
        self._patches = PatchTriggerSelector()

    def is_triggered(self, decision: TriggerDecision, trigger: TriggerType) -> bool:
        return self._string.is_triggered(decision, trigger) and self._patches.is_triggered(decision, trigger)


_SELECTORS = {
    TriggerMethod.STRING: StringTriggerSelector,
    TriggerMethod.PATCHES: PatchTriggerSelector,
    TriggerMethod.MIXED: MixedTriggerSelector,
}


def make_trigger_selector(method: TriggerMethod):
    return _SELECTORS[TriggerMethod(method)]()


def matching_trigger_names(
    decision: TriggerDecision | None,
    method: TriggerMethod,
    known_names: Iterable[str] | None = None,
) -> list[str]:
    """Ordered names of the trigger classes selecting the event.

    Combined classes (both, jet only, gamma only) are derived from the four
    EMCal trigger types. With ``known_names`` the result is restricted to
    the configured trigger-class table.
    """
    if decision is None:
        return []
    selector = make_trigger_selector(method)
    fired = {t: selector.is_triggered(decision, t) for t in TriggerType}

    names: list[str] = []
    if decision.is_min_bias():
        names.append("MinBias")
    if fired[TriggerType.EMCJHigh]:
        names.append("EMCJHigh")
        names.append("EMCHighBoth" if fired[TriggerType.EMCGHigh] else "EMCHighJetOnly")
    if fired[TriggerType.EMCJLow]:
        names.append("EMCJLow")
        names.append("EMCLowBoth" if fired[TriggerType.EMCGLow] else "EMCLowJetOnly")
    if fired[TriggerType.EMCGHigh]:
        names.append("EMCGHigh")
        if not fired[TriggerType.EMCJHigh]:
            names.append("EMCHighGammaOnly")
    if fired[TriggerType.EMCGLow]:
        names.append("EMCGLow")
        if not fired[TriggerType.EMCJLow]:
            names.append("EMCLowGammaOnly")

    if known_names is None:
        return names
    known = set(known_names)
    return [name for name in names if name in known]
