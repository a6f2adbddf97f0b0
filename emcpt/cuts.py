from typing import Protocol


class CutValueRange:
    """Closed interval cut; either end may be left open."""

    def __init__(self, minimum: float | None = None, maximum: float | None = None, negate: bool = False) -> None:
        self._limits: dict[str, float | None] = {"min": minimum, "max": maximum}
        self._negate = negate

    def __repr__(self) -> str:
        return f"CutValueRange(min={self._limits['min']}, max={self._limits['max']}, negate={self._negate})"

    @property
    def minimum(self) -> float | None:
        return self._limits["min"]

    @property
    def maximum(self) -> float | None:
        return self._limits["max"]

    def set_limits(self, minimum: float, maximum: float) -> None:
        if minimum > maximum:
            raise ValueError(f"Invalid range: min {minimum} > max {maximum}")
        self._limits["min"] = float(minimum)
        self._limits["max"] = float(maximum)

    def set_limit(self, which: str, value: float) -> None:
        if which not in self._limits:
            raise ValueError(f"Unknown limit '{which}', expected 'min' or 'max'")
        self._limits[which] = float(value)

    def unset_limit(self, which: str) -> None:
        if which not in self._limits:
            raise ValueError(f"Unknown limit '{which}', expected 'min' or 'max'")
        self._limits[which] = None

    def set_negate(self, negate: bool) -> None:
        self._negate = negate

    def is_in_range(self, value: float) -> bool:
        lo, hi = self._limits["min"], self._limits["max"]
        inside = (lo is None or value >= lo) and (hi is None or value <= hi)
        return not inside if self._negate else inside


class KineCuts:
    def __init__(
        self,
        pt: CutValueRange | None = None,
        eta: CutValueRange | None = None,
        phi: CutValueRange | None = None,
    ) -> None:
        self.pt = pt or CutValueRange()
        self.eta = eta or CutValueRange()
        self.phi = phi or CutValueRange()

    @classmethod
    def from_ranges(cls, ranges: dict[str, tuple[float, float]]) -> "KineCuts":
        cuts = cls()
        for key, (lo, hi) in ranges.items():
            getattr(cuts, key).set_limits(lo, hi)
        return cuts

    def is_selected(self, track) -> bool:
        if not self.pt.is_in_range(abs(track.pt)):
            return False
        if not self.eta.is_in_range(track.eta):
            return False
        return self.phi.is_in_range(track.phi)


class TrackSelection(Protocol):
    def is_track_accepted(self, track) -> bool: ...


class FilterBitTrackSelection:
    def __init__(self, filter_bits: int) -> None:
        self.filter_bits = int(filter_bits)

    def is_track_accepted(self, track) -> bool:
        return bool(track.underlying_track().filter_map & self.filter_bits)
