from dataclasses import dataclass


@dataclass(frozen=True)
class BinningDimension:
    name: str
    edges: tuple[float, ...]

    @property
    def nbins(self) -> int:
        return len(self.edges) - 1


@dataclass(frozen=True)
class AxisDefinition:
    name: str
    edges: tuple[float, ...]
    title: str = ""

    @property
    def nbins(self) -> int:
        return len(self.edges) - 1

    @property
    def xmin(self) -> float:
        return self.edges[0]

    @property
    def xmax(self) -> float:
        return self.edges[-1]


def _linear_edges(nbins: int, xmin: float, xmax: float) -> tuple[float, ...]:
    if nbins < 1 or xmax <= xmin:
        raise ValueError(f"Invalid linear binning: nbins={nbins}, range=[{xmin}, {xmax}]")
    return tuple(xmin + (xmax - xmin) * i / nbins for i in range(nbins + 1))


class BinningComponent:
    def __init__(self) -> None:
        self._dimensions: dict[str, BinningDimension] = {}

    @classmethod
    def from_config(cls, binning: dict[str, list[float]]) -> "BinningComponent":
        component = cls()
        for name, edges in binning.items():
            component.set_binning(name, edges)
        return component

    def set_binning(self, name: str, edges) -> None:
        values = tuple(float(v) for v in edges)
        if len(values) < 2 or any(hi <= lo for lo, hi in zip(values, values[1:])):
            raise ValueError(f"Binning '{name}' needs at least 2 strictly increasing edges")
        self._dimensions[name] = BinningDimension(name, values)

    def set_linear_binning(self, name: str, nbins: int, xmin: float, xmax: float) -> None:
        self._dimensions[name] = BinningDimension(name, _linear_edges(nbins, xmin, xmax))

    def get_binning(self, name: str) -> BinningDimension:
        if name not in self._dimensions:
            raise KeyError(f"No binning defined for '{name}'. Available: {', '.join(sorted(self._dimensions))}.")
        return self._dimensions[name]


def define_axis(name: str, binning: BinningDimension, title: str = "") -> AxisDefinition:
    return AxisDefinition(name, binning.edges, title or name)


def define_linear_axis(name: str, nbins: int, xmin: float, xmax: float, title: str = "") -> AxisDefinition:
    return AxisDefinition(name, _linear_edges(nbins, xmin, xmax), title or name)
