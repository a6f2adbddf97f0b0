from array import array
import logging
from typing import Any, Sequence

import ROOT

from .binning import AxisDefinition


LOGGER = logging.getLogger("emcpt.histograms")


class HistogramManager:
    """Named THnSparse container owned by one analysis component."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._histos: dict[str, Any] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._histos

    def names(self) -> list[str]:
        return list(self._histos)

    def get(self, name: str) -> Any:
        if name not in self._histos:
            raise KeyError(f"Histogram '{name}' not found in container '{self.name}'")
        return self._histos[name]

    def create_thnsparse(self, name: str, title: str, axes: Sequence[AxisDefinition], option: str = "") -> Any:
        if name in self._histos:
            raise RuntimeError(f"Histogram '{name}' already exists in container '{self.name}'")
        nbins = array("i", [axis.nbins for axis in axes])
        xmin = array("d", [axis.xmin for axis in axes])
        xmax = array("d", [axis.xmax for axis in axes])
        hist = ROOT.THnSparseD(name, title, len(axes), nbins, xmin, xmax)
        for iaxis, axis in enumerate(axes):
            root_axis = hist.GetAxis(iaxis)
            root_axis.Set(axis.nbins, array("d", axis.edges))
            root_axis.SetName(axis.name)
            root_axis.SetTitle(axis.title)
        if "s" in option:
            hist.Sumw2()
        self._histos[name] = hist
        return hist

    def fill_thnsparse(self, name: str, values: Sequence[float], weight: float = 1.0) -> None:
        hist = self.get(name)
        hist.Fill(array("d", values), weight)

    def to_list(self) -> Any:
        out = ROOT.TList()
        out.SetName(self.name)
        out.SetOwner(False)
        for hist in self._histos.values():
            out.Add(hist)
        return out

    def write(self, directory: Any) -> None:
        directory.cd()
        self.to_list().Write(self.name, ROOT.TObject.kSingleKey)
        LOGGER.debug("Wrote %d histograms for %s", len(self._histos), self.name)
