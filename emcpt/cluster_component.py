from typing import Iterable

from .component import TracksAnalysisComponent
from .cuts import CutValueRange
from .event_data import Cluster, EventData
from .trigger import TriggerMethod


class ClusterAnalysisComponent(TracksAnalysisComponent):
    """EMCal clusters, calibrated and uncalibrated, per trigger class."""

    def __init__(self, name: str, histos=None) -> None:
        super().__init__(name, histos)
        self.energy_range = CutValueRange()
        self.trigger_method = TriggerMethod.STRING

    def set_trigger_method(self, method: TriggerMethod) -> None:
        self.trigger_method = TriggerMethod(method)

    def set_energy_range(self, minimum: float, maximum: float) -> None:
        self.energy_range.set_limits(minimum, maximum)

    def create_histos(self) -> None:
        super().create_histos()
        axes = [
            self.define_axis("clusterenergy", "energy"),
            self.define_axis("eta"),
            self.define_axis("phi"),
            self.define_axis("zvertex"),
            self.define_mb_axis(),
        ]
        for name, title in self.trigger_classes:
            self.histos.create_thnsparse(
                f"hhistoCalibratedClusters{name}", f"Calibrated clusters in {title}", axes, "s"
            )
            self.histos.create_thnsparse(
                f"hhistoUncalibratedClusters{name}", f"Uncalibrated clusters in {title}", axes, "s"
            )

    def process(self, data: EventData) -> None:
        trigger_names = self.matching_trigger_names(self.trigger_method)
        if not trigger_names:
            return
        weight = self.event_weight(data)
        vertex_z = data.rec_event.primary_vertex.z
        in_mb = self.is_min_bias()

        for cluster in self._accepted(data.rec_event.calo_clusters):
            for name in trigger_names:
                self.fill_histogram(f"hhistoUncalibratedClusters{name}", cluster, vertex_z, in_mb, weight)
        for cluster in self._accepted(data.clusters or []):
            for name in trigger_names:
                self.fill_histogram(f"hhistoCalibratedClusters{name}", cluster, vertex_z, in_mb, weight)

    def _accepted(self, clusters: Iterable[Cluster | None]) -> Iterable[Cluster]:
        for cluster in clusters:
            if cluster is None or not cluster.is_emcal:
                continue
            if not self.energy_range.is_in_range(cluster.energy):
                continue
            yield cluster

    def fill_histogram(self, histname: str, cluster: Cluster, vertex_z: float, in_mb: bool, weight: float = 1.0) -> None:
        values = (cluster.energy, cluster.eta, cluster.phi, vertex_z, 1.0 if in_mb else 0.0)
        self.histos.fill_thnsparse(histname, values, weight)
