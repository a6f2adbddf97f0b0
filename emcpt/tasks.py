import dataclasses
import logging
import time
from typing import Any

from .binning import BinningComponent
from .cluster_component import ClusterAnalysisComponent
from .component import TracksAnalysisComponent
from .cuts import FilterBitTrackSelection, KineCuts
from .event_data import EventData
from .rectrack_component import RecTrackAnalysisComponent
from .settings import RuntimeConfig, ensure_parent, expand
from .weights import WeightHandler, power_law


LOGGER = logging.getLogger("emcpt.tasks")


class AnalysisTask:
    """Group of analysis components sharing one event loop."""

    def __init__(self, name: str, trigger_classes: list[tuple[str, str]], is_mc: bool = False) -> None:
        self.name = name
        self.trigger_classes = list(trigger_classes)
        self.is_mc = bool(is_mc)
        self.components: list[TracksAnalysisComponent] = []
        self.n_events = 0
        self._outputs_created = False

    def set_is_mc(self, is_mc: bool) -> None:
        self.is_mc = bool(is_mc)

    def add_component(self, component: TracksAnalysisComponent) -> None:
        if any(c.name == component.name for c in self.components):
            raise ValueError(f"Duplicated component name in task '{self.name}': '{component.name}'")
        component.set_trigger_classes(self.trigger_classes)
        self.components.append(component)

    def create_output_objects(self) -> None:
        if self._outputs_created:
            raise RuntimeError(f"Output objects of task '{self.name}' were already created")
        for component in self.components:
            component.create_histos()
        self._outputs_created = True

    def process_event(self, data: EventData) -> None:
        if not self.is_mc and data.mc_event is not None:
            data = dataclasses.replace(data, mc_event=None)
        for component in self.components:
            component.set_trigger_decision(data.trigger_decision)
            component.process(data)
        self.n_events += 1

    def output_lists(self) -> list[Any]:
        return [component.histos.to_list() for component in self.components]

    def write(self, output_file: str) -> None:
        import ROOT

        out_name = expand(output_file)
        ensure_parent(out_name)
        out = ROOT.TFile(out_name, "RECREATE")
        top = out.mkdir(self.name)
        for component in self.components:
            component.histos.write(top)
        out.Close()
        LOGGER.info("Wrote %d component outputs to %s", len(self.components), output_file)

    def close(self) -> None:
        for component in self.components:
            component.close()


def add_task(runtime_config: RuntimeConfig, name: str = "ptemcaltriggertask") -> AnalysisTask:
    cfg = runtime_config
    task = AnalysisTask(name, cfg.trigger_classes)
    task.set_is_mc(cfg.is_mc)

    binning = BinningComponent.from_config(cfg.binning)
    kine_cuts = KineCuts.from_ranges(cfg.kine_cuts) if cfg.kine_cuts else None
    weight_handler = None
    if cfg.weights is not None and cfg.is_mc:
        weight_handler = WeightHandler(
            model=power_law(cfg.weights.norm, cfg.weights.exponent),
            use_cross_section=cfg.weights.use_cross_section,
        )

    if cfg.rectracks.enabled:
        tracks = RecTrackAnalysisComponent("recTrackAnalysis")
        tracks.set_trigger_method(cfg.rectracks.trigger_method)
        tracks.set_swap_eta(cfg.rectracks.swap_eta)
        tracks.set_request_mc_true(cfg.rectracks.request_mc_true and cfg.is_mc)
        if cfg.filter_bits:
            tracks.set_track_selection(FilterBitTrackSelection(cfg.filter_bits))
        task.add_component(tracks)

    if cfg.clusters.enabled:
        clusters = ClusterAnalysisComponent("clusterAnalysis")
        clusters.set_trigger_method(cfg.clusters.trigger_method)
        clusters.set_energy_range(*cfg.clusters.energy_range)
        task.add_component(clusters)

    for component in task.components:
        component.set_binning(binning)
        component.set_kine_cuts(kine_cuts)
        component.set_weight_handler(weight_handler)

    LOGGER.info(
        "Configured task %s is_mc=%s components=%s",
        name,
        task.is_mc,
        ",".join(c.name for c in task.components),
    )
    return task


def run_analysis(input_tree: str, output_file: str, *, runtime_config: RuntimeConfig) -> AnalysisTask:
    from .event_source import iter_events, open_tree

    cfg = runtime_config
    LOGGER.info("analysis start input=%s output=%s", input_tree, output_file)
    task = add_task(cfg)
    task.create_output_objects()

    root_file, tree = open_tree(input_tree, cfg.paths.tree_name)
    t0 = time.time()
    try:
        for data in iter_events(tree, task.is_mc, cfg.max_events):
            task.process_event(data)
            if task.n_events % 10000 == 0:
                LOGGER.info("Processed %d events", task.n_events)
    finally:
        root_file.Close()

    try:
        task.write(output_file)
    finally:
        task.close()
    LOGGER.info("analysis done events=%d elapsed_sec=%.2f", task.n_events, time.time() - t0)
    return task
