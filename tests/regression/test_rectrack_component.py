import unittest

from fakes import TRIGGER_CLASSES, RecordingHistos, make_binning

from emcpt.cuts import FilterBitTrackSelection, KineCuts
from emcpt.event_data import Cluster, EventData, MCEvent, MCParticle, PicoTrack, RecEvent, Track, Vertex
from emcpt.rectrack_component import CORRELATION_HIST, RecTrackAnalysisComponent
from emcpt.trigger import TriggerDecision, TriggerMethod
from emcpt.weights import WeightHandler


def _make_component(request_mc_true: bool = False, swap_eta: bool = False) -> RecTrackAnalysisComponent:
    component = RecTrackAnalysisComponent("tracks", histos=RecordingHistos())
    component.set_binning(make_binning())
    component.set_trigger_classes(TRIGGER_CLASSES)
    component.set_request_mc_true(request_mc_true)
    component.set_swap_eta(swap_eta)
    component.create_histos()
    return component


def _event(tracks, decision=None, clusters=None, mc_event=None, vz: float = 2.0) -> EventData:
    return EventData(
        matched_tracks=tracks,
        rec_event=RecEvent(primary_vertex=Vertex(vz)),
        trigger_decision=decision or TriggerDecision(min_bias=True),
        clusters=clusters,
        mc_event=mc_event,
    )


def _process(component: RecTrackAnalysisComponent, data: EventData) -> None:
    component.set_trigger_decision(data.trigger_decision)
    component.process(data)


class TestHistogramSchema(unittest.TestCase):
    def test_four_histograms_per_trigger_class_and_correlation(self) -> None:
        component = _make_component()
        declared = component.histos.declared

        self.assertEqual(len(declared), 4 * len(TRIGGER_CLASSES) + 1)
        for name, _ in TRIGGER_CLASSES:
            for prefix in ("hTrackHist", "hTrackInAcceptanceHist", "hMCTrackHist", "hMCTrackInAcceptanceHist"):
                self.assertIn(f"{prefix}{name}", declared)
        title, axes, option = declared["hTrackHistMinBias"]
        self.assertEqual([a.name for a in axes], ["pt", "eta", "phi", "zvertex", "mbtrigger"])
        self.assertEqual(option, "s")
        self.assertIn("min. bias events", title)
        self.assertEqual(axes[4].edges, (-0.5, 0.5, 1.5))

        _, corr_axes, corr_option = declared[CORRELATION_HIST]
        self.assertEqual([a.name for a in corr_axes], ["ptgen", "ptrec", "eta", "phi"])
        self.assertEqual(corr_option, "")

    def test_trigger_class_table_is_injectable(self) -> None:
        component = RecTrackAnalysisComponent("tracks", histos=RecordingHistos())
        component.set_binning(make_binning())
        component.set_trigger_classes([("MinBias", "min. bias events")])
        component.create_histos()
        self.assertEqual(
            sorted(component.histos.declared),
            sorted([
                "hTrackHistMinBias",
                "hTrackInAcceptanceHistMinBias",
                "hMCTrackHistMinBias",
                "hMCTrackInAcceptanceHistMinBias",
                CORRELATION_HIST,
            ]),
        )

    def test_second_schema_creation_is_rejected(self) -> None:
        component = _make_component()
        with self.assertRaisesRegex(RuntimeError, "already created"):
            component.create_histos()


class TestRecTrackFill(unittest.TestCase):
    def test_single_min_bias_track_without_cluster(self) -> None:
        component = _make_component()
        _process(component, _event([Track(5.0, 0.3, 1.0, label=7, emcal_cluster=-1)]))

        histos = component.histos
        self.assertEqual(histos.fills_for("hTrackHistMinBias"), [((5.0, 0.3, 1.0, 2.0, 1.0), 1.0)])
        self.assertEqual(len(histos.fills), 1)

    def test_cluster_matched_track_fills_acceptance_histogram(self) -> None:
        component = _make_component()
        clusters = [Cluster(1.0, 0.0, 0.0)] * 3 + [Cluster(4.0, 0.3, 1.0)]
        _process(component, _event([Track(5.0, 0.3, 1.0, emcal_cluster=3)], clusters=clusters))

        histos = component.histos
        expected = [((5.0, 0.3, 1.0, 2.0, 1.0), 1.0)]
        self.assertEqual(histos.fills_for("hTrackHistMinBias"), expected)
        self.assertEqual(histos.fills_for("hTrackInAcceptanceHistMinBias"), expected)
        self.assertEqual(len(histos.fills), 2)

    def test_cluster_index_must_resolve(self) -> None:
        component = _make_component()
        _process(component, _event([Track(5.0, 0.3, 1.0, emcal_cluster=3)], clusters=[Cluster(1.0, 0.0, 0.0)]))
        _process(component, _event([Track(5.0, 0.3, 1.0, emcal_cluster=0)], clusters=[None]))
        _process(component, _event([Track(5.0, 0.3, 1.0, emcal_cluster=0)], clusters=None))
        self.assertEqual(component.histos.fills_for("hTrackInAcceptanceHistMinBias"), [])
        self.assertEqual(len(component.histos.fills_for("hTrackHistMinBias")), 3)

    def test_wrapped_track_uses_underlying_cluster_index(self) -> None:
        component = _make_component()
        inner = Track(5.0, 0.3, 1.0, emcal_cluster=0)
        pico = PicoTrack(track=inner, pt=6.0, eta=0.2, phi=1.5)
        _process(component, _event([pico], clusters=[Cluster(4.0, 0.3, 1.0)]))

        self.assertEqual(
            component.histos.fills_for("hTrackInAcceptanceHistMinBias"),
            [((6.0, 0.2, 1.5, 2.0, 1.0), 1.0)],
        )

    def test_one_fill_per_matching_trigger_class(self) -> None:
        component = _make_component()
        decision = TriggerDecision(min_bias=True, fired_trigger_classes="CEMC7EJ1-B-NOPF-CENTNOTRD")
        _process(component, _event([Track(5.0, 0.3, 1.0)], decision=decision))

        filled = [name for name, _, _ in component.histos.fills]
        self.assertEqual(filled, ["hTrackHistMinBias", "hTrackHistEMCJHigh", "hTrackHistEMCHighJetOnly"])

    def test_no_fill_without_matching_trigger_class(self) -> None:
        component = _make_component()
        _process(component, _event([Track(5.0, 0.3, 1.0)], decision=TriggerDecision()))
        self.assertEqual(component.histos.fills, [])

    def test_trigger_method_selects_decision_source(self) -> None:
        component = _make_component()
        component.set_trigger_method(TriggerMethod.PATCHES)
        decision = TriggerDecision(fired_trigger_classes="CEMC7EG1-B", patch_bits=0b0010)
        _process(component, _event([Track(5.0, 0.3, 1.0)], decision=decision))

        filled = [name for name, _, _ in component.histos.fills]
        self.assertEqual(filled, ["hTrackHistEMCJLow", "hTrackHistEMCLowJetOnly"])

    def test_min_bias_flag_recorded(self) -> None:
        component = _make_component()
        decision = TriggerDecision(min_bias=False, fired_trigger_classes="EG2")
        _process(component, _event([Track(5.0, 0.3, 1.0)], decision=decision))

        values, _ = component.histos.fills_for("hTrackHistEMCGLow")[0]
        self.assertEqual(values[4], 0.0)

    def test_swap_eta_flips_sign(self) -> None:
        component = _make_component(swap_eta=True)
        _process(component, _event([Track(5.0, 0.3, 1.0)]))
        values, _ = component.histos.fills_for("hTrackHistMinBias")[0]
        self.assertEqual(values[1], -0.3)

    def test_negative_pt_is_filled_as_absolute_value(self) -> None:
        component = _make_component()
        _process(component, _event([Track(-5.0, 0.3, 1.0)]))
        values, _ = component.histos.fills_for("hTrackHistMinBias")[0]
        self.assertEqual(values[0], 5.0)

    def test_kinematic_cut_is_boundary_inclusive(self) -> None:
        component = _make_component()
        cuts = KineCuts()
        cuts.pt.set_limits(1.0, 5.0)
        component.set_kine_cuts(cuts)
        tracks = [Track(1.0, 0.0, 1.0), Track(5.0, 0.0, 1.0), Track(0.99, 0.0, 1.0), Track(5.01, 0.0, 1.0)]
        _process(component, _event(tracks))

        pts = [values[0] for values, _ in component.histos.fills_for("hTrackHistMinBias")]
        self.assertEqual(pts, [1.0, 5.0])

    def test_track_selection_rejects_tracks(self) -> None:
        component = _make_component()
        component.set_track_selection(FilterBitTrackSelection(0b10))
        tracks = [Track(5.0, 0.3, 1.0, filter_map=0b01), Track(6.0, 0.3, 1.0, filter_map=0b11)]
        _process(component, _event(tracks))

        pts = [values[0] for values, _ in component.histos.fills_for("hTrackHistMinBias")]
        self.assertEqual(pts, [6.0])

    def test_missing_track_container_skips_event(self) -> None:
        component = _make_component()
        with self.assertLogs("emcpt.components", level="ERROR") as logs:
            _process(component, _event(None))
        self.assertIn("No container for matched tracks", logs.output[0])
        self.assertEqual(component.histos.fills, [])


class TestRecTrackMonteCarlo(unittest.TestCase):
    def _mc_event(self, primary: bool | None = True, primaries=frozenset(), **kwargs) -> MCEvent:
        particles = [None, None, MCParticle(4.8, 0.25, 1.1, physical_primary=primary)]
        return MCEvent(particles=particles, primaries=primaries, **kwargs)

    def test_true_primary_fills_correlation_and_mc_histograms(self) -> None:
        component = _make_component(request_mc_true=True)
        _process(component, _event([Track(5.0, 0.3, 1.0, label=-2)], mc_event=self._mc_event()))

        histos = component.histos
        self.assertEqual(histos.fills_for(CORRELATION_HIST), [((4.8, 5.0, 0.3, 1.0), 1.0)])
        self.assertEqual(histos.fills_for("hMCTrackHistMinBias"), [((4.8, 0.25, 1.1, 2.0, 1.0), 1.0)])
        self.assertEqual(histos.fills_for("hTrackHistMinBias"), [((5.0, 0.3, 1.0, 2.0, 1.0), 1.0)])
        self.assertEqual(histos.fills_for("hMCTrackInAcceptanceHistMinBias"), [])

    def test_mc_acceptance_histogram_needs_cluster(self) -> None:
        component = _make_component(request_mc_true=True)
        data = _event(
            [Track(5.0, 0.3, 1.0, label=2, emcal_cluster=0)],
            clusters=[Cluster(4.0, 0.3, 1.0)],
            mc_event=self._mc_event(),
        )
        _process(component, data)
        self.assertEqual(
            component.histos.fills_for("hMCTrackInAcceptanceHistMinBias"),
            [((4.8, 0.25, 1.1, 2.0, 1.0), 1.0)],
        )

    def test_non_primary_particle_skips_track(self) -> None:
        component = _make_component(request_mc_true=True)
        _process(component, _event([Track(5.0, 0.3, 1.0, label=2)], mc_event=self._mc_event(primary=False)))
        self.assertEqual(component.histos.fills, [])

    def test_missing_particle_skips_track(self) -> None:
        component = _make_component(request_mc_true=True)
        _process(component, _event([Track(5.0, 0.3, 1.0, label=1)], mc_event=self._mc_event()))
        _process(component, _event([Track(5.0, 0.3, 1.0, label=42)], mc_event=self._mc_event()))
        self.assertEqual(component.histos.fills, [])

    def test_primary_flag_queried_from_event_when_particle_has_none(self) -> None:
        component = _make_component(request_mc_true=True)
        _process(component, _event([Track(5.0, 0.3, 1.0, label=2)], mc_event=self._mc_event(primary=None)))
        self.assertEqual(component.histos.fills, [])

        _process(
            component,
            _event([Track(5.0, 0.3, 1.0, label=2)], mc_event=self._mc_event(primary=None, primaries=frozenset({2}))),
        )
        self.assertEqual(len(component.histos.fills_for(CORRELATION_HIST)), 1)

    def test_mc_required_without_mc_event_skips_event(self) -> None:
        component = _make_component(request_mc_true=True)
        _process(component, _event([Track(5.0, 0.3, 1.0, label=2)]))
        self.assertEqual(component.histos.fills, [])

    def test_mc_histograms_not_filled_when_truth_not_requested(self) -> None:
        component = _make_component(request_mc_true=False)
        _process(component, _event([Track(5.0, 0.3, 1.0, label=2)], mc_event=self._mc_event()))
        filled = {name for name, _, _ in component.histos.fills}
        self.assertEqual(filled, {"hTrackHistMinBias"})

    def test_mc_kinematics_fill_without_particle_is_noop(self) -> None:
        component = _make_component()
        component.set_trigger_decision(TriggerDecision(min_bias=True))
        component.fill_histogram("hMCTrackHistMinBias", Track(5.0, 0.3, 1.0), None, RecEvent(), True)
        self.assertEqual(component.histos.fills, [])

    def test_event_weight_applied_to_every_fill(self) -> None:
        component = _make_component(request_mc_true=True)
        component.set_weight_handler(WeightHandler(model=lambda pt_hard: 0.5 * pt_hard))
        data = _event(
            [Track(5.0, 0.3, 1.0, label=2, emcal_cluster=0)],
            clusters=[Cluster(4.0, 0.3, 1.0)],
            mc_event=self._mc_event(pt_hard=3.0),
        )
        _process(component, data)

        weights = {weight for _, _, weight in component.histos.fills}
        self.assertEqual(len(component.histos.fills), 5)
        self.assertEqual(weights, {1.5})

    def test_weight_is_one_without_mc_event(self) -> None:
        component = _make_component()
        component.set_weight_handler(WeightHandler(model=lambda pt_hard: 3.0))
        _process(component, _event([Track(5.0, 0.3, 1.0)]))
        self.assertEqual([w for _, _, w in component.histos.fills], [1.0])


if __name__ == "__main__":
    unittest.main()
