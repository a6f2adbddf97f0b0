from .component import LOGGER, TracksAnalysisComponent
from .cuts import TrackSelection
from .event_data import EventData, MCEvent, MCParticle, RecEvent
from .trigger import TriggerMethod


TRACK_HIST_PREFIXES = {
    "hTrackHist": "Track-based data for {} events",
    "hTrackInAcceptanceHist": "Track-based data for {} events  for tracks matched to EMCal clusters",
    "hMCTrackHist": "Track-based data for {} events with MC kinematics",
    "hMCTrackInAcceptanceHist": "Track-based data for {} events with MC kinematics for tracks matched to EMCal clusters",
}
CORRELATION_HIST = "hTrackPtCorrelation"


class RecTrackAnalysisComponent(TracksAnalysisComponent):
    """Reconstructed tracks in triggered events.

    For every trigger class selecting the event the track is filled into the
    raw histogram and, when it points to an EMCal cluster, into the
    in-acceptance histogram. With MC truth requested only tracks associated
    to a physical primary particle are used, and the MC kinematics are filled
    into the MC histograms together with the pt correlation matrix.
    """

    def __init__(self, name: str, histos=None) -> None:
        super().__init__(name, histos)
        self.track_selection: TrackSelection | None = None
        self.swap_eta = False
        self.trigger_method = TriggerMethod.STRING
        self.request_mc_true = False

    def set_track_selection(self, selection: TrackSelection | None) -> None:
        self.track_selection = selection

    def set_swap_eta(self, swap: bool = True) -> None:
        self.swap_eta = bool(swap)

    def set_trigger_method(self, method: TriggerMethod) -> None:
        self.trigger_method = TriggerMethod(method)

    def set_request_mc_true(self, request: bool = True) -> None:
        self.request_mc_true = bool(request)

    def create_histos(self) -> None:
        super().create_histos()
        track_axes = [
            self.define_axis("pt"),
            self.define_axis("eta"),
            self.define_axis("phi"),
            self.define_axis("zvertex"),
            self.define_mb_axis(),
        ]
        for name, title in self.trigger_classes:
            for prefix, title_template in TRACK_HIST_PREFIXES.items():
                self.histos.create_thnsparse(f"{prefix}{name}", title_template.format(title), track_axes, "s")

        # gen pt, rec pt, rec eta, rec phi
        corr_axes = [
            self.define_axis("ptgen", "pt"),
            self.define_axis("ptrec", "pt"),
            self.define_axis("eta"),
            self.define_axis("phi"),
        ]
        self.histos.create_thnsparse(CORRELATION_HIST, "Correlation matrix for track pt", corr_axes)

    def process(self, data: EventData) -> None:
        if data.matched_tracks is None:
            LOGGER.error("No container for matched tracks")
            return
        LOGGER.debug("Number of matched tracks: %d", len(data.matched_tracks))
        if self.request_mc_true and data.mc_event is None:
            return

        trigger_names = self.matching_trigger_names(self.trigger_method)
        weight = self.event_weight(data)

        for track in data.matched_tracks:
            if self.kine_cuts is not None and not self.kine_cuts.is_selected(track):
                continue
            if self.track_selection is not None and not self.track_selection.is_track_accepted(track):
                LOGGER.debug("Track not accepted")
                continue

            assoc_mc = None
            if self.request_mc_true:
                assoc_mc = self.is_mc_true_track(track, data.mc_event)
                if assoc_mc is None:
                    continue
                self.fill_correlation(assoc_mc, track, weight)

            cluster_index = track.underlying_track().emcal_cluster
            has_cluster = cluster_index >= 0 and data.cluster_at(cluster_index) is not None

            for name in trigger_names:
                self.fill_histogram(f"hTrackHist{name}", track, None, data.rec_event, False, weight)
                if has_cluster:
                    self.fill_histogram(f"hTrackInAcceptanceHist{name}", track, None, data.rec_event, False, weight)
                if assoc_mc is not None:
                    self.fill_histogram(f"hMCTrackHist{name}", track, assoc_mc, data.rec_event, True, weight)
                    if has_cluster:
                        self.fill_histogram(f"hMCTrackInAcceptanceHist{name}", track, assoc_mc, data.rec_event, True, weight)

    @staticmethod
    def is_mc_true_track(track, mc_event: MCEvent) -> MCParticle | None:
        label = abs(track.label)
        particle = mc_event.get_track(label)
        if particle is None:
            return None
        if particle.physical_primary is not None:
            primary = particle.physical_primary
        else:
            primary = mc_event.is_physical_primary(label)
        return particle if primary else None

    def fill_histogram(
        self,
        histname: str,
        track,
        assoc_mc: MCParticle | None,
        rec_event: RecEvent,
        use_mc_kine: bool,
        weight: float = 1.0,
    ) -> None:
        if use_mc_kine and assoc_mc is None:
            return
        source = assoc_mc if use_mc_kine else track
        values = (
            abs(source.pt),
            (-1.0 if self.swap_eta else 1.0) * source.eta,
            source.phi,
            rec_event.primary_vertex.z,
            1.0 if self.is_min_bias() else 0.0,
        )
        self.histos.fill_thnsparse(histname, values, weight)

    def fill_correlation(self, gen_particle: MCParticle, rec_particle, weight: float = 1.0) -> None:
        values = (abs(gen_particle.pt), abs(rec_particle.pt), rec_particle.eta, rec_particle.phi)
        self.histos.fill_thnsparse(CORRELATION_HIST, values, weight)

    def close(self) -> None:
        self.track_selection = None
        super().close()
