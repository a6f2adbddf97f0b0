from dataclasses import dataclass, field
from typing import Sequence

from .trigger import TriggerDecision


@dataclass
class Track:
    pt: float
    eta: float
    phi: float
    label: int = 0
    emcal_cluster: int = -1
    filter_map: int = 0

    def underlying_track(self) -> "Track":
        return self


@dataclass
class PicoTrack:
    """Slim track carrying its own kinematics on top of a full track."""

    track: Track
    pt: float
    eta: float
    phi: float
    label: int = 0

    @classmethod
    def wrap(cls, track: Track) -> "PicoTrack":
        return cls(track=track, pt=track.pt, eta=track.eta, phi=track.phi, label=track.label)

    def underlying_track(self) -> Track:
        return self.track


@dataclass(frozen=True)
class Cluster:
    energy: float
    eta: float
    phi: float
    is_emcal: bool = True


@dataclass(frozen=True)
class MCParticle:
    pt: float
    eta: float
    phi: float
    # None when the particle format does not carry the flag itself.
    physical_primary: bool | None = None


@dataclass
class MCEvent:
    particles: Sequence[MCParticle | None] = field(default_factory=list)
    primaries: frozenset[int] = frozenset()
    pt_hard: float = 0.0
    cross_section: float = 0.0
    n_trials: float = 0.0

    def get_track(self, label: int) -> MCParticle | None:
        if label < 0 or label >= len(self.particles):
            return None
        return self.particles[label]

    def is_physical_primary(self, label: int) -> bool:
        return label in self.primaries


@dataclass(frozen=True)
class Vertex:
    z: float = 0.0


@dataclass
class RecEvent:
    primary_vertex: Vertex = field(default_factory=Vertex)
    calo_clusters: Sequence[Cluster | None] = field(default_factory=list)


@dataclass
class EventData:
    matched_tracks: Sequence[Track | PicoTrack] | None
    rec_event: RecEvent = field(default_factory=RecEvent)
    trigger_decision: TriggerDecision = field(default_factory=TriggerDecision)
    clusters: Sequence[Cluster | None] | None = None
    mc_event: MCEvent | None = None

    def cluster_at(self, index: int) -> Cluster | None:
        if self.clusters is None or index < 0 or index >= len(self.clusters):
            return None
        return self.clusters[index]
