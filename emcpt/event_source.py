import logging
from typing import Any, Iterator

from .event_data import Cluster, EventData, MCEvent, MCParticle, RecEvent, Track, Vertex
from .settings import expand
from .trigger import TriggerDecision


LOGGER = logging.getLogger("emcpt.io")

TRACK_BRANCHES = ("fTrackPt", "fTrackEta", "fTrackPhi", "fTrackLabel", "fTrackCluster", "fTrackFilterMap")
CLUSTER_BRANCHES = ("fClusterE", "fClusterEta", "fClusterPhi", "fClusterIsEMCAL")
CALO_CLUSTER_BRANCHES = ("fCaloClusterE", "fCaloClusterEta", "fCaloClusterPhi", "fCaloClusterIsEMCAL")
MC_BRANCHES = ("fMCPt", "fMCEta", "fMCPhi", "fMCIsPhysicalPrimary")


def open_tree(path: str, tree_name: str) -> tuple[Any, Any]:
    import ROOT

    root_file = ROOT.TFile.Open(expand(path))
    if not root_file or root_file.IsZombie():
        raise RuntimeError(f"Cannot open input file: {path}")
    tree = root_file.Get(tree_name)
    if not tree:
        raise RuntimeError(f"Tree '{tree_name}' not found in {path}")
    return root_file, tree


def branch_names(tree: Any) -> set[str]:
    return {str(branch.GetName()) for branch in tree.GetListOfBranches()}


def _vec(entry: Any, branch: str) -> list[Any]:
    return list(getattr(entry, branch))


def _has_all(available: set[str], names: tuple[str, ...]) -> bool:
    return all(name in available for name in names)


def _clusters(entry: Any, names: tuple[str, ...]) -> list[Cluster]:
    energy, eta, phi, is_emcal = (_vec(entry, name) for name in names)
    return [Cluster(float(e), float(h), float(p), bool(c)) for e, h, p, c in zip(energy, eta, phi, is_emcal)]


def event_from_entry(entry: Any, available: set[str], is_mc: bool) -> EventData:
    tracks = None
    if _has_all(available, TRACK_BRANCHES):
        pt, eta, phi, label, cluster, filter_map = (_vec(entry, name) for name in TRACK_BRANCHES)
        tracks = [
            Track(float(p), float(h), float(f), int(lab), int(c), int(fm))
            for p, h, f, lab, c, fm in zip(pt, eta, phi, label, cluster, filter_map)
        ]

    clusters = _clusters(entry, CLUSTER_BRANCHES) if _has_all(available, CLUSTER_BRANCHES) else None
    calo_clusters = _clusters(entry, CALO_CLUSTER_BRANCHES) if _has_all(available, CALO_CLUSTER_BRANCHES) else []

    mc_event = None
    if is_mc and _has_all(available, MC_BRANCHES):
        mc_pt, mc_eta, mc_phi, mc_primary = (_vec(entry, name) for name in MC_BRANCHES)
        mc_event = MCEvent(
            particles=[
                MCParticle(float(p), float(h), float(f), bool(prim))
                for p, h, f, prim in zip(mc_pt, mc_eta, mc_phi, mc_primary)
            ],
            pt_hard=float(getattr(entry, "fPtHard", 0.0)),
            cross_section=float(getattr(entry, "fCrossSection", 0.0)),
            n_trials=float(getattr(entry, "fNTrials", 0.0)),
        )

    decision = TriggerDecision(
        min_bias=bool(getattr(entry, "fIsMinBias", False)),
        fired_trigger_classes=str(getattr(entry, "fFiredTriggerClasses", "")),
        patch_bits=int(getattr(entry, "fTriggerPatchBits", 0)),
    )
    return EventData(
        matched_tracks=tracks,
        rec_event=RecEvent(primary_vertex=Vertex(float(getattr(entry, "fVertexZ", 0.0))), calo_clusters=calo_clusters),
        trigger_decision=decision,
        clusters=clusters,
        mc_event=mc_event,
    )


def iter_events(tree: Any, is_mc: bool, max_events: int = 0) -> Iterator[EventData]:
    available = branch_names(tree)
    if is_mc and not _has_all(available, MC_BRANCHES):
        LOGGER.warning("MC requested but tree has no MC branches; MC information disabled")
    for ientry, entry in enumerate(tree):
        if max_events and ientry >= max_events:
            break
        yield event_from_entry(entry, available, is_mc)
