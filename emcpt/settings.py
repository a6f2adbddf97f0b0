import copy
from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - runtime compatibility path
    import tomli as tomllib

from .trigger import TriggerMethod


DEFAULTS_PATH = Path(__file__).parent / "defaults.toml"
BINNING_NAMES = ("pt", "eta", "phi", "zvertex", "energy")


def expand(path: str) -> str:
    return os.path.expandvars(os.path.expanduser(str(path)))


def ensure_parent(path: str) -> None:
    Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        cfg = tomllib.load(f)
    if not isinstance(cfg, dict):
        raise ValueError(f"Invalid TOML at {path}: top-level table is missing.")
    return cfg


_DEFAULT_CONFIG_CACHE: dict[str, Any] = {}


def default_config_template() -> dict[str, Any]:
    if not _DEFAULT_CONFIG_CACHE:
        _DEFAULT_CONFIG_CACHE.update(_load_toml(DEFAULTS_PATH))
    return copy.deepcopy(_DEFAULT_CONFIG_CACHE)


def load_config(path: str) -> dict[str, Any]:
    return _load_toml(Path(path).expanduser())


def _required_table(table: dict[str, Any], key: str, context: str = "defaults") -> dict[str, Any]:
    value = table.get(key)
    if not isinstance(value, dict):
        raise ValueError(f"Missing or invalid [{key}] table in {context} config")
    return value


def _required_value(table: dict[str, Any], key: str, context: str) -> Any:
    if key not in table:
        raise ValueError(f"Missing required key '{context}.{key}'")
    return table[key]


def _deep_merge_dict(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _deep_merge_dict(out[key], value)
        else:
            # Arrays of tables (trigger_classes) are replaced as a whole.
            out[key] = copy.deepcopy(value)
    return out


def merge_config(cfg: dict[str, Any] | None) -> dict[str, Any]:
    merged = default_config_template()
    if not isinstance(cfg, dict):
        return merged
    out = _deep_merge_dict(merged, cfg)
    # A user binning table picks its own scheme, so it replaces the default table.
    user_binning = cfg.get("binning")
    if isinstance(user_binning, dict) and isinstance(out.get("binning"), dict):
        for name, table in user_binning.items():
            out["binning"][name] = copy.deepcopy(table)
    return out


def _as_range(raw: Any, context: str) -> tuple[float, float]:
    values = [float(v) for v in list(raw)]
    if len(values) != 2:
        raise ValueError(f"{context} must have 2 values: [min, max].")
    if values[0] > values[1]:
        raise ValueError(f"{context} has min > max: {values}.")
    return values[0], values[1]


def _parse_trigger_method(raw: Any, context: str) -> TriggerMethod:
    try:
        return TriggerMethod(str(raw).strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in TriggerMethod)
        raise ValueError(f"Unsupported {context} '{raw}'. Allowed: {allowed}.") from None


def _edges_from_segments(segments: list[Any], context: str) -> list[float]:
    edges: list[float] = []
    for segment in segments:
        lower, upper, width = (float(v) for v in segment)
        if width <= 0 or upper <= lower:
            raise ValueError(f"Invalid segment {list(segment)} in {context}.")
        if edges and abs(edges[-1] - lower) > 1e-9:
            raise ValueError(f"Segments in {context} are not contiguous at {lower}.")
        if not edges:
            edges.append(lower)
        nsteps = int(round((upper - lower) / width))
        if abs(nsteps * width - (upper - lower)) > 1e-9 * max(1.0, abs(upper - lower)):
            raise ValueError(f"Segment width {width} does not divide [{lower}, {upper}] in {context}.")
        edges.extend(lower + width * (i + 1) for i in range(nsteps))
        edges[-1] = upper
    return edges


def _build_edges(table: dict[str, Any], context: str) -> list[float]:
    schemes = [key for key in ("edges", "segments", "nbins") if key in table]
    if len(schemes) > 1:
        raise ValueError(f"{context} defines more than one of edges/segments/nbins: {', '.join(schemes)}.")
    if "edges" in table:
        edges = [float(v) for v in list(table["edges"])]
    elif "segments" in table:
        edges = _edges_from_segments(list(table["segments"]), context)
    else:
        nbins = int(_required_value(table, "nbins", context))
        xmin = float(_required_value(table, "min", context))
        xmax = float(_required_value(table, "max", context))
        if nbins < 1:
            raise ValueError(f"{context}.nbins must be positive.")
        edges = [xmin + (xmax - xmin) * i / nbins for i in range(nbins + 1)]
    if len(edges) < 2:
        raise ValueError(f"{context} must define at least 2 edges.")
    if any(hi <= lo for lo, hi in zip(edges, edges[1:])):
        raise ValueError(f"{context} edges must be strictly increasing.")
    return edges


def _build_trigger_classes(raw: Any) -> list[tuple[str, str]]:
    if not isinstance(raw, list) or not raw:
        raise ValueError("Config must define at least one [[trigger_classes]] entry.")
    out: list[tuple[str, str]] = []
    seen: set[str] = set()
    for entry in raw:
        if not isinstance(entry, dict):
            raise ValueError("Each [[trigger_classes]] entry must be a table.")
        name = str(_required_value(entry, "name", "trigger_classes")).strip()
        if name in seen:
            raise ValueError(f"Duplicated trigger class in configuration: '{name}'.")
        seen.add(name)
        out.append((name, str(entry.get("title", name))))
    return out


@dataclass(frozen=True)
class RuntimePaths:
    input_tree: str
    tree_name: str
    output: str
    metadata_output: str
    log_file: str


@dataclass(frozen=True)
class RecTrackConfig:
    enabled: bool
    trigger_method: TriggerMethod
    swap_eta: bool
    request_mc_true: bool


@dataclass(frozen=True)
class ClusterConfig:
    enabled: bool
    trigger_method: TriggerMethod
    energy_range: tuple[float, float]


@dataclass(frozen=True)
class WeightConfig:
    use_cross_section: bool
    norm: float
    exponent: float


@dataclass(frozen=True)
class RuntimeConfig:
    is_mc: bool
    max_events: int
    log_level: str
    trigger_classes: list[tuple[str, str]]
    binning: dict[str, list[float]]
    rectracks: RecTrackConfig
    clusters: ClusterConfig
    kine_cuts: dict[str, tuple[float, float]] | None
    filter_bits: int
    weights: WeightConfig | None
    paths: RuntimePaths
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def trigger_class_names(self) -> list[str]:
        return [name for name, _ in self.trigger_classes]


def _build_kine_cuts(cfg: dict[str, Any]) -> dict[str, tuple[float, float]] | None:
    table = cfg.get("kine_cuts")
    if not isinstance(table, dict) or not bool(table.get("enabled", True)):
        return None
    cuts: dict[str, tuple[float, float]] = {}
    for key in ("pt", "eta", "phi"):
        if key in table:
            cuts[key] = _as_range(table[key], f"kine_cuts.{key}")
    unknown = set(table) - {"enabled", "pt", "eta", "phi"}
    if unknown:
        raise ValueError(f"Unknown kine_cuts keys: {', '.join(sorted(unknown))}.")
    return cuts or None


def _build_weights(cfg: dict[str, Any]) -> WeightConfig | None:
    table = cfg.get("weights")
    if not isinstance(table, dict) or not bool(table.get("enabled", False)):
        return None
    return WeightConfig(
        use_cross_section=bool(table.get("use_cross_section", False)),
        norm=float(table.get("norm", 1.0)),
        exponent=float(table.get("exponent", 4.5)),
    )


def current_runtime_config(cfg: dict[str, Any] | None = None) -> RuntimeConfig:
    merged = merge_config(cfg)

    run_cfg = _required_table(merged, "run", "config")
    path_cfg = _required_table(merged, "paths", "config")
    binning_cfg = _required_table(merged, "binning", "config")
    rec_cfg = _required_table(merged, "rectracks", "config")
    clus_cfg = _required_table(merged, "clusters", "config")

    binning = {
        name: _build_edges(_required_table(binning_cfg, name, "binning"), f"binning.{name}")
        for name in BINNING_NAMES
    }

    max_events = int(run_cfg.get("max_events", 0))
    if max_events < 0:
        raise ValueError("run.max_events must be >= 0.")

    track_sel = merged.get("track_selection", {})
    filter_bits = int(track_sel.get("filter_bits", 0)) if isinstance(track_sel, dict) else 0

    return RuntimeConfig(
        is_mc=bool(run_cfg.get("is_mc", False)),
        max_events=max_events,
        log_level=str(run_cfg.get("log_level", "INFO")),
        trigger_classes=_build_trigger_classes(merged.get("trigger_classes")),
        binning=binning,
        rectracks=RecTrackConfig(
            enabled=bool(rec_cfg.get("enabled", True)),
            trigger_method=_parse_trigger_method(rec_cfg.get("trigger_method", "string"), "rectracks.trigger_method"),
            swap_eta=bool(rec_cfg.get("swap_eta", False)),
            request_mc_true=bool(rec_cfg.get("request_mc_true", False)),
        ),
        clusters=ClusterConfig(
            enabled=bool(clus_cfg.get("enabled", True)),
            trigger_method=_parse_trigger_method(clus_cfg.get("trigger_method", "string"), "clusters.trigger_method"),
            energy_range=_as_range(_required_value(clus_cfg, "energy_range", "clusters"), "clusters.energy_range"),
        ),
        kine_cuts=_build_kine_cuts(merged),
        filter_bits=filter_bits,
        weights=_build_weights(merged),
        paths=RuntimePaths(
            input_tree=str(_required_value(path_cfg, "input_tree", "paths")),
            tree_name=str(_required_value(path_cfg, "tree_name", "paths")),
            output=str(_required_value(path_cfg, "output", "paths")),
            metadata_output=str(path_cfg.get("metadata_output", "run_metadata.json")),
            log_file=str(path_cfg.get("log_file", "") or ""),
        ),
        raw=merged,
    )
