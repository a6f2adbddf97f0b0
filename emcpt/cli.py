import argparse
import copy
from datetime import datetime, timezone
import json
import logging
import subprocess
import sys
import time

from . import settings as s


LOGGER = logging.getLogger("emcpt")


def _setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    lvl = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=lvl,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)] + ([logging.FileHandler(log_file)] if log_file else []),
        force=True,
    )


def _git_revision() -> str:
    try:
        out = subprocess.run(["git", "rev-parse", "HEAD"], check=True, capture_output=True, text=True)
        return out.stdout.strip()
    except (OSError, subprocess.CalledProcessError):
        return "unknown"


def _write_metadata(path: str, payload: dict) -> None:
    out = s.expand(path)
    s.ensure_parent(out)
    with open(out, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True, default=str)


def run(runtime_cfg: s.RuntimeConfig) -> None:
    _setup_logging(runtime_cfg.log_level, runtime_cfg.paths.log_file or None)
    task = str(runtime_cfg.raw.get("run", {}).get("task", "analyse")).lower()
    LOGGER.info("Starting run task=%s is_mc=%s", task, runtime_cfg.is_mc)

    from . import tasks  # ROOT is only needed once a run starts

    t0 = time.time()
    if task == "analyse":
        tasks.run_analysis(runtime_cfg.paths.input_tree, runtime_cfg.paths.output, runtime_config=runtime_cfg)
    else:
        raise ValueError(f"Unsupported task: {task}")
    LOGGER.info("Finished run task=%s elapsed_sec=%.2f", task, time.time() - t0)


def main() -> int:
    parser = argparse.ArgumentParser(description="EMCal-triggered track and cluster spectra")
    parser.add_argument("--config", help="Path to TOML config")
    parser.add_argument("--dump-default-config", action="store_true", help="Print default config and exit")
    args = parser.parse_args()

    if args.dump_default_config:
        print(json.dumps(s.default_config_template(), indent=2))
        return 0
    if not args.config:
        parser.error("--config is required")

    user_cfg = s.load_config(args.config)
    runtime_cfg = s.current_runtime_config(user_cfg)

    started = datetime.now(timezone.utc)
    status = "success"
    error = ""
    try:
        run(runtime_cfg)
    except Exception as exc:
        status = "failed"
        error = str(exc)
        raise
    finally:
        ended = datetime.now(timezone.utc)
        metadata = {
            "status": status,
            "error": error,
            "started_utc": started.isoformat(),
            "ended_utc": ended.isoformat(),
            "duration_sec": (ended - started).total_seconds(),
            "git_revision": _git_revision(),
            "config": copy.deepcopy(runtime_cfg.raw),
        }
        try:
            _write_metadata(runtime_cfg.paths.metadata_output, metadata)
        except OSError as meta_exc:
            LOGGER.error("Failed to write metadata: %s", meta_exc)
    return 0


if __name__ == "__main__":
    sys.exit(main())
