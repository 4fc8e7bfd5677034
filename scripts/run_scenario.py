#!/usr/bin/env python3
"""Run a scripted garden scenario and print what happened.

Each action prints one line (time, op, result or error), followed by the
committed notifications and a final garden summary.

Usage:
    python scripts/run_scenario.py configs/scenarios/basic.yaml
    python scripts/run_scenario.py SCENARIO [--config BASE] [--record OUT.npz] [--interval N] [-v]

Recording follows the `recording` config section; --record and --interval
override it.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from plantsim.config import default_config, load_config, validate_config
from plantsim.scenario import load_scenario, run_scenario


def main():
    parser = argparse.ArgumentParser(description="Run a PlantSim scenario")
    parser.add_argument("scenario", help="Scenario YAML file")
    parser.add_argument("--config", default=None,
                        help="Base configuration YAML (default: built-in defaults)")
    parser.add_argument("--record", default=None, metavar="PATH",
                        help="Enable history recording and write it to PATH "
                             "(overrides recording.enabled and recording.output)")
    parser.add_argument("--interval", type=int, default=None,
                        help="Override recording.interval, in seconds")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log every committed notification")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config) if args.config else default_config()
    if args.record:
        config.recording = dataclasses.replace(
            config.recording, enabled=True, output=args.record,
        )
    if args.interval is not None:
        config.recording = dataclasses.replace(config.recording, interval=args.interval)
    validate_config(config)

    scenario = load_scenario(args.scenario)
    result = run_scenario(scenario, config=config)

    for o in result.outcomes:
        status = f"-> {o.result!r}" if o.ok else f"!! {o.error}"
        print(f"[t={o.t:>6}] {o.op:<12} {status}")

    print(f"\n{len(result.events)} notifications:")
    for event in result.events:
        print(f"  {event}")

    s = result.summary
    print(f"\nSummary at t={s.now}: {s.n_entities} planted, "
          f"{s.n_active} active, {s.n_alive} alive, balance {s.balance}")
    for stage, n in s.stage_counts.items():
        print(f"  {stage.name:<9} {n}")

    recorder = result.recorder
    if recorder.enabled:
        output = result.manager.config.recording.output
        recorder.save(output)
        print(f"\nHistory ({len(recorder.times())} snapshots) → {output}")


if __name__ == "__main__":
    main()
