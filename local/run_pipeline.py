"""
Run the loan-tape pipeline: sample tapes -> analytics reports.

Each step is a separate script run in a fresh interpreter, so a failure in one
stage leaves earlier outputs on disk.

Usage:
    python local/run_pipeline.py                    # run 01 -> 02
    python local/run_pipeline.py --from 02          # reports only
    python local/run_pipeline.py --seed 42 --delay 0
    python local/run_pipeline.py --clean            # wipe local/output/ first
"""

import argparse
import shutil
import subprocess
import sys
import time
from pathlib import Path

SCRIPT_DIR = Path(__file__).resolve().parent
OUTPUT_DIR = SCRIPT_DIR / "output"

# (step number, script, display name, accepts --delay)
STEPS = [
    ("01", "01_generate_sample_tapes.py", "Sample Loan Tapes", True),
    ("02", "02_generate_reports.py", "Analytics Reports", False),
]


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run the loan-tape pipeline")
    parser.add_argument("--from", dest="start_from", default=STEPS[0][0],
                        choices=[step[0] for step in STEPS],
                        help=f"Start from this step (default: {STEPS[0][0]})")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed passed to every step")
    parser.add_argument("--delay", type=float, default=None,
                        help="Save delay passed to the tape step")
    parser.add_argument("--clean", action="store_true",
                        help="Delete local/output/ before running")
    return parser.parse_args(argv)


def step_command(script: str, takes_delay: bool, args) -> list:
    cmd = [sys.executable, "-u", str(SCRIPT_DIR / script)]
    if args.seed is not None:
        cmd += ["--seed", str(args.seed)]
    if takes_delay and args.delay is not None:
        cmd += ["--delay", str(args.delay)]
    return cmd


def run_step(num: str, name: str, cmd: list) -> float:
    """Run one step; exits the pipeline with the step's code on failure."""
    print(f"\n--- Step {num}: {name} ---", flush=True)
    t0 = time.time()
    result = subprocess.run(cmd, cwd=str(SCRIPT_DIR.parent))
    elapsed = time.time() - t0

    if result.returncode != 0:
        print(f"\nStep {num} failed (exit code {result.returncode}). Stopping pipeline.", flush=True)
        sys.exit(result.returncode)

    print(f"--- Step {num} complete ({elapsed:.1f}s) ---", flush=True)
    return elapsed


def main(argv=None):
    args = parse_args(argv)

    if args.clean and OUTPUT_DIR.exists():
        shutil.rmtree(OUTPUT_DIR)
        print(f"Deleted: {OUTPUT_DIR}", flush=True)

    start = [step[0] for step in STEPS].index(args.start_from)
    selected = STEPS[start:]

    print(f"Pipeline: {' -> '.join(step[2] for step in selected)}", flush=True)
    print(f"{'='*60}", flush=True)

    timings = []
    for num, script, name, takes_delay in selected:
        timings.append((num, name, run_step(num, name, step_command(script, takes_delay, args))))

    print(f"\n{'='*60}", flush=True)
    for num, name, elapsed in timings:
        print(f"  {num}  {name:<22} {elapsed:>7.1f}s")
    print(f"  {'':2}  {'Total':<22} {sum(t for _, _, t in timings):>7.1f}s")
    print(f"\nOutput: {OUTPUT_DIR}", flush=True)


if __name__ == "__main__":
    main()
