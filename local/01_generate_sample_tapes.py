"""
Generate the 40 sample NBFC loan tapes (4 size buckets x 10 institutions).

Outputs xlsx workbooks to local/output/tapes/<profile>/, saving one file at a
time with a short pause between saves.

Usage:
    python local/01_generate_sample_tapes.py
    python local/01_generate_sample_tapes.py --seed 42 --delay 0
    python local/01_generate_sample_tapes.py --profiles small medium
"""

import argparse
import sys
import time
from pathlib import Path

# Add project root to path so we can import loantape/
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from loantape.batch import (
    SAVE_DELAY_SECONDS,
    BatchExportCoordinator,
    print_tape_summary,
    save_staggered,
)
from loantape.profiles import DEFAULT_CATALOG
from loantape.randomness import RandomSource

# ---------------------------------------------------------------------------
# Output paths
# ---------------------------------------------------------------------------
OUTPUT_DIR = PROJECT_ROOT / "local" / "output"
TAPES_DIR = OUTPUT_DIR / "tapes"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Generate sample NBFC loan tapes")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for reproducible tapes (default: unseeded)")
    parser.add_argument("--delay", type=float, default=SAVE_DELAY_SECONDS,
                        help=f"Seconds between file saves (default: {SAVE_DELAY_SECONDS})")
    parser.add_argument("--profiles", nargs="+", choices=DEFAULT_CATALOG.keys(),
                        default=DEFAULT_CATALOG.keys(),
                        help="Profiles to generate (default: all)")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    print("Generating sample loan tapes...", flush=True)
    print(f"  Profiles: {', '.join(args.profiles)}")
    print(f"  Seed: {args.seed if args.seed is not None else 'unseeded'}")
    print(f"  Output: {TAPES_DIR}\n")

    # -----------------------------------------------------------------------
    # 1. Generate workbooks in memory
    # -----------------------------------------------------------------------
    print("Step 1: Synthesising loans and building workbooks...", flush=True)
    t0 = time.time()
    coordinator = BatchExportCoordinator(DEFAULT_CATALOG, rng=RandomSource(args.seed))
    all_files = coordinator.generate_all(args.profiles)
    total_files = sum(len(files) for files in all_files.values())
    total_records = sum(f.record_count for files in all_files.values() for f in files)
    print(f"  {total_files} workbooks, {total_records:,} loans ({time.time() - t0:.1f}s)\n")

    # -----------------------------------------------------------------------
    # 2. Save, staggered
    # -----------------------------------------------------------------------
    print("Step 2: Saving workbooks...", flush=True)

    for key, files in all_files.items():
        def report(generated, path, key=key):
            print(f"    [{key:>6}] {path.name} "
                  f"({generated.record_count:,} loans, {generated.size_bytes / 1024:.0f} KB)",
                  flush=True)

        save_staggered(files, TAPES_DIR / key, delay_seconds=args.delay, on_saved=report)

    print(f"\n  {total_files} tapes written to {TAPES_DIR}")

    print_tape_summary(all_files, DEFAULT_CATALOG, coordinator.files_per_profile)


if __name__ == "__main__":
    main()
