"""
Analyse one synthetic institution per profile and write PDF analytics reports.

For each profile: synthesise a tape (same sizing rule as the sample tapes),
compute the AnalysisResult, render the PDF, and dump the analysis as JSON next
to it. Outputs to local/output/reports/.

Usage:
    python local/02_generate_reports.py
    python local/02_generate_reports.py --seed 7 --profiles xlarge
"""

import argparse
import json
import sys
from datetime import date
from pathlib import Path

# Add project root to path so we can import loantape/
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from loantape.analytics import analyze_portfolio
from loantape.batch import BatchExportCoordinator, institution_label_for
from loantape.profiles import DEFAULT_CATALOG
from loantape.randomness import RandomSource
from loantape.report_generators import ReportOptions, render_report, report_filename
from loantape.synthesis import generate, institution_code_for
from loantape.workbook import sample_filename

# ---------------------------------------------------------------------------
# Output paths
# ---------------------------------------------------------------------------
OUTPUT_DIR = PROJECT_ROOT / "local" / "output"
REPORTS_DIR = OUTPUT_DIR / "reports"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Generate PDF analytics reports")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for reproducible reports (default: unseeded)")
    parser.add_argument("--profiles", nargs="+", choices=DEFAULT_CATALOG.keys(),
                        default=DEFAULT_CATALOG.keys(),
                        help="Profiles to report on (default: all)")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    REPORTS_DIR.mkdir(parents=True, exist_ok=True)
    rng = RandomSource(args.seed)
    coordinator = BatchExportCoordinator(DEFAULT_CATALOG, rng=rng)
    today = date.today()

    print("Generating analytics reports...", flush=True)
    print(f"  Output: {REPORTS_DIR}\n")

    for key in args.profiles:
        profile = DEFAULT_CATALOG.get(key)
        label = institution_label_for(profile, 1)
        records = generate(profile, coordinator.record_count_for(profile),
                           institution_code_for(label), rng=rng)

        analysis = analyze_portfolio(records, sample_filename(label, 1))
        pdf = render_report(analysis, ReportOptions(company_name=label, report_date=today))

        pdf_path = REPORTS_DIR / report_filename(analysis, today)
        pdf_path.write_bytes(pdf)
        json_path = pdf_path.with_suffix(".json")
        json_path.write_text(json.dumps(analysis.to_dict(), indent=2, default=str))

        flags = ", ".join(f"{f.type}:{f.severity}" for f in analysis.forensic_flags) or "none"
        print(f"    [{key:>6}] {pdf_path.name} ({len(pdf) / 1024:.0f} KB) "
              f"loans={analysis.total_loans:,} "
              f"dq={analysis.performance_metrics.current_delinquency_rate:.1f}% "
              f"flags={flags}", flush=True)

    print(f"\n  Reports written to {REPORTS_DIR}\n")


if __name__ == "__main__":
    main()
