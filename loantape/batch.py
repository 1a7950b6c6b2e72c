"""
Batch export: 10 synthetic NBFCs per profile, 40 workbooks in total.

Institutions are named from the profile's size-bucket label (non-word
characters stripped) plus "NBFC" and an index, e.g. "Lessthan1000CrNBFC3".
Saving is staggered with a fixed delay between files.
"""

import re
import time
from collections import OrderedDict
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from loantape.profiles import DEFAULT_CATALOG, PortfolioProfile, ProfileCatalog
from loantape.randomness import RandomSource
from loantape.workbook import GeneratedFile, assemble


FILES_PER_PROFILE = 10
RECORD_COUNT_JITTER = (-100, 100)
MIN_RECORDS_PER_FILE = 1
SAVE_DELAY_SECONDS = 0.5

NON_WORD = re.compile(r"[^\w]")


def institution_label_for(profile: PortfolioProfile, index: int) -> str:
    stem = NON_WORD.sub("", profile.size_bucket_label)
    return f"{stem}NBFC{index}"


class BatchExportCoordinator:
    """Drives generation of every sample tape in the catalog."""

    def __init__(
        self,
        catalog: ProfileCatalog = DEFAULT_CATALOG,
        rng: Optional[RandomSource] = None,
        files_per_profile: int = FILES_PER_PROFILE,
        min_records: int = MIN_RECORDS_PER_FILE,
    ):
        self.catalog = catalog
        self.rng = rng if rng is not None else RandomSource()
        self.files_per_profile = files_per_profile
        self.min_records = min_records

    def record_count_for(self, profile: PortfolioProfile) -> int:
        """total/10 plus up to +/-100 jitter, never below min_records."""
        base = round(profile.total_loan_count / self.files_per_profile)
        return max(self.min_records, base + self.rng.uniform_int(*RECORD_COUNT_JITTER))

    def generate_profile(self, profile: PortfolioProfile) -> List[GeneratedFile]:
        files = []
        for i in range(1, self.files_per_profile + 1):
            label = institution_label_for(profile, i)
            files.append(assemble(
                profile, label, self.record_count_for(profile),
                sample_number=i, rng=self.rng,
            ))
        return files

    def generate_all(self, keys: Optional[Iterable[str]] = None) -> Dict[str, List[GeneratedFile]]:
        """profile key -> files, in catalog order (optionally restricted to keys).

        Unknown keys raise KeyError, as ProfileCatalog.get does.
        """
        wanted = set(keys) if keys is not None else None
        if wanted is not None:
            for key in sorted(wanted):
                self.catalog.get(key)
        result = OrderedDict()
        for key, profile in self.catalog.list_profiles():
            if wanted is not None and key not in wanted:
                continue
            result[key] = self.generate_profile(profile)
        return result


# ---------------------------------------------------------------------------
# Saving
# ---------------------------------------------------------------------------

def save_file(generated: GeneratedFile, directory) -> Path:
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / generated.filename
    path.write_bytes(generated.content)
    return path


def save_staggered(
    files: Sequence[GeneratedFile],
    directory,
    delay_seconds: float = SAVE_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    on_saved: Optional[Callable[[GeneratedFile, Path], None]] = None,
) -> List[Path]:
    """Write each file in turn, pausing delay_seconds between consecutive saves."""
    paths = []
    for i, generated in enumerate(files):
        if i > 0 and delay_seconds > 0:
            sleep(delay_seconds)
        path = save_file(generated, directory)
        if on_saved is not None:
            on_saved(generated, path)
        paths.append(path)
    return paths


# ---------------------------------------------------------------------------
# Batch validation summary
# ---------------------------------------------------------------------------

def print_tape_summary(
    all_files: Dict[str, List[GeneratedFile]],
    catalog: ProfileCatalog = DEFAULT_CATALOG,
    files_per_profile: int = FILES_PER_PROFILE,
) -> None:
    """Print per-profile record counts and sanity checks for a generated batch.

    files_per_profile must match the coordinator that built the batch; it sets
    both the expected file count and the allowed drift from the target total.
    """
    print(f"\n{'='*72}")
    print("SAMPLE TAPE SUMMARY")
    print(f"{'='*72}")
    print(f"{'Profile':<10} {'Files':>5} {'Records':>9} {'Target':>9} "
          f"{'Min/File':>9} {'Max/File':>9} {'Size(KB)':>10}")
    print(f"{'-'*72}")

    issues = []
    for key, files in all_files.items():
        profile = catalog.get(key)
        counts = [f.record_count for f in files]
        size_kb = sum(f.size_bytes for f in files) / 1024
        total = sum(counts)
        print(f"{key:<10} {len(files):>5} {total:>9,} {profile.total_loan_count:>9,} "
              f"{min(counts, default=0):>9,} {max(counts, default=0):>9,} {size_kb:>10.0f}")

        if len(files) != files_per_profile:
            issues.append(f"  ERROR: {key} has {len(files)} files, expected {files_per_profile}")
        if any(c < MIN_RECORDS_PER_FILE for c in counts):
            issues.append(f"  ERROR: {key} has an empty tape")
        drift = abs(total - profile.total_loan_count)
        if drift > files_per_profile * RECORD_COUNT_JITTER[1]:
            issues.append(f"  WARNING: {key} total {total:,} is {drift:,} off target")
        names = [f.filename for f in files]
        if len(set(names)) != len(names):
            issues.append(f"  ERROR: {key} has duplicate filenames")
    print(f"{'='*72}")

    print("\nVALIDATION CHECKS:")
    if issues:
        for issue in issues:
            print(issue)
    else:
        print("  All checks passed.")
    print()
