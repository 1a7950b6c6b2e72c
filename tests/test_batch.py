"""
Batch export: 4 profiles x 10 institutions, naming, clamping, staggered saving.

pytest tests/test_batch.py -v
"""

import ast
import re
from dataclasses import replace
from pathlib import Path

import pytest

from loantape import batch
from loantape.batch import (
    BatchExportCoordinator,
    institution_label_for,
    print_tape_summary,
    save_file,
    save_staggered,
)
from loantape.profiles import DEFAULT_CATALOG, ProfileCatalog
from loantape.randomness import RandomSource
from loantape.workbook import GeneratedFile


@pytest.fixture(scope="module")
def tiny_catalog():
    """Default profiles scaled down to a handful of loans per institution."""
    return ProfileCatalog([
        (key, replace(profile, total_loan_count=10))
        for key, profile in DEFAULT_CATALOG.list_profiles()
    ])


@pytest.fixture(scope="module")
def all_files(tiny_catalog):
    coordinator = BatchExportCoordinator(tiny_catalog, rng=RandomSource(2024))
    return coordinator.generate_all()


class TestNaming:

    @pytest.mark.parametrize("key, index, label", [
        ("small", 1, "Lessthan1000CrNBFC1"),
        ("medium", 4, "Lessthan5000CrNBFC4"),
        ("large", 7, "Lessthan10000CrNBFC7"),
        ("xlarge", 10, "Greaterthan10000CrNBFC10"),
    ])
    def test_institution_label(self, key, index, label):
        assert institution_label_for(DEFAULT_CATALOG.get(key), index) == label


class TestSourceCompatibility:

    # Backslashes inside f-string braces only parse on 3.12+
    FSTRING_BACKSLASH = re.compile(r"\bf(['\"])[^'\"\n]*\{[^}\n]*\\")

    @pytest.mark.parametrize("path", sorted(Path(batch.__file__).parent.glob("*.py")),
                             ids=lambda p: p.name)
    def test_no_backslash_in_fstring_expressions(self, path):
        source = path.read_text(encoding="utf-8")
        ast.parse(source, feature_version=(3, 9))
        offending = [line for line in source.splitlines() if self.FSTRING_BACKSLASH.search(line)]
        assert offending == []


class TestRecordCounts:

    def test_jitter_around_a_tenth_of_total(self):
        coordinator = BatchExportCoordinator(rng=RandomSource(1))
        small = DEFAULT_CATALOG.get("small")
        counts = [coordinator.record_count_for(small) for _ in range(500)]
        assert min(counts) >= 150 and max(counts) <= 350

    def test_clamped_at_minimum(self, tiny_catalog):
        coordinator = BatchExportCoordinator(tiny_catalog, rng=RandomSource(1))
        small = tiny_catalog.get("small")
        counts = [coordinator.record_count_for(small) for _ in range(500)]
        assert min(counts) == 1
        assert max(counts) <= 101

    def test_custom_minimum(self, tiny_catalog):
        coordinator = BatchExportCoordinator(tiny_catalog, rng=RandomSource(1), min_records=25)
        counts = [coordinator.record_count_for(tiny_catalog.get("small")) for _ in range(200)]
        assert min(counts) >= 25


class TestGenerateAll:

    def test_four_keys_ten_files_each(self, all_files):
        assert list(all_files.keys()) == ["small", "medium", "large", "xlarge"]
        for key, files in all_files.items():
            assert len(files) == 10, key
            assert all(isinstance(f, GeneratedFile) for f in files)

    def test_filenames_follow_pattern(self, all_files):
        small = all_files["small"]
        assert [f.filename for f in small] == [
            f"Lessthan1000CrNBFC{i}_LoanTape_Sample{i}.xlsx" for i in range(1, 11)]
        names = [f.filename for files in all_files.values() for f in files]
        assert len(set(names)) == 40

    def test_every_file_has_loans(self, all_files):
        for files in all_files.values():
            assert all(f.record_count >= 1 for f in files)
            assert all(f.content[:2] == b"PK" for f in files)

    def test_subset_of_profiles(self, tiny_catalog):
        coordinator = BatchExportCoordinator(tiny_catalog, rng=RandomSource(3), files_per_profile=2)
        result = coordinator.generate_all(["xlarge", "small"])
        assert list(result.keys()) == ["small", "xlarge"]
        assert all(len(files) == 2 for files in result.values())

    def test_unknown_key_raises(self, tiny_catalog):
        coordinator = BatchExportCoordinator(tiny_catalog, rng=RandomSource(3), files_per_profile=1)
        with pytest.raises(KeyError, match="unknown profile"):
            coordinator.generate_all(["small", "smal"])

    def test_seeded_batches_repeat(self, tiny_catalog):
        def run():
            coordinator = BatchExportCoordinator(tiny_catalog, rng=RandomSource(8), files_per_profile=2)
            return {k: [f.record_count for f in files]
                    for k, files in coordinator.generate_all(["small"]).items()}
        assert run() == run()

    def test_summary_prints_checks(self, all_files, tiny_catalog, capsys):
        print_tape_summary(all_files, tiny_catalog)
        out = capsys.readouterr().out
        assert "SAMPLE TAPE SUMMARY" in out
        assert "VALIDATION CHECKS" in out
        assert "ERROR" not in out

    def test_summary_respects_files_per_profile(self, tiny_catalog, capsys):
        coordinator = BatchExportCoordinator(tiny_catalog, rng=RandomSource(5), files_per_profile=2)
        two_each = coordinator.generate_all(["small", "medium"])
        print_tape_summary(two_each, tiny_catalog, files_per_profile=2)
        out = capsys.readouterr().out
        assert "expected 10" not in out
        assert "ERROR" not in out
        assert "All checks passed." in out

    def test_summary_flags_short_batch(self, all_files, tiny_catalog, capsys):
        short = {"small": all_files["small"][:3]}
        print_tape_summary(short, tiny_catalog)
        assert "ERROR: small has 3 files, expected 10" in capsys.readouterr().out


class TestSaving:

    def _files(self, n):
        return [GeneratedFile(content=f"blob{i}".encode(), filename=f"f{i}.xlsx") for i in range(n)]

    def test_save_file(self, tmp_path):
        path = save_file(self._files(1)[0], tmp_path / "nested")
        assert path.read_bytes() == b"blob0"

    def test_staggered_delays_between_files(self, tmp_path):
        sleeps = []
        saved = []
        paths = save_staggered(
            self._files(3), tmp_path, delay_seconds=0.5, sleep=sleeps.append,
            on_saved=lambda generated, path: saved.append(generated.filename))
        assert sleeps == [0.5, 0.5]
        assert saved == ["f0.xlsx", "f1.xlsx", "f2.xlsx"]
        assert [p.name for p in paths] == saved
        assert all(p.exists() for p in paths)

    def test_zero_delay_never_sleeps(self, tmp_path):
        sleeps = []
        save_staggered(self._files(4), tmp_path, delay_seconds=0, sleep=sleeps.append)
        assert sleeps == []
