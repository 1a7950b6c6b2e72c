"""
Workbook packaging: sheet layout, summary contents, error wrapping.

pytest tests/test_workbook.py -v
"""

import io

import pytest
from openpyxl import load_workbook

from loantape import workbook
from loantape.errors import AssemblyError
from loantape.randomness import RandomSource
from loantape.synthesis import generate
from loantape.workbook import (
    COLUMN_HEADERS,
    LOAN_TAPE_SHEET,
    SUMMARY_SHEET,
    GeneratedFile,
    assemble,
    build_workbook,
    fmt_inr,
    sample_filename,
)

LABEL = "Lessthan1000CrNBFC1"


@pytest.fixture(scope="module")
def small_file():
    from loantape.profiles import DEFAULT_CATALOG
    return assemble(DEFAULT_CATALOG.get("small"), LABEL, 150,
                    sample_number=1, rng=RandomSource(17))


@pytest.fixture(scope="module")
def small_book(small_file):
    return load_workbook(io.BytesIO(small_file.content))


def _summary_rows(book):
    return list(book[SUMMARY_SHEET].iter_rows(values_only=True))


def _product_mix_section(rows):
    start = next(i for i, row in enumerate(rows) if row[0] == "Product Mix")
    return {row[0]: row[1] for row in rows[start + 1:] if row[0]}


class TestGeneratedFile:

    def test_filename_and_metadata(self, small_file):
        assert isinstance(small_file, GeneratedFile)
        assert small_file.filename == "Lessthan1000CrNBFC1_LoanTape_Sample1.xlsx"
        assert small_file.institution_label == LABEL
        assert small_file.record_count == 150
        assert small_file.size_bytes == len(small_file.content)

    def test_is_xlsx_zip_container(self, small_file):
        assert small_file.content[:2] == b"PK"

    def test_sample_filename(self):
        assert sample_filename("GreaterthanCrNBFC10", 10) == "GreaterthanCrNBFC10_LoanTape_Sample10.xlsx"


class TestLoanTapeSheet:

    def test_two_named_sheets(self, small_book):
        assert small_book.sheetnames == [LOAN_TAPE_SHEET, SUMMARY_SHEET]

    def test_header_order(self, small_book):
        header = next(small_book[LOAN_TAPE_SHEET].iter_rows(max_row=1, values_only=True))
        assert list(header) == list(COLUMN_HEADERS.values())

    def test_one_row_per_record(self, small_book):
        assert small_book[LOAN_TAPE_SHEET].max_row == 151

    def test_cell_rendering(self, small_book):
        ws = small_book[LOAN_TAPE_SHEET]
        headers = [c.value for c in ws[1]]
        rows = [dict(zip(headers, values)) for values in ws.iter_rows(min_row=2, values_only=True)]
        assert rows[0]["Loan ID"] == "LES000001"
        for row in rows:
            assert row["Prepayment"] in ("Yes", "No")
            assert len(row["Origination Date"]) == 10     # ISO date text
            if row["Loan Type"] == "Retail":
                assert row["DSCR"] is None

    def test_column_widths_capped(self, small_book):
        ws = small_book[LOAN_TAPE_SHEET]
        widths = [ws.column_dimensions[c].width for c in ("A", "B", "C", "D")]
        assert widths[0] == 12                           # "LES000001" -> floor 10 + 2
        assert all(12 <= w <= 30 for w in widths)


class TestSummarySheet:

    def test_key_values(self, small_book):
        rows = _summary_rows(small_book)
        facts = {row[0]: row[1] for row in rows if row[0]}
        assert facts["NBFC Name"] == LABEL
        assert facts["AUM Bucket"] == "Less than ₹1,000 Cr"
        assert facts["Total Loans"] == 150
        assert facts["Portfolio Value (₹)"] == "62,50,00,00,000"
        assert facts["Average Loan Size (₹)"] == "2,50,000"
        assert facts["Risk Profile"] == "Conservative"
        assert facts["Geographic Focus"] == "Maharashtra, Gujarat, Karnataka"

    def test_product_mix_percentages(self, small_book, small_profile):
        mix = _product_mix_section(_summary_rows(small_book))
        expected = {p: f"{w * 100:.1f}%" for p, w in small_profile.product_mix}
        assert mix == expected

    @pytest.mark.parametrize("key", ["medium", "large", "xlarge"])
    def test_product_mix_for_every_profile(self, key):
        from loantape.profiles import DEFAULT_CATALOG
        profile = DEFAULT_CATALOG.get(key)
        content = build_workbook(profile, "X", generate(profile, 5, "XXX", rng=RandomSource(1)))
        mix = _product_mix_section(_summary_rows(load_workbook(io.BytesIO(content))))
        assert mix == {p: f"{w * 100:.1f}%" for p, w in profile.product_mix}


class TestAssemblyErrors:

    def test_writer_failure_is_wrapped(self, monkeypatch, small_profile):
        records = generate(small_profile, 3, "LES", rng=RandomSource(1))

        def broken_writer(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(workbook.pd, "ExcelWriter", broken_writer)
        with pytest.raises(AssemblyError) as excinfo:
            build_workbook(small_profile, LABEL, records)
        assert isinstance(excinfo.value.__cause__, OSError)

    def test_retry_with_same_records(self, monkeypatch, small_profile):
        records = generate(small_profile, 3, "LES", rng=RandomSource(1))
        real_writer = workbook.pd.ExcelWriter
        monkeypatch.setattr(workbook.pd, "ExcelWriter",
                            lambda *a, **k: (_ for _ in ()).throw(OSError("flaky")))
        with pytest.raises(AssemblyError):
            build_workbook(small_profile, LABEL, records)
        monkeypatch.setattr(workbook.pd, "ExcelWriter", real_writer)
        assert build_workbook(small_profile, LABEL, records)[:2] == b"PK"


class TestFormatters:

    @pytest.mark.parametrize("amount, text", [
        (0, "0"),
        (999, "999"),
        (1000, "1,000"),
        (250_000, "2,50,000"),
        (1_200_000, "12,00,000"),
        (2_400_000_000_000, "24,00,00,00,00,000"),
        (-45_000, "-45,000"),
    ])
    def test_fmt_inr(self, amount, text):
        assert fmt_inr(amount) == text
