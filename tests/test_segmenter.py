"""Tests for barcode-driven scan segmentation."""

import asyncio

import pytest

from scanbatch.errors import EmptyScan
from scanbatch.models import UNCLASSIFIED, Scan
from scanbatch.segmentation.segmenter import Segmenter, fold_sections
from scanbatch.utils.config import DEFAULT_BATCH_TYPES
from tests.fakes import FakeProvider, FakeReader

KNOWN = frozenset(DEFAULT_BATCH_TYPES)


def is_known(code: str) -> bool:
    return code in KNOWN


def _as_tuples(sections):
    return [(s.batch_type_code, s.pages) for s in sections]


class TestFoldSections:
    """Tests for the ordered section fold."""

    def test_unknown_barcode_continues_section(self) -> None:
        codes = [(1, "*FINSALES*"), (2, None), (3, "*XYZ*"), (4, None), (5, None)]
        sections = fold_sections(codes, is_known)
        assert _as_tuples(sections) == [("FINSALES", [1, 2, 3, 4, 5])]

    def test_known_barcodes_split(self) -> None:
        codes = [(1, "*CDR*"), (2, None), (3, "*WFDEP*"), (4, None)]
        sections = fold_sections(codes, is_known)
        assert _as_tuples(sections) == [("CDR", [1, 2]), ("WFDEP", [3, 4])]
        assert sections[0].raw_barcode == "*CDR*"

    def test_no_barcode_on_first_page_is_unclassified(self) -> None:
        codes = [(1, None), (2, None), (3, "*FINTRAN*"), (4, None)]
        sections = fold_sections(codes, is_known)
        assert _as_tuples(sections) == [
            (UNCLASSIFIED, [1, 2]),
            ("FINTRAN", [3, 4]),
        ]
        assert sections[0].is_unclassified

    def test_unknown_barcode_before_any_section_is_kept(self) -> None:
        codes = [(1, "*NOPE*"), (2, None)]
        sections = fold_sections(codes, is_known)
        assert _as_tuples(sections) == [(UNCLASSIFIED, [1, 2])]

    def test_lowercase_barcode_normalized(self) -> None:
        sections = fold_sections([(1, "*finsales*")], is_known)
        assert sections[0].batch_type_code == "FINSALES"

    def test_consecutive_coversheets(self) -> None:
        codes = [(1, "*CDR*"), (2, "*CDR*"), (3, None)]
        sections = fold_sections(codes, is_known)
        assert _as_tuples(sections) == [("CDR", [1]), ("CDR", [2, 3])]

    def test_empty_input(self) -> None:
        assert fold_sections([], is_known) == []

    @pytest.mark.parametrize(
        "codes",
        [
            [None, None, None],
            ["*CDR*", None, "*BAD*", "*APINV*", None, "*OTHER*"],
            ["*ZZ*", "*REFUND*", None, "*EXPENSE*", "*EXPENSE*"],
        ],
    )
    def test_every_page_in_exactly_one_section(self, codes) -> None:
        page_codes = list(enumerate(codes, start=1))
        sections = fold_sections(page_codes, is_known)
        pages = [p for s in sections for p in s.pages]
        assert pages == list(range(1, len(codes) + 1))
        assert fold_sections(page_codes, is_known) == sections


class TestSegmenter:
    """Tests for Segmenter.segment."""

    def _scan(self) -> Scan:
        return Scan(id=1, location="S1", file_path="/scans/a.tif", content_hash="h")

    def test_example_scan(self) -> None:
        provider = FakeProvider(pages=5)
        reader = FakeReader({1: "*FINSALES*", 3: "*XYZ*"})
        segmenter = Segmenter(provider, reader, is_known, fanout=4)

        result = asyncio.run(segmenter.segment(self._scan()))

        assert result.total_pages == 5
        assert _as_tuples(result.sections) == [("FINSALES", [1, 2, 3, 4, 5])]
        assert sorted(provider.decoded) == [1, 2, 3, 4, 5]

    def test_results_kept_in_page_order(self) -> None:
        provider = FakeProvider(pages=9)
        reader = FakeReader({1: "*CDR*", 5: "*APINV*", 8: "*WFDEP*"})
        segmenter = Segmenter(provider, reader, is_known, fanout=3)

        result = asyncio.run(segmenter.segment(self._scan()))

        assert _as_tuples(result.sections) == [
            ("CDR", [1, 2, 3, 4]),
            ("APINV", [5, 6, 7]),
            ("WFDEP", [8, 9]),
        ]

    def test_prescan_pairs_pages_with_codes(self) -> None:
        segmenter = Segmenter(FakeProvider(pages=3), FakeReader({2: "*CDR*"}), is_known)
        codes = asyncio.run(segmenter.prescan(self._scan(), 3))
        assert codes == [(1, None), (2, "*CDR*"), (3, None)]

    def test_empty_scan_raises(self) -> None:
        segmenter = Segmenter(FakeProvider(pages=0), FakeReader(), is_known)
        with pytest.raises(EmptyScan):
            asyncio.run(segmenter.segment(self._scan()))

    def test_zero_fanout_treated_as_one(self) -> None:
        segmenter = Segmenter(FakeProvider(pages=2), FakeReader(), is_known, fanout=0)
        result = asyncio.run(segmenter.segment(self._scan()))
        assert _as_tuples(result.sections) == [(UNCLASSIFIED, [1, 2])]
