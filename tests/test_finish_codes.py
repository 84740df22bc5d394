"""Finish label -> portal code mapping."""

import pytest

from quotation_rpa.finish_codes import DEFAULT_FINISH_CODE, FINISH_CODES, KNOWN_CODES, map_finish


class TestMapFinish:

    @pytest.mark.parametrize("label,code", [
        ("SPECIAL 1 POWDER COATING", "90"),
        ("special 3 powder coating", "92"),
        ("SPECIAL 7", "96"),
        ("STANDARD POWDER COATING", "9"),
        ("MILL FINISH", "8"),
        ("COR_MILL", "8"),
        ("WHITE POWDER COATING", "4"),
        ("SILVER ANODISED", "1"),
        ("BLACK ANODISED", "10"),
        ("PVC", "0"),
    ])
    def test_known_labels(self, label, code):
        assert map_finish(label) == code

    def test_codes_pass_through(self):
        for code in KNOWN_CODES:
            assert map_finish(code) == code

    @pytest.mark.parametrize("label", [None, "", "   ", "GOLD LEAF", "???"])
    def test_unknown_falls_back_to_default(self, label):
        assert map_finish(label) == DEFAULT_FINISH_CODE

    def test_custom_default(self):
        assert map_finish("GOLD LEAF", default="9") == "9"

    def test_pure_and_total(self):
        labels = [n for needles, _ in FINISH_CODES for n in needles] + ["x", "", "SPECIAL 9"]
        first = [map_finish(lbl) for lbl in labels]
        second = [map_finish(lbl) for lbl in labels]
        assert first == second
        assert all(isinstance(code, str) and code for code in first)
