import unittest

from vetlabs.aliases import CANONICAL_CODES, LEGACY_CODES, AliasTable, default_alias_table
from vetlabs.config import ParameterSpecsConfig
from vetlabs.exceptions import ConfigurationError
from vetlabs.extraction import (
    AnchorExtractor,
    build_anchor_matchers,
    extract_number_after_anchor,
    extract_qualitative_after_anchor,
    extract_values_from_text,
)

SAMPLE_REPORT = """VETERINARY LAB REPORT
Patient: Mali   Species: Canine
RBC 7.28 x10^6/uL
WBC: 12,500 /uL
Hemoglobin 15.2 g/dL
HCT 45.0 %
PLT (x10^3/uL) 250
SGPT 142 U/L
ครีเอทินิน 1.2 mg/dL
Heartworm Ag: Negative
"""


class TestAnchorOrdering(unittest.TestCase):
    def setUp(self):
        self.table = default_alias_table()
        self.anchors = build_anchor_matchers(self.table)

    def test_codes_come_first_then_legacy_codes(self):
        n_codes = len(CANONICAL_CODES)
        self.assertEqual([a.label for a in self.anchors[:n_codes]], list(CANONICAL_CODES))

        legacy = self.anchors[n_codes : n_codes + len(LEGACY_CODES)]
        self.assertEqual({a.label: a.code for a in legacy}, LEGACY_CODES)

    def test_aliases_sorted_by_descending_length(self):
        alias_anchors = self.anchors[len(CANONICAL_CODES) + len(LEGACY_CODES) :]
        lengths = [len(a.label) for a in alias_anchors]
        self.assertEqual(lengths, sorted(lengths, reverse=True))

    def test_aliases_duplicating_codes_are_skipped(self):
        alias_anchors = self.anchors[len(CANONICAL_CODES) + len(LEGACY_CODES) :]
        labels = {a.label for a in alias_anchors}
        for code in ("rbc", "alt", "sgpt", "crea"):
            with self.subTest(code=code):
                self.assertNotIn(code, labels)


class TestNumericRecovery(unittest.TestCase):
    def test_colon_layout(self):
        self.assertEqual(extract_number_after_anchor("ALT: 142.0 U/L", 3), "142.0")

    def test_space_and_unit_layout(self):
        self.assertEqual(extract_number_after_anchor("Label 12.3 unit", 5), "12.3")

    def test_thousands_separators_removed(self):
        self.assertEqual(extract_number_after_anchor("PLT 1,250,000", 3), "1250000")

    def test_signs(self):
        self.assertEqual(extract_number_after_anchor("X -3.5", 1), "-3.5")
        self.assertEqual(extract_number_after_anchor("X +42", 1), "42")

    def test_unit_exponents_are_not_values(self):
        self.assertEqual(extract_number_after_anchor("PLT (x10^3/uL) 250", 3), "250")

    def test_value_on_following_line(self):
        self.assertEqual(extract_number_after_anchor("WBC\n 12.5", 3), "12.5")

    def test_does_not_cross_into_unrelated_line(self):
        self.assertIsNone(extract_number_after_anchor("ALT (U/L)\nAST 35", 3))

    def test_window_stops_at_limit(self):
        self.assertIsNone(extract_number_after_anchor("RBC\nWBC 12.3", 3, limit=4))
        self.assertEqual(extract_number_after_anchor("RBC\nWBC 12.3", 3), "12.3")

    def test_window_is_bounded(self):
        text = "ALT" + " " * 60 + "42"
        self.assertIsNone(extract_number_after_anchor(text, 3))
        self.assertEqual(extract_number_after_anchor(text, 3, lookahead=100), "42")

    def test_qualitative_word(self):
        self.assertEqual(extract_qualitative_after_anchor("HW: 2 Positive", 2), "Positive")
        self.assertEqual(extract_qualitative_after_anchor("FIV  not   detected", 3), "not detected")
        self.assertIsNone(extract_qualitative_after_anchor("FIV 0.5", 3))


class TestAnchorExtractor(unittest.TestCase):
    def setUp(self):
        self.extractor = AnchorExtractor.from_specs(ParameterSpecsConfig())

    def test_alt_with_unit(self):
        self.assertEqual(self.extractor.extract("ALT: 142.0 U/L"), {"ALT": "142.0"})

    def test_thai_creatinine(self):
        self.assertEqual(self.extractor.extract("ครีเอทินิน 2.8"), {"CREA": "2.8"})

    def test_thai_label_without_spaces(self):
        self.assertEqual(self.extractor.extract("ค่าครีเอทินิน2.8"), {"CREA": "2.8"})

    def test_full_report(self):
        values = self.extractor.extract(SAMPLE_REPORT)
        self.assertEqual(
            values,
            {
                "RBC": "7.28",
                "WBC": "12500",
                "HGB": "15.2",
                "HCT": "45.0",
                "PLT": "250",
                "ALT": "142",
                "CREA": "1.2",
                "HW": "Negative",
            },
        )

    def test_first_occurrence_wins(self):
        self.assertEqual(self.extractor.extract("ALT 40\nALT 55"), {"ALT": "40"})

    def test_later_occurrence_used_when_first_has_no_value(self):
        self.assertEqual(self.extractor.extract("ALT (see note)\nALT: 61"), {"ALT": "61"})

    def test_longer_alias_takes_precedence(self):
        values = self.extractor.extract("Band neutrophils 0.1\nNeutrophils 8.2")
        self.assertEqual(values, {"BAND": "0.1", "NEU": "8.2"})

    def test_embedded_aliases_do_not_steal_values(self):
        values = self.extractor.extract("Mean corpuscular hemoglobin concentration 34.1")
        self.assertEqual(values, {"MCHC": "34.1"})

    def test_legacy_code_folds_to_canonical(self):
        self.assertEqual(self.extractor.extract("SGOT 35"), {"AST": "35"})

    def test_aliases_need_latin_word_boundaries(self):
        self.assertEqual(self.extractor.extract("My husband 12"), {})

    def test_qualitative_codes_are_not_parsed_as_numbers(self):
        self.assertEqual(self.extractor.extract("FeLV Ag: 1 Positive"), {"FELV": "Positive"})
        self.assertEqual(self.extractor.extract("FIV 0.5"), {})

    def test_without_qualitative_codes_numbers_are_used(self):
        extractor = AnchorExtractor()
        self.assertEqual(extractor.extract("HW 3"), {"HW": "3"})

    def test_empty_and_invalid_input(self):
        self.assertEqual(self.extractor.extract(""), {})
        self.assertEqual(self.extractor.extract("   \n"), {})
        self.assertEqual(self.extractor.extract(None), {})
        self.assertEqual(self.extractor.extract("no lab values here"), {})

    def test_value_is_not_taken_from_the_next_label(self):
        self.assertEqual(self.extractor.extract("RBC\nWBC 12.3"), {"WBC": "12.3"})

    def test_label_without_value_does_not_hide_a_later_occurrence(self):
        values = self.extractor.extract("ALT\nAST 35\nALT 60")
        self.assertEqual(values, {"ALT": "60", "AST": "35"})

    def test_value_on_next_line_still_found_without_a_label_there(self):
        self.assertEqual(self.extractor.extract("Creatinine\n  2.8 mg/dL"), {"CREA": "2.8"})

    def test_missing_value_means_absent(self):
        values = self.extractor.extract("RBC pending\nWBC 9.1")
        self.assertNotIn("RBC", values)
        self.assertEqual(values["WBC"], "9.1")

    def test_custom_alias_table(self):
        table = AliasTable(["GLU"], {"glucose": "GLU"})
        extractor = AnchorExtractor(alias_table=table)
        self.assertEqual(extractor.extract("Glucose 98 mg/dL\nALT 40"), {"GLU": "98"})

    def test_invalid_lookahead(self):
        with self.assertRaises(ConfigurationError):
            AnchorExtractor(lookahead=0)

    def test_module_level_helper(self):
        self.assertEqual(extract_values_from_text("BUN 24 mg/dL"), {"BUN": "24"})


if __name__ == "__main__":
    unittest.main(verbosity=2)
