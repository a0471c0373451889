import unittest
from datetime import date
from decimal import Decimal

from pydantic import ValidationError

from vetlabs.config import ParameterSpecsConfig, Species
from vetlabs.flags import Flag
from vetlabs.normalization import Reading, build_readings, preprocess_numeric_value, reflag_readings


class TestPreprocessNumericValue(unittest.TestCase):
    def test_cleaning(self):
        cases = {
            " 7.28 ": "7.28",
            "12,500": "12500",
            "256 000": "256000",
            "52.6=1946": "52.6",
            "45=": "45",
            "142H": "142",
            "2.1 L.": "2.1",
            "+3.1": "3.1",
            "-3": "-3",
        }
        for raw, expected in cases.items():
            with self.subTest(raw=raw):
                self.assertEqual(preprocess_numeric_value(raw), expected)

    def test_missing(self):
        self.assertIsNone(preprocess_numeric_value(None))
        self.assertIsNone(preprocess_numeric_value("   "))

    def test_non_numeric_text_is_left_alone(self):
        self.assertEqual(preprocess_numeric_value("<0.1"), "<0.1")
        self.assertEqual(preprocess_numeric_value("Negative"), "Negative")


class TestReading(unittest.TestCase):
    def test_numeric_value_is_decimal(self):
        reading = Reading(code="ALT", value="142.0")
        self.assertEqual(reading.value, Decimal("142.0"))
        self.assertIsNone(reading.value_text)

    def test_requires_exactly_one_value(self):
        with self.assertRaises(ValidationError):
            Reading(code="ALT")
        with self.assertRaises(ValidationError):
            Reading(code="ALT", value="42", value_text="42")
        with self.assertRaises(ValidationError):
            Reading(code="ALT", value="forty-two")

    def test_frozen(self):
        reading = Reading(code="HW", value_text="Negative")
        with self.assertRaises(ValidationError):
            reading.value_text = "Positive"


class TestBuildReadings(unittest.TestCase):
    def setUp(self):
        self.specs = ParameterSpecsConfig()

    def test_flags_numeric_values(self):
        readings = build_readings({"ALT": "142.0", "CREA": "1.2"}, self.specs, "DOG", test_date=date(2024, 3, 1))
        by_code = {reading.code: reading for reading in readings}

        self.assertEqual(by_code["ALT"].value, Decimal("142.0"))
        self.assertEqual(by_code["ALT"].flag, Flag.HIGH)
        self.assertEqual(by_code["ALT"].unit, "U/L")
        self.assertEqual(by_code["ALT"].test_date, date(2024, 3, 1))
        self.assertEqual(by_code["CREA"].flag, Flag.NORMAL)

    def test_species_changes_flag(self):
        dog = build_readings({"CREA": "2.0"}, self.specs, "DOG")
        cat = build_readings({"CREA": "2.0"}, self.specs, "CAT")
        self.assertEqual(dog[0].flag, Flag.HIGH)
        self.assertEqual(cat[0].flag, Flag.NORMAL)

    def test_qualitative_values_stay_text(self):
        readings = build_readings({"HW": "Negative"}, self.specs, "DOG")
        self.assertEqual(len(readings), 1)
        self.assertIsNone(readings[0].value)
        self.assertEqual(readings[0].value_text, "Negative")
        self.assertIsNone(readings[0].flag)

    def test_analyzer_markers_are_cleaned(self):
        readings = build_readings({"ALT": "142H", "PLT": "256 000"}, self.specs, "DOG")
        by_code = {reading.code: reading for reading in readings}
        self.assertEqual(by_code["ALT"].value, Decimal("142"))
        self.assertEqual(by_code["ALT"].source_value, "142H")
        self.assertEqual(by_code["PLT"].value, Decimal("256000"))

    def test_unparseable_numeric_kept_as_text(self):
        with self.assertLogs("vetlabs.normalization", level="WARNING"):
            readings = build_readings({"TBIL": "<0.1"}, self.specs, "DOG")
        self.assertEqual(readings[0].value_text, "<0.1")
        self.assertIsNone(readings[0].value)
        self.assertIsNone(readings[0].flag)

    def test_display_order_and_unknown_codes(self):
        with self.assertLogs("vetlabs.normalization", level="WARNING"):
            readings = build_readings({"CREA": "1.2", "GLU": "98", "RBC": "7.1", "ALT": " "}, self.specs, "DOG")
        self.assertEqual([reading.code for reading in readings], ["RBC", "CREA"])

    def test_reflag_for_another_species(self):
        readings = build_readings({"CREA": "2.0", "HW": "Negative"}, self.specs, "DOG")
        reflagged = reflag_readings(readings, self.specs, Species.CAT)

        self.assertEqual(reflagged[0].flag, Flag.NORMAL)
        self.assertIsNone(reflagged[1].flag)
        self.assertEqual(readings[0].flag, Flag.HIGH)


if __name__ == "__main__":
    unittest.main(verbosity=2)
