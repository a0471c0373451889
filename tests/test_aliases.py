import unittest

from vetlabs.aliases import CANONICAL_CODES, DEFAULT_ALIASES, LEGACY_CODES, AliasTable, default_alias_table
from vetlabs.exceptions import ConfigurationError


class TestDefaultAliasTable(unittest.TestCase):
    def setUp(self):
        self.table = default_alias_table()

    def test_canonical_codes_resolve_to_themselves(self):
        for code in CANONICAL_CODES:
            with self.subTest(code=code):
                self.assertEqual(self.table.resolve(code), code)
                self.assertEqual(self.table.resolve(self.table.resolve(code)), code)

    def test_resolution_is_case_insensitive(self):
        self.assertEqual(self.table.resolve("crea"), "CREA")
        self.assertEqual(self.table.resolve("Creatinine"), "CREA")
        self.assertEqual(self.table.resolve("  WHITE   blood cells "), "WBC")

    def test_legacy_codes_fold_into_existing_codes(self):
        self.assertEqual(self.table.resolve("SGPT"), "ALT")
        self.assertEqual(self.table.resolve("sgot"), "AST")
        for legacy, target in LEGACY_CODES.items():
            with self.subTest(legacy=legacy):
                self.assertIn(target, CANONICAL_CODES)
                self.assertNotIn(legacy, CANONICAL_CODES)

    def test_thai_aliases(self):
        self.assertEqual(self.table.resolve("ครีเอทินิน"), "CREA")
        self.assertEqual(self.table.resolve("เม็ดเลือดแดง"), "RBC")
        self.assertEqual(self.table.resolve("เกล็ดเลือด"), "PLT")

    def test_unknown_and_empty_labels(self):
        self.assertIsNone(self.table.resolve("cholesterol"))
        self.assertIsNone(self.table.resolve(""))
        self.assertIsNone(self.table.resolve("   "))
        self.assertIsNone(self.table.resolve(None))

    def test_every_alias_points_at_a_canonical_code(self):
        for alias, code in self.table.aliases.items():
            with self.subTest(alias=alias):
                self.assertTrue(alias)
                self.assertIn(code, CANONICAL_CODES)
        self.assertEqual(len(self.table.aliases), len(DEFAULT_ALIASES))

    def test_table_is_read_only(self):
        with self.assertRaises(TypeError):
            self.table.aliases["glucose"] = "GLU"

    def test_default_table_is_built_once(self):
        self.assertIs(default_alias_table(), self.table)


class TestCustomAliasTable(unittest.TestCase):
    def test_substitute_vocabulary(self):
        table = AliasTable(["GLU"], {"glucose": "GLU", "blood sugar": "GLU"})
        self.assertEqual(table.resolve("Blood Sugar"), "GLU")
        self.assertIsNone(table.resolve("ALT"))

    def test_with_aliases_returns_new_table(self):
        base = AliasTable(["ALT"], {"alanine aminotransferase": "ALT"})
        extended = base.with_aliases({"gpt": "ALT"})
        self.assertEqual(extended.resolve("GPT"), "ALT")
        self.assertIsNone(base.resolve("GPT"))

    def test_aliases_may_target_legacy_codes(self):
        table = AliasTable(["ALT"], {"glutamic pyruvic transaminase": "SGPT"}, {"SGPT": "ALT"})
        self.assertEqual(table.resolve("glutamic pyruvic transaminase"), "ALT")

    def test_rejects_empty_alias(self):
        with self.assertRaises(ConfigurationError):
            AliasTable(["ALT"], {"  ": "ALT"})

    def test_rejects_alias_to_unknown_code(self):
        with self.assertRaises(ConfigurationError):
            AliasTable(["ALT"], {"glucose": "GLU"})

    def test_rejects_legacy_code_to_unknown_code(self):
        with self.assertRaises(ConfigurationError):
            AliasTable(["ALT"], {}, {"SGOT": "AST"})

    def test_rejects_legacy_code_shadowing_canonical_code(self):
        with self.assertRaises(ConfigurationError):
            AliasTable(["ALT", "AST"], {}, {"ALT": "AST"})

    def test_rejects_duplicate_codes(self):
        with self.assertRaises(ConfigurationError):
            AliasTable(["ALT", "alt"], {})


if __name__ == "__main__":
    unittest.main(verbosity=2)
