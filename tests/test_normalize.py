import re
import unittest

import pandas as pd

import fmlib


class TestNormalizeRows(unittest.TestCase):
    def test_keys_are_lowercase_alphanumeric_underscore(self):
        raw = [
            {"Revenue ($)": "1200", "Operating Income": "3.5", "Region/Segment": "North America"},
            {"Revenue ($)": 1300, "Operating Income": None, "Region/Segment": "EMEA"},
        ]
        out = fmlib.normalize_rows(raw)
        for row in out:
            for key in row:
                self.assertRegex(key, r"^[a-z0-9_]+$")
        self.assertIn("revenue____", out[0])
        self.assertIn("operating_income", out[0])
        self.assertIn("region_segment", out[0])

    def test_numeric_strings_become_numbers_and_text_is_kept(self):
        out = fmlib.normalize_rows([{"a": "1200", "b": "3.5", "c": "North America", "d": " 42 ", "e": "-1.5e3"}])[0]
        self.assertEqual(out["a"], 1200)
        self.assertIsInstance(out["a"], int)
        self.assertEqual(out["b"], 3.5)
        self.assertEqual(out["c"], "North America")
        self.assertEqual(out["d"], 42)
        self.assertEqual(out["e"], -1500.0)

    def test_blank_and_missing_values_pass_through(self):
        out = fmlib.normalize_rows([{"a": "", "b": "   ", "c": None}])[0]
        self.assertEqual(out["a"], "")
        self.assertEqual(out["b"], "   ")
        self.assertIsNone(out["c"])

    def test_nan_and_infinite_literals_are_not_numbers(self):
        out = fmlib.normalize_rows([{"a": "NaN", "b": "1e999", "c": "1,200", "d": "1_000"}])[0]
        self.assertEqual(out["a"], "NaN")
        self.assertEqual(out["b"], "1e999")
        self.assertEqual(out["c"], "1,200")
        self.assertEqual(out["d"], "1_000")

    def test_bools_are_not_coerced(self):
        out = fmlib.normalize_rows([{"Flag": True}])[0]
        self.assertIs(out["flag"], True)

    def test_row_count_order_and_input_are_preserved(self):
        raw = [{"Year": "2021", "Sales": "100"}, {"Year": "2022", "Sales": "110"}, {"Year": "2023"}]
        snapshot = [dict(r) for r in raw]
        out = fmlib.normalize_rows(raw)
        self.assertEqual(len(out), 3)
        self.assertEqual([r["year"] for r in out], [2021, 2022, 2023])
        self.assertEqual(raw, snapshot)

    def test_empty_input_returns_empty_list(self):
        self.assertEqual(fmlib.normalize_rows([]), [])

    def test_empty_header_maps_to_underscore(self):
        out = fmlib.normalize_rows([{"": "x"}])[0]
        self.assertEqual(out, {"_": "x"})

    def test_dataframe_input_is_accepted(self):
        df = pd.DataFrame({"Net Sales": [100, 110], "Segment": ["A", "B"]})
        out = fmlib.normalize_rows(df)
        self.assertEqual(out, [{"net_sales": 100, "segment": "A"}, {"net_sales": 110, "segment": "B"}])

    def test_malformed_input_raises_invalid_input(self):
        for bad in (None, "revenue,100", {"revenue": 100}, 42, [{"revenue": 1}, "oops"], [[1, 2]]):
            with self.subTest(bad=bad):
                with self.assertRaises(fmlib.InvalidInputError):
                    fmlib.normalize_rows(bad)

    def test_invalid_input_is_a_value_error(self):
        self.assertTrue(issubclass(fmlib.InvalidInputError, ValueError))

    def test_normalize_key_examples(self):
        self.assertEqual(fmlib.normalize_key("EBITDA"), "ebitda")
        self.assertEqual(fmlib.normalize_key("Operating Income"), "operating_income")
        self.assertTrue(re.fullmatch(r"[a-z0-9_]+", fmlib.normalize_key("Δ Margin %")))


if __name__ == "__main__":
    unittest.main()
