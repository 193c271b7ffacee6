import os
import tempfile
import unittest

import pandas as pd

import fmlib

DCF_ROWS = [{"year": 2023, "revenue": 1000, "ebit": 150, "region": "North America"}]
LBO_ROWS = [{"revenue": 1000, "ebitda": 100}]


class TestBuildReport(unittest.TestCase):
    def test_raw_data_sheet_leads_with_union_of_keys(self):
        rows = [{"revenue": 100, "year": 2022}, {"revenue": 110, "segment": "B"}]
        report = fmlib.build_report("DCF", fmlib.run_dcf(rows), rows)
        raw = report[0]
        self.assertEqual(raw.name, "Raw Data")
        self.assertEqual(raw.rows[0], ["revenue", "year", "segment"])
        self.assertEqual(raw.rows[1], [100, 2022, None])
        self.assertEqual(raw.rows[2], [110, None, "B"])

    def test_dcf_sheet_layout(self):
        report = fmlib.build_report("DCF Analysis", fmlib.run_dcf(DCF_ROWS), DCF_ROWS)
        sheet = report[1]
        self.assertEqual(sheet.name, "DCF Analysis")
        rows = sheet.rows
        self.assertEqual(len(rows), 14)
        self.assertEqual(rows[0], ["DCF Analysis"])
        self.assertEqual(rows[1], ["Historical Growth Rate", "10.0%"])
        self.assertEqual(rows[2], ["EBIT Margin", "15.0%"])
        self.assertEqual(rows[3], [])
        self.assertEqual(rows[4], ["Year", "Revenue", "EBIT", "Free Cash Flow", "Present Value"])
        self.assertEqual(rows[5][:3], [1, 1100, 165])
        self.assertEqual([r[0] for r in rows[5:10]], [1, 2, 3, 4, 5])
        self.assertTrue(all(isinstance(v, int) for r in rows[5:10] for v in r))
        self.assertEqual(rows[10], [])
        self.assertEqual(rows[11], ["Terminal Value", 2310])
        self.assertEqual(rows[12], ["Present Value of Terminal Value", 1434])
        self.assertEqual(rows[13], ["Enterprise Value", 1997])

    def test_lbo_sheet_layout(self):
        res = fmlib.run_lbo(LBO_ROWS)
        rows = fmlib.build_report("LBO Model", res, LBO_ROWS)[1].rows
        self.assertEqual(len(rows), 15)
        self.assertEqual(rows[0], ["Enterprise Value", 800])
        self.assertEqual(rows[1], ["Equity Contribution", 320])
        self.assertEqual(rows[2], ["Debt Financing", 480])
        self.assertEqual(rows[3], [])
        self.assertEqual(rows[4], ["Year", "Revenue", "EBITDA", "Interest Expense", "Debt Paydown", "Remaining Debt"])
        self.assertEqual(rows[5], [1, 1100, 220, 38, 88, 392])
        self.assertEqual(rows[10], [])
        self.assertEqual([r[0] for r in rows[11:15]], ["Exit Enterprise Value", "Remaining Debt", "Equity Value", "IRR"])
        self.assertEqual(rows[14][1], f"{res.irr * 100:.1f}%")

    def test_sensitivity_sheet_layout(self):
        rows_in = [{"revenue": 1.0e9, "ebit": 1.5e8}]
        res = fmlib.run_sensitivity(rows_in)
        rows = fmlib.build_report("Sensitivity Analysis", res, rows_in)[1].rows
        self.assertEqual(rows[0], ["", "8.0% WACC", "9.0% WACC", "10.0% WACC", "11.0% WACC", "12.0% WACC"])
        self.assertEqual(
            [r[0] for r in rows[1:]],
            ["-2.0% Growth", "-1.0% Growth", "0.0% Growth", "+1.0% Growth", "+2.0% Growth"],
        )
        self.assertEqual(rows[3][3], round(res.base_enterprise_value / 1e6, 1))

    def test_unknown_template_gives_single_placeholder_row(self):
        report = fmlib.build_report("Merger Model", None, DCF_ROWS)
        self.assertEqual(len(report), 2)
        self.assertEqual(report[0].name, "Raw Data")
        self.assertEqual(report[1].rows, [["Note", "Template not implemented yet"]])

    def test_mismatched_result_type_is_rejected(self):
        with self.assertRaises(TypeError):
            fmlib.build_report("DCF", fmlib.run_lbo(LBO_ROWS), LBO_ROWS)

    def test_resolve_template(self):
        self.assertEqual(fmlib.resolve_template("DCF Analysis"), "DCF")
        self.assertEqual(fmlib.resolve_template("  dcf "), "DCF")
        self.assertEqual(fmlib.resolve_template("LBO Model"), "LBO")
        self.assertEqual(fmlib.resolve_template("sensitivity"), "Sensitivity")
        self.assertIsNone(fmlib.resolve_template("Comparable Company Analysis"))
        self.assertIsNone(fmlib.resolve_template(None))

    def test_markdown_and_frames(self):
        report = fmlib.build_report("DCF", fmlib.run_dcf(DCF_ROWS), DCF_ROWS)
        md = fmlib.report_to_markdown(report)
        self.assertIn("## Raw Data", md)
        self.assertIn("| Enterprise Value | 1997 |", md)
        frames = fmlib.report_to_frames(report)
        self.assertEqual(list(frames), ["Raw Data", "DCF Analysis"])
        self.assertIsInstance(frames["DCF Analysis"], pd.DataFrame)


class TestExcelRoundTrip(unittest.TestCase):
    def test_save_report_excel_writes_one_sheet_per_section(self):
        report = fmlib.build_report("DCF", fmlib.run_dcf(DCF_ROWS), DCF_ROWS)
        with tempfile.TemporaryDirectory() as tmp:
            path = fmlib.save_report_excel(report, os.path.join(tmp, "out", "dcf.xlsx"))
            self.assertTrue(os.path.exists(path))
            sheets = pd.read_excel(path, sheet_name=None, header=None)
        self.assertEqual(list(sheets), ["Raw Data", "DCF Analysis"])
        self.assertEqual(sheets["DCF Analysis"].iloc[0, 0], "DCF Analysis")

    def test_load_table_reads_csv_and_xlsx(self):
        df = pd.DataFrame({"Year": [2022, 2023], "Revenue ($)": [100, 110], "Note": ["x", None]})
        with tempfile.TemporaryDirectory() as tmp:
            csv_path = os.path.join(tmp, "data.csv")
            xlsx_path = os.path.join(tmp, "data.xlsx")
            df.to_csv(csv_path, index=False)
            df.to_excel(xlsx_path, index=False, engine="xlsxwriter")
            for path in (csv_path, xlsx_path):
                with self.subTest(path=path):
                    rows = fmlib.normalize_rows(fmlib.load_table(path))
                    self.assertEqual(len(rows), 2)
                    self.assertEqual(rows[1]["revenue____"], 110)
                    self.assertIsNone(rows[1]["note"])

    def test_load_table_rejects_other_extensions(self):
        with self.assertRaises(fmlib.InvalidInputError):
            fmlib.load_table("statements.pdf")


if __name__ == "__main__":
    unittest.main()
