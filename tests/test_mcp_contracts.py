import json
import os
import tempfile
import unittest
from unittest.mock import patch

DEPENDENCY_ERROR = None
try:
    import server
except ModuleNotFoundError as exc:  # pragma: no cover - local env dependency gap
    server = None
    DEPENDENCY_ERROR = exc

ROWS = [{"Revenue": "1000", "EBIT": "150", "Region": "North America"}]


@unittest.skipIf(DEPENDENCY_ERROR is not None, f"MCP contract tests skipped (missing dependency): {DEPENDENCY_ERROR}")
class TestMcpResponseContracts(unittest.TestCase):
    def test_text_item_contract(self):
        item = server.text_item("hello")
        self.assertEqual(item["type"], "text")
        self.assertEqual(item["text"], "hello")

    def test_file_resource_preserves_file_uri(self):
        uri = "file:///C:/tmp/example.xlsx"
        item = server.file_resource(uri, "text/csv")
        self.assertEqual(item["type"], "resource")
        self.assertEqual(item["uri"], uri)
        self.assertEqual(item["mimeType"], "text/csv")

    def test_tool_list_model_templates_returns_json_text(self):
        out = server.tool_list_model_templates()
        self.assertEqual(len(out), 1)
        payload = json.loads(out[0]["text"])
        self.assertEqual(payload[0]["template"], "DCF Analysis")

    def test_tool_generate_financial_model_from_rows(self):
        out = server.tool_generate_financial_model("DCF Analysis", rows=ROWS, save_xlsx=False)
        self.assertEqual(len(out), 3)
        self.assertTrue(all(item["type"] == "text" for item in out))
        self.assertIn("## DCF Analysis", out[1]["text"])
        payload = json.loads(out[2]["text"])
        self.assertEqual(payload["model"], "DCF")
        self.assertEqual(payload["result"]["kind"], "DCF")
        self.assertEqual(len(payload["result"]["projections"]), 5)

    def test_tool_generate_placeholder_template(self):
        out = server.tool_generate_financial_model("Merger Model", rows=ROWS, save_xlsx=False)
        payload = json.loads(out[2]["text"])
        self.assertIsNone(payload["model"])
        self.assertIsNone(payload["result"])
        self.assertIn("Template not implemented yet", out[1]["text"])

    def test_tool_load_financial_table_returns_records_envelope(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "upload.csv")
            with open(path, "w", encoding="utf-8") as fh:
                fh.write("Year,Net Sales\n2022,100\n2023,110\n")
            out = server.tool_load_financial_table(path)
        self.assertIn("2 rows", out[0]["text"])
        envelope = json.loads(out[1]["text"])
        self.assertEqual(envelope["data"][1], {"year": 2023, "net_sales": 110})

    def test_tool_generate_requires_input(self):
        with self.assertRaises(ValueError):
            server.tool_generate_financial_model("DCF")

    def test_tool_generate_xlsx_returns_resource(self):
        with patch.object(server.fmlib, "save_report_excel", side_effect=lambda report, path: path) as mocked:
            out = server.tool_generate_financial_model("LBO Model", rows=ROWS, save_xlsx=True)
        mocked.assert_called_once()
        self.assertEqual(out[-1]["type"], "resource")
        self.assertTrue(out[-1]["uri"].endswith("lbo_model.xlsx"))


if __name__ == "__main__":
    unittest.main()
