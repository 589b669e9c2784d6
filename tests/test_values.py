import unittest
from datetime import date

from mapstudio import values
from mapstudio.models import ColumnSchema


class NumericParsingTests(unittest.TestCase):
    def test_compact_notation(self):
        self.assertEqual(values.parse_compact_number("1.5K"), 1500.0)
        self.assertEqual(values.parse_compact_number("20m"), 20_000_000.0)
        self.assertEqual(values.parse_compact_number("3B"), 3_000_000_000.0)
        self.assertIsNone(values.parse_compact_number("1.5X"))

    def test_numeric_value_cleans_currency_and_separators(self):
        self.assertEqual(values.get_numeric_value("$1,200"), 1200.0)
        self.assertEqual(values.get_numeric_value("45%"), 45.0)
        self.assertEqual(values.get_numeric_value("12 units"), 12.0)
        self.assertEqual(values.get_numeric_value(7), 7.0)

    def test_non_numeric_cells(self):
        for cell in (None, "", "   ", "abc", True, float("nan"), float("inf")):
            self.assertIsNone(values.get_numeric_value(cell), cell)

    def test_bounds_default_when_no_values(self):
        self.assertEqual(values.get_numeric_bounds([], "v"), values.NumericBounds(0.0, 100.0))
        self.assertEqual(values.get_numeric_bounds([{"v": "x"}], "v"), values.NumericBounds(0.0, 100.0))
        bounds = values.get_numeric_bounds([{"v": 3}, {"v": "10"}, {"v": -2}], "v")
        self.assertEqual((bounds.min, bounds.max), (-2.0, 10.0))

    def test_unique_values_keep_first_seen_order(self):
        rows = [{"c": "b"}, {"c": "a"}, {"c": " "}, {"c": None}, {"c": "b"}, {"c": 2.0}]
        self.assertEqual(values.get_unique_values(rows, "c"), ["b", "a", "2"])
        self.assertEqual(values.get_sorted_unique_values(rows, "c"), ["2", "a", "b"])


class FormattingTests(unittest.TestCase):
    def test_number_formats(self):
        self.assertEqual(values.format_number(1500, "compact"), "1.5K")
        self.assertEqual(values.format_number(2_500_000, "compact"), "2.5M")
        self.assertEqual(values.format_number(999, "compact"), "999")
        self.assertEqual(values.format_number(1234.5, "comma"), "1,234.5")
        self.assertEqual(values.format_number(-1234.5, "currency"), "-$1,234.50")
        self.assertEqual(values.format_number(0.256, "percent"), "26%")
        self.assertEqual(values.format_number(2.5, "0-decimals"), "3")
        self.assertEqual(values.format_number(3.14159, "2-decimals"), "3.14")
        self.assertEqual(values.format_number("n/a", "comma"), "n/a")

    def test_js_string(self):
        self.assertEqual(values.js_string(1500.0), "1500")
        self.assertEqual(values.js_string(1.5), "1.5")
        self.assertEqual(values.js_string(None), "")
        self.assertEqual(values.js_string(False), "false")

    def test_date_formats(self):
        self.assertEqual(values.parse_date_value("2024-03-05"), date(2024, 3, 5))
        self.assertEqual(values.format_date("2024-03-05", "mm/dd/yyyy"), "3/5/2024")
        self.assertEqual(values.format_date("2024-03-05", "dd/mm/yyyy"), "05/03/2024")
        self.assertEqual(values.format_date("2024-03-05", "mmm-dd-yyyy"), "Mar 05, 2024")
        self.assertEqual(values.format_date("2024-03-05", "mmmm-dd-yyyy"), "March 05, 2024")
        self.assertEqual(values.format_date("2024-03-05", "mm/dd/yy"), "3/5/24")
        self.assertEqual(values.format_date("2024-03-05", "yyyy"), "2024")
        self.assertEqual(values.format_date("not a date", "yyyy"), "not a date")
        self.assertEqual(values.format_date("", "yyyy"), "")

    def test_column_value_uses_declared_type(self):
        columns = ColumnSchema(
            types={"state": "state", "pop": "number"},
            formats={"state": "full", "pop": "comma"},
        )
        self.assertEqual(values.format_column_value("CA", "state", columns, "usa-states"), "California")
        self.assertEqual(values.format_column_value(1234567, "pop", columns, "usa-states"), "1,234,567")
        self.assertEqual(values.format_column_value("free", "other", columns, "usa-states"), "free")


class LabelTemplateTests(unittest.TestCase):
    def setUp(self):
        self.columns = ColumnSchema(types={"value": "number"}, formats={"value": "compact"})

    def test_compact_placeholder(self):
        row = {"name": "X", "value": 1500}
        self.assertEqual(values.render_label_text("{name}: {value}", row, self.columns, "usa-states"), "X: 1.5K")

    def test_expansion_is_stable(self):
        row = {"name": "X", "value": 1500}
        first = values.render_label_text("{name}: {value}", row, self.columns, "usa-states")
        second = values.render_label_text("{name}: {value}", row, self.columns, "usa-states")
        self.assertEqual(first, second)

    def test_missing_cells_and_newlines(self):
        row = {"name": "X"}
        self.assertEqual(values.render_label_text("{name} ({missing})", row, self.columns, "usa-states"), "X ()")
        self.assertEqual(values.render_label_text("{name}\nline", row, self.columns, "usa-states"), "X<br/>line")
        self.assertEqual(values.render_label_text("", row, self.columns, "usa-states"), "")
        self.assertEqual(values.render_label_text("{name}", None, self.columns, "usa-states"), "")


if __name__ == "__main__":
    unittest.main()
