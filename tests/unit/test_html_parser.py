"""Unit tests for the HTML clipboard table parser."""
import pytest

from sheetmind.errors.exceptions import ParserError
from sheetmind.parsers.html_parser import HtmlTableParser


def first_sheet(html: str):
    workbook = HtmlTableParser().parse(html, source_label="Pasted data")
    return workbook.get_sheet(workbook.sheet_names[0])


class TestPlainTables:
    def test_rows_and_cells(self):
        sheet = first_sheet(
            "<table><tr><th>name</th><th>qty</th></tr>"
            "<tr><td>pen</td><td> 3 </td></tr></table>"
        )

        assert sheet.extent.rows == 2
        assert sheet.get_cell(0, 0).raw_value == "name"
        assert sheet.get_cell(1, 1).raw_value == "3"

    def test_entities_and_line_breaks(self):
        sheet = first_sheet("<table><tr><td>a &amp; b</td><td>one<br>two</td></tr></table>")

        assert sheet.get_cell(0, 0).raw_value == "a & b"
        assert sheet.get_cell(0, 1).raw_value == "one\ntwo"

    def test_only_first_table_is_read(self):
        sheet = first_sheet(
            "<table><tr><td>first</td></tr></table>"
            "<table><tr><td>second</td></tr></table>"
        )

        assert sheet.extent.rows == 1
        assert sheet.get_cell(0, 0).raw_value == "first"

    def test_nested_table_folds_into_cell_text(self):
        sheet = first_sheet(
            "<table><tr><td>outer<table><tr><td>inner</td></tr></table></td>"
            "<td>next</td></tr></table>"
        )

        assert sheet.get_cell(0, 0).raw_value == "outerinner"
        assert sheet.get_cell(0, 1).raw_value == "next"

    def test_google_sheets_wrapper(self):
        html = (
            '<meta charset="utf-8"><google-sheets-html-origin>'
            "<table><tbody><tr><td>x</td></tr></tbody></table>"
        )
        assert first_sheet(html).get_cell(0, 0).raw_value == "x"


class TestSheetsAttributes:
    def test_image_formula_attribute(self):
        sheet = first_sheet(
            "<table><tr><td data-sheets-formula='=IMAGE(\"https://x.test/a.png\")'></td></tr></table>"
        )

        cell = sheet.get_cell(0, 0)
        assert cell.raw_value == '=IMAGE("https://x.test/a.png")'
        assert cell.formula == cell.raw_value

    def test_image_formula_with_reference_uses_img_src(self):
        sheet = first_sheet(
            '<table><tr><td data-sheets-formula="=IMAGE(R[0]C[-1])">'
            '<img src="https://x.test/b.png"></td></tr></table>'
        )

        assert sheet.get_cell(0, 0).raw_value == '=IMAGE("https://x.test/b.png")'

    def test_other_formula_keeps_display_text(self):
        sheet = first_sheet(
            '<table><tr><td data-sheets-formula="=SUM(R[-2]C:R[-1]C)">3</td></tr></table>'
        )

        cell = sheet.get_cell(0, 0)
        assert cell.raw_value == "3"
        assert cell.formula == "=SUM(R[-2]C:R[-1]C)"

    def test_image_hyperlink_promoted(self):
        sheet = first_sheet(
            '<table><tr><td data-sheets-hyperlink="https://x.test/c.jpg">'
            '<a href="https://x.test/c.jpg">https://x.test/c.jpg</a></td></tr></table>'
        )

        assert sheet.get_cell(0, 0).raw_value == '=IMAGE("https://x.test/c.jpg")'

    def test_plain_hyperlink_keeps_url(self):
        sheet = first_sheet(
            '<table><tr><td data-sheets-hyperlink="https://x.test/docs">'
            '<a href="https://x.test/docs">docs</a></td></tr></table>'
        )

        assert sheet.get_cell(0, 0).raw_value == "https://x.test/docs"

    def test_img_tag_promoted(self):
        sheet = first_sheet('<table><tr><td><img src="https://x.test/d.gif"></td></tr></table>')
        assert sheet.get_cell(0, 0).raw_value == '=IMAGE("https://x.test/d.gif")'

    def test_relative_img_src_ignored(self):
        sheet = first_sheet('<table><tr><td><img src="/local.png">label</td></tr></table>')
        assert sheet.get_cell(0, 0).raw_value == "label"


class TestErrors:
    def test_no_table(self):
        with pytest.raises(ParserError, match="No table found"):
            HtmlTableParser().parse("<p>hello</p>")

    def test_empty_table(self):
        with pytest.raises(ParserError, match="No data could be parsed"):
            HtmlTableParser().parse("<table></table>")

    def test_bytes_input(self):
        workbook = HtmlTableParser().parse("<table><tr><td>ü</td></tr></table>".encode("utf-8"))
        assert workbook.get_sheet("Sheet1").get_cell(0, 0).raw_value == "ü"
