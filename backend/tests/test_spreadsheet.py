"""Unit tests for batch/spreadsheet.py."""


class TestBuildMetadataMap:
    """Tests for build_metadata_map."""

    def test_maps_rows_by_normalized_sku(self):
        """First column is the SKU; cells are trimmed and keyed by header."""
        from vitrine.batch.spreadsheet import build_metadata_map

        rows = [
            ["SKU", "Marca", "Idade", None],
            ["cam-01", " Loja X ", "8 anos", "ignorado"],
            ["", "sem sku"],
            [],
        ]

        result = build_metadata_map(rows)

        assert list(result) == ["CAM_01"]
        assert result["CAM_01"] == {"SKU": "cam-01", "Marca": "Loja X", "Idade": "8 anos"}

    def test_short_rows_and_empty_cells(self):
        """Missing or None cells are simply left out of the row."""
        from vitrine.batch.spreadsheet import build_metadata_map

        result = build_metadata_map([["SKU", "Marca", "Cor"], ["VEST", None]])

        assert result == {"VEST": {"SKU": "VEST"}}

    def test_header_only(self):
        """A sheet without data rows yields an empty map."""
        from vitrine.batch.spreadsheet import build_metadata_map

        assert build_metadata_map([["SKU", "Marca"]]) == {}
        assert build_metadata_map([]) == {}


class TestFindValue:
    """Tests for find_value."""

    def test_case_insensitive_first_non_empty(self):
        """Candidates are tried in order; empty values are skipped."""
        from vitrine.batch.spreadsheet import find_value

        meta = {"IDADE": "", "Marca": "Loja X"}

        assert find_value(meta, ("idade", "marca")) == "Loja X"
        assert find_value(meta, ("genero",)) is None
        assert find_value(None, ("marca",)) is None


class TestMergeSpreadsheetNotes:
    """Tests for merge_spreadsheet_notes."""

    def test_replaces_sheet_line_and_keeps_manual_lines(self):
        """The '[Planilha]:' line is swapped for the new row's note."""
        from vitrine.batch.spreadsheet import merge_spreadsheet_notes

        notes = "gola alta\n[Planilha]: antiga"

        assert merge_spreadsheet_notes(notes, {"Notas": "nova"}) == "gola alta\n[Planilha]: nova"

    def test_row_without_note_drops_sheet_line(self):
        """Without a note column only the manual text survives."""
        from vitrine.batch.spreadsheet import merge_spreadsheet_notes

        assert merge_spreadsheet_notes("gola alta\n[Planilha]: antiga", None) == "gola alta"
        assert merge_spreadsheet_notes(None, None) == ""

    def test_sheet_note_only(self):
        """No manual notes: the result is just the sheet line."""
        from vitrine.batch.spreadsheet import merge_spreadsheet_notes

        assert merge_spreadsheet_notes("", {"observacoes_roupa": "botões"}) == "[Planilha]: botões"
