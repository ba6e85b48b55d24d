"""Unit tests for batch/sku.py (SKU normalization and file grouping)."""

import pytest


class TestNormalizeSku:
    """Tests for normalize_sku."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (" ab-12 c ", "AB_12_C"),
            ("cam\u201301", "CAM_01"),
            ("\ufeffvest  azul\xa0", "VEST_AZUL"),
            ("saia--longa", "SAIA_LONGA"),
            (1234, "1234"),
        ],
    )
    def test_normalizes_separators_and_case(self, raw, expected):
        """Dashes and whitespace runs collapse to '_' and the result is upper case."""
        from vitrine.batch.sku import normalize_sku

        assert normalize_sku(raw) == expected

    def test_none_is_empty(self):
        """A missing cell normalizes to an empty SKU."""
        from vitrine.batch.sku import normalize_sku

        assert normalize_sku(None) == ""


class TestGetBaseName:
    """Tests for get_base_name."""

    @pytest.mark.parametrize(
        "file_name, expected",
        [
            ("CAM-01_frente_2.jpg", "CAM-01"),
            ("CAM-01_costas.jpg", "CAM-01"),
            ("VEST_back.png", "VEST"),
            ("Blusa_Total_Look.jpeg", "Blusa"),
            ("SAIA 2_front.png", "SAIA 2"),
            ("bermuda.webp", "bermuda"),
        ],
    )
    def test_strips_view_and_numeric_suffixes(self, file_name, expected):
        """View suffixes and short numeric suffixes are removed repeatedly."""
        from vitrine.batch.sku import get_base_name

        assert get_base_name(file_name) == expected


class TestGroupFiles:
    """Tests for group_files."""

    def test_groups_by_sku_in_upload_order(self):
        """Files sharing a SKU end up in one group; groups keep first-seen order."""
        from vitrine.batch.sku import group_files

        groups = group_files(
            [
                ("CAM-01_frente.jpg", "a"),
                ("SAIA 2_front.png", "b"),
                ("cam-01_costas.jpg", "c"),
            ]
        )

        assert [g.sku for g in groups] == ["CAM_01", "SAIA_2"]
        assert groups[0].base_name == "CAM-01"
        assert groups[0].files == ["a", "c"]
        assert groups[1].files == ["b"]

    def test_empty_input(self):
        """No files, no groups."""
        from vitrine.batch.sku import group_files

        assert group_files([]) == []
