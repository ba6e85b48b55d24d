"""Unit tests for batch/settings.py: item override > spreadsheet row > global settings."""

import pytest
from pydantic import ValidationError


class TestGlobalSettings:
    """Tests for GlobalSettings validation."""

    def test_defaults(self):
        """An empty payload is a valid configuration."""
        from vitrine.batch.settings import GlobalSettings

        s = GlobalSettings.model_validate({})

        assert s.model_gender == "female"
        assert s.model_age == {"male": "30 anos", "female": "30 anos"}
        assert s.selected_views == []

    def test_rejects_unknown_gender(self):
        """Gender is restricted to male/female."""
        from vitrine.batch.settings import GlobalSettings

        with pytest.raises(ValidationError):
            GlobalSettings.model_validate({"model_gender": "other"})


class TestResolveItemSettings:
    """Tests for resolve_item_settings."""

    def test_global_defaults(self):
        """Without metadata or overrides the global settings apply."""
        from vitrine.batch.settings import ECOMMERCE_SCENE, GlobalSettings, resolve_item_settings

        r = resolve_item_settings(GlobalSettings())

        assert r.gender == "female"
        assert r.age == "30 anos"
        assert (r.width, r.height) == (0, 0)
        assert r.scene_prompt == ECOMMERCE_SCENE
        assert r.clothing_description is None

    def test_spreadsheet_row_overrides_global(self):
        """Sheet columns win over global values; unhandled columns (brand included) become model notes."""
        from vitrine.batch.settings import GlobalSettings, resolve_item_settings

        settings = GlobalSettings(model_gender="female", brand="Global", target_width=500, target_height=500)
        meta = {
            "SKU": "CAM_01",
            "Gênero": "Masculino",
            "Idade": "8 anos",
            "Marca": "Kids",
            "Largura": "800",
            "Altura": "1000,0",
            "Cor": "azul",
        }

        r = resolve_item_settings(settings, metadata=meta)

        assert r.gender == "male"
        assert r.age == "8 anos"
        assert r.brand == "Kids"
        assert (r.width, r.height) == (800, 1000)
        assert r.model_notes == "Marca: Kids. Cor: azul"

    def test_item_override_beats_spreadsheet(self):
        """Per-item gender and age take precedence over the sheet."""
        from vitrine.batch.settings import GlobalSettings, resolve_item_settings

        meta = {"Gênero": "Masculino", "Idade": "8 anos"}

        r = resolve_item_settings(GlobalSettings(), metadata=meta, gender_override="female", age_override="16 anos")

        assert r.gender == "female"
        assert r.age == "16 anos"

    def test_partial_dimensions_fall_back_to_global(self):
        """Only a full width/height pair from the sheet replaces the global size."""
        from vitrine.batch.settings import GlobalSettings, resolve_item_settings

        settings = GlobalSettings(target_width=1200, target_height=1600)

        r = resolve_item_settings(settings, metadata={"Largura": "800"})

        assert (r.width, r.height) == (1200, 1600)

    def test_style_and_theme(self):
        """Sheet style switches the scene prefix; theme is prepended to scene notes."""
        from vitrine.batch.settings import (
            ECOMMERCE_SCENE,
            EDITORIAL_SCENE,
            GlobalSettings,
            resolve_item_settings,
        )

        settings = GlobalSettings(theme="Verão", scene_notes="praia")

        assert resolve_item_settings(settings).scene_prompt == ECOMMERCE_SCENE + "Tema: Verão. praia"
        editorial = resolve_item_settings(settings, metadata={"Estilo": "Editorial"})
        assert editorial.scene_prompt.startswith(EDITORIAL_SCENE)

    def test_model_notes_follow_age_preset(self):
        """Without metadata the notes come from the age/gender preset."""
        from vitrine.batch.settings import GlobalSettings, resolve_item_settings

        settings = GlobalSettings(
            model_gender="male",
            model_age={"male": "8 anos", "female": "30 anos"},
            model_notes={"child_male": "sorridente", "adult_male": "sério"},
        )

        assert resolve_item_settings(settings).model_notes == "sorridente"

    def test_clothing_description_and_notes(self):
        """AI description and notes are combined; error payloads are dropped."""
        from vitrine.batch.settings import GlobalSettings, resolve_item_settings

        r = resolve_item_settings(
            GlobalSettings(), ai_description={"Tipo": "Camiseta"}, clothing_notes="gola V"
        )
        assert r.clothing_description == "Tipo: Camiseta\n\nObservações Adicionais: gola V"

        failed = resolve_item_settings(GlobalSettings(), ai_description={"Erro": "Falha na análise."})
        assert failed.clothing_description is None

    def test_notes_without_description(self):
        """Notes alone are not preceded by a blank separator."""
        from vitrine.batch.settings import GlobalSettings, resolve_item_settings

        r = resolve_item_settings(GlobalSettings(), clothing_notes="gola alta")

        assert r.clothing_description == "Observações Adicionais: gola alta"

    def test_references_follow_resolved_gender(self):
        """Reference model and bottom are picked for the item's final gender."""
        from vitrine.batch.settings import GlobalSettings, resolve_item_settings

        settings = GlobalSettings(
            male_reference_model_id="m1",
            female_reference_model_id="f1",
            male_reference_bottom_id="mb",
            male_reference_bottom_description={"Tipo": "Calça"},
        )

        r = resolve_item_settings(settings, metadata={"gender": "male"})

        assert r.reference_model_id == "m1"
        assert r.reference_bottom_id == "mb"
        assert r.reference_bottom_description == "Tipo: Calça"


class TestAgePresetFor:
    """Tests for age_preset_for."""

    @pytest.mark.parametrize(
        "age, preset",
        [("Recém-nascido", "newborn"), ("1 ano", "baby"), ("16 anos", "teenager"), ("45 anos", "adult")],
    )
    def test_maps_representative_ages(self, age, preset):
        """Representative ages map back to their preset; anything else is adult."""
        from vitrine.batch.settings import age_preset_for

        assert age_preset_for(age) == preset
