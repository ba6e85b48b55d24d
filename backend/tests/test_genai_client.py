"""Unit tests for ai/genai_client.py and ai/age_training.py.

The provider is the FakeGenaiClient from conftest; prompts are checked through
the recorded ``contents`` and the cost ledger through the database.
"""

from types import SimpleNamespace

import pytest


def _texts(call):
    return [p.text for p in call.contents if getattr(p, "text", None)]


def _image_parts(call):
    return [p for p in call.contents if getattr(p, "inline_data", None) is not None]


@pytest.fixture
def gen(db, admin, fake_genai):
    from vitrine.ai.genai_client import GenerationClient
    from vitrine.ledger.costs import CostRecorder

    return GenerationClient(fake_genai, CostRecorder(db, admin.uid))


@pytest.fixture
def garment(make_png):
    from vitrine.ai.genai_client import ImageInput

    return ImageInput.from_bytes(make_png(64, 48), "CAM-01_frente.png")


class TestImageFromResponse:
    """Tests for image_from_response."""

    def test_returns_first_inline_image(self):
        """The first inline image becomes a data URL."""
        from conftest import image_response
        from vitrine.ai.genai_client import image_from_response

        assert image_from_response(image_response(b"abc"), "x") == "data:image/png;base64,YWJj"

    def test_blocked_prompt(self):
        """A block reason is reported as GENERATION_BLOCKED."""
        from vitrine.ai.genai_client import image_from_response
        from vitrine.core.errors import GenerationError

        response = SimpleNamespace(
            prompt_feedback=SimpleNamespace(block_reason="SAFETY", block_reason_message="conteúdo"),
            candidates=[],
        )

        with pytest.raises(GenerationError) as exc:
            image_from_response(response, "edição")

        assert exc.value.error_code == "GENERATION_BLOCKED"
        assert "SAFETY" in exc.value.message

    def test_unexpected_finish_reason(self):
        """A candidate that stopped for another reason is GENERATION_STOPPED."""
        from vitrine.ai.genai_client import image_from_response
        from vitrine.core.errors import GenerationError

        candidate = SimpleNamespace(content=SimpleNamespace(parts=[]), finish_reason="IMAGE_SAFETY")
        response = SimpleNamespace(prompt_feedback=None, candidates=[candidate], text=None)

        with pytest.raises(GenerationError) as exc:
            image_from_response(response, "modelo")

        assert exc.value.error_code == "GENERATION_STOPPED"

    def test_text_instead_of_image(self):
        """When only text comes back, it is quoted in the error."""
        from conftest import text_response
        from vitrine.ai.genai_client import image_from_response
        from vitrine.core.errors import GenerationError

        with pytest.raises(GenerationError) as exc:
            image_from_response(text_response("não consigo"), "modelo")

        assert exc.value.error_code == "NO_IMAGE_RETURNED"
        assert "não consigo" in exc.value.message


class TestTransport:
    """Tests for provider errors and configuration."""

    def test_quota_exhausted(self, gen, fake_genai, garment):
        """RESOURCE_EXHAUSTED errors become QuotaExceededError (HTTP 429)."""
        from vitrine.core.errors import QuotaExceededError

        fake_genai.error = RuntimeError("429 RESOURCE_EXHAUSTED: quota")

        with pytest.raises(QuotaExceededError) as exc:
            gen.enhance_and_upscale(garment)

        assert exc.value.http_status == 429

    def test_other_errors_are_wrapped(self, gen, fake_genai, garment):
        """Any other provider failure is a GenerationError."""
        from vitrine.core.errors import GenerationError

        fake_genai.error = RuntimeError("boom")

        with pytest.raises(GenerationError) as exc:
            gen.enhance_and_upscale(garment)

        assert "boom" in exc.value.message

    def test_missing_api_key(self):
        """Without a provider or API key the client refuses to call out."""
        from vitrine.ai.genai_client import GenerationClient
        from vitrine.core.errors import GenerationError

        with pytest.raises(GenerationError) as exc:
            GenerationClient().provider

        assert exc.value.error_code == "PROVIDER_NOT_CONFIGURED"


class TestImageOperations:
    """Tests for enhance, edit, pose and expand."""

    def test_enhance_logs_cost(self, db, gen, fake_genai, garment):
        """Enhance sends the image plus the prompt and bills one 'enhance' row."""
        from vitrine.infra.db.crud import list_cost_logs

        result = gen.enhance_and_upscale(garment)

        assert result.startswith("data:image/png;base64,")
        assert len(_image_parts(fake_genai.calls[0])) == 1
        rows = list_cost_logs(db)
        assert [r.operation for r in rows] == ["enhance"]
        assert rows[0].image_name == "CAM-01_frente.png"

    def test_edit_requires_selection(self, gen, fake_genai, garment):
        """Editing without hotspot or mask fails before calling the provider."""
        from vitrine.core.errors import GenerationError

        with pytest.raises(GenerationError) as exc:
            gen.generate_edited_image(garment, "trocar cor")

        assert exc.value.error_code == "EDIT_SELECTION_REQUIRED"
        assert fake_genai.calls == []

    def test_edit_with_hotspot(self, db, gen, fake_genai, garment):
        """The hotspot prompt carries the image size and the coordinates."""
        from vitrine.infra.db.crud import list_cost_logs

        gen.generate_edited_image(garment, "trocar cor", hotspot=(12, 30))

        text = " ".join(_texts(fake_genai.calls[0]))
        assert "64 pixels de largura por 48 pixels" in text
        assert "x=12, y=30" in text
        assert list_cost_logs(db)[0].details.startswith("1 imgs in")

    def test_edit_with_mask(self, db, gen, fake_genai, garment, make_png):
        """A mask is sent as a second image and billed as two inputs."""
        from vitrine.ai.genai_client import ImageInput
        from vitrine.infra.db.crud import list_cost_logs

        mask = ImageInput(make_png(64, 48), "image/png", "mask.png")
        gen.generate_edited_image(garment, "remover mancha", mask=mask)

        assert len(_image_parts(fake_genai.calls[0])) == 2
        assert list_cost_logs(db)[0].details.startswith("2 imgs in")

    def test_pose_is_billed_as_retouch(self, db, gen, garment):
        """Pose variation shares the 'retouch' operation."""
        from vitrine.infra.db.crud import list_cost_logs

        gen.generate_pose_variation(garment)

        row = list_cost_logs(db)[0]
        assert row.operation == "retouch"
        assert row.details.endswith("for pose variation")

    def test_expand_logs_once(self, db, gen, fake_genai, garment):
        """Expand sends canvas and mask and writes a single 'expand' row."""
        from vitrine.infra.db.crud import list_cost_logs

        gen.expand_image(garment, 100, 120)

        assert len(_image_parts(fake_genai.calls[0])) == 2
        rows = list_cost_logs(db)
        assert [r.operation for r in rows] == ["expand"]
        assert rows[0].details == "Expand to 100x120"


class TestTextOperations:
    """Tests for describe, differences and age training."""

    def test_describe_clothing(self, db, gen, fake_genai, garment):
        """The JSON answer is parsed and billed as 'describe'."""
        from vitrine.infra.db.crud import list_cost_logs

        assert gen.describe_clothing(garment) == fake_genai.description
        assert list_cost_logs(db)[0].operation == "describe"

    def test_describe_invalid_json(self, gen, fake_genai, garment):
        """Non-JSON answers raise INVALID_JSON."""
        from vitrine.core.errors import GenerationError

        fake_genai.description = ["não", "é", "objeto"]

        with pytest.raises(GenerationError) as exc:
            gen.describe_clothing(garment)

        assert exc.value.error_code == "INVALID_JSON"

    def test_parse_json_text_strips_fences(self):
        """Markdown code fences around the JSON are ignored."""
        from vitrine.ai.genai_client import parse_json_text

        assert parse_json_text('```json\n{"a": 1}\n```') == {"a": 1}

    def test_find_differences(self, db, gen, fake_genai, garment):
        """Differences return plan and points and are billed as 'findDifferences'."""
        from vitrine.infra.db.crud import list_cost_logs

        result = gen.find_clothing_differences(garment, garment, "Camiseta azul")

        assert result == fake_genai.differences
        assert fake_genai.calls[0].kind == "differences"
        assert list_cost_logs(db)[0].operation == "findDifferences"

    def test_train_age_goes_to_root(self, db, project_gen, fake_genai):
        """Age training is always billed to the root project."""
        from vitrine.infra.db.crud import list_cost_logs

        text = project_gen.train_age_characteristics("8 anos")

        assert text == fake_genai.text
        row = list_cost_logs(db)[0]
        assert row.operation == "training"
        assert row.project_id == "root"
        assert row.image_name == "AI Agent Training"


@pytest.fixture
def project_gen(db, admin, fake_genai):
    from vitrine.ai.genai_client import GenerationClient
    from vitrine.ledger.costs import CostRecorder

    return GenerationClient(fake_genai, CostRecorder(db, admin.uid, "pasta-x"))


class TestModelPrompt:
    """Tests for build_model_prompt and generate_model_image."""

    def _request(self, garment, **kw):
        from vitrine.ai.genai_client import ModelImageRequest

        fields = dict(clothing_images=[garment], age="30 anos", gender="female", image_name="CAM-01")
        fields.update(kw)
        return ModelImageRequest(**fields)

    def test_gender_line_skipped_for_babies(self, gen, garment):
        """Baby and newborn ages omit the gender requirement."""
        adult = gen.build_model_prompt(self._request(garment))
        baby = gen.build_model_prompt(self._request(garment, age="Recém-nascido"))

        assert any("Gênero do Modelo" in p for p in adult.pieces if isinstance(p, str))
        assert not any("Gênero do Modelo" in p for p in baby.pieces if isinstance(p, str))

    @pytest.mark.parametrize(
        "age, has_gender",
        [("1 ano", False), ("baby", False), ("newborn", False), (" Recém-Nascido ", False), ("8 anos", True)],
    )
    def test_gender_line_by_age(self, gen, garment, age, has_gender):
        """Preset ids and their representative ages are both treated as baby/newborn."""
        b = gen.build_model_prompt(self._request(garment, age=age))

        assert any("Gênero do Modelo" in p for p in b.pieces if isinstance(p, str)) is has_gender

    def test_back_framing_warning(self, gen, garment):
        """Back views get the extra framing warning."""
        from vitrine.ai import prompts

        b = gen.build_model_prompt(self._request(garment, photo_framing="Crop Costas"))

        assert prompts.MODEL_BACK_WARNING in b.pieces

    def test_multi_view_and_scene(self, gen, garment):
        """Several garment views are numbered; a scene image beats the scene text."""
        from vitrine.ai import prompts

        b = gen.build_model_prompt(
            self._request(garment, clothing_images=[garment, garment], scene_prompt="praia", reference_scene=garment)
        )

        assert prompts.MODEL_VIEW_N.format(n=2) in b.pieces
        assert prompts.MODEL_SCENE_REFERENCE in b.pieces
        assert prompts.MODEL_SCENE_TEXT.format(scene="praia") not in b.pieces
        assert b.image_count == 3

    def test_fit_reference_counts_as_input_image(self, db, gen, fake_genai, garment):
        """The fit reference is described as text but billed as an input image."""
        from vitrine.infra.db.crud import list_cost_logs

        gen.generate_model_image(self._request(garment, fit_reference=garment))

        assert [c.kind for c in fake_genai.calls] == ["text", "image"]
        rows = list_cost_logs(db)
        assert [r.operation for r in rows] == ["model"]
        assert rows[0].details.startswith("2 imgs in, 1 img out")


class TestAgeTrainer:
    """Tests for AgeTrainer."""

    def test_trains_once_per_age(self, db, gen, fake_genai):
        """The second request for the same age is served from the database."""
        from vitrine.ai.age_training import AgeTrainer

        trainer = AgeTrainer(db, gen)

        first = trainer.characteristics_for("8 anos")
        second = trainer.characteristics_for("8 anos")

        assert first == second == fake_genai.text
        assert len(fake_genai.calls) == 1

    def test_blank_age(self, db, gen, fake_genai):
        """A blank age does not call the provider."""
        from vitrine.ai import prompts
        from vitrine.ai.age_training import AgeTrainer

        assert AgeTrainer(db, gen).characteristics_for("  ") == prompts.AGE_NOT_SPECIFIED
        assert fake_genai.calls == []


class TestDescribeAsText:
    """Tests for describe_as_text."""

    def test_formats_pairs(self):
        from vitrine.ai.genai_client import describe_as_text

        assert describe_as_text({"Tipo": "Saia", "Cor": "Preta"}) == "Tipo: Saia, Cor: Preta"
        assert describe_as_text({"Erro": "Falha na análise."}) is None
        assert describe_as_text(None) is None
