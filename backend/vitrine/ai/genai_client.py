"""Client for the generative image/text provider (Gemini via google-genai).

Each operation builds a multipart prompt (text plus inline images), calls the
provider, turns the response into a data URL (or parsed JSON) and writes one
row to the cost ledger.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from google import genai
from google.genai import types

from vitrine.ai import prompts
from vitrine.ai.image_utils import build_outpaint_canvas, image_size, parse_data_url, sniff_mime, to_data_url
from vitrine.core import config
from vitrine.core.errors import GenerationError, QuotaExceededError
from vitrine.ledger.costs import CostRecorder, UsageShape

logger = logging.getLogger(__name__)

SAFETY_SETTINGS = [
    types.SafetySetting(category=category, threshold=types.HarmBlockThreshold.BLOCK_NONE)
    for category in (
        types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
        types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
        types.HarmCategory.HARM_CATEGORY_HARASSMENT,
        types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
    )
]

DIFFERENCES_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "plan": types.Schema(type=types.Type.STRING, description="O plano de correção passo a passo."),
        "points": types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "x": types.Schema(type=types.Type.INTEGER, description="Coordenada X na imagem gerada."),
                    "y": types.Schema(type=types.Type.INTEGER, description="Coordenada Y na imagem gerada."),
                    "description": types.Schema(
                        type=types.Type.STRING, description="Descrição curta da discrepância no ponto."
                    ),
                },
                required=["x", "y", "description"],
            ),
        ),
    },
    required=["plan", "points"],
)

NO_AGE_PRESETS = ("newborn", "baby", "recém-nascido", "1 ano")

_FENCE_RE = re.compile(r"```json|```")


@dataclass(frozen=True)
class ImageInput:
    data: bytes
    mime_type: str = "image/png"
    name: str = "imagem"

    @classmethod
    def from_bytes(cls, data: bytes, name: str = "imagem", mime_type: Optional[str] = None) -> "ImageInput":
        mime = mime_type or sniff_mime(data)
        if not mime.startswith("image/"):
            mime = "image/png"
        return cls(data=data, mime_type=mime, name=name)

    @classmethod
    def from_data_url(cls, data_url: str, name: str = "imagem") -> "ImageInput":
        data, mime = parse_data_url(data_url)
        return cls(data=data, mime_type=mime, name=name)

    def to_part(self) -> types.Part:
        return types.Part.from_bytes(data=self.data, mime_type=self.mime_type)


PromptPiece = Union[str, ImageInput]


@dataclass
class ModelImageRequest:
    clothing_images: List[ImageInput]
    age: str
    gender: str
    image_name: str
    scene_prompt: str = ""
    trained_characteristics: str = ""
    clothing_description: Optional[str] = None
    model_notes: str = ""
    negative_prompt: str = ""
    photo_framing: Optional[str] = None
    reference_model: Optional[ImageInput] = None
    reference_scene: Optional[ImageInput] = None
    fit_reference: Optional[ImageInput] = None
    reference_bottom: Optional[ImageInput] = None
    reference_bottom_description: Optional[str] = None


@dataclass
class PromptBuilder:
    """Ordered prompt parts, with the counters the cost ledger needs."""

    pieces: List[PromptPiece] = field(default_factory=list)

    def text(self, value: str) -> "PromptBuilder":
        self.pieces.append(value)
        return self

    def image(self, value: ImageInput) -> "PromptBuilder":
        self.pieces.append(value)
        return self

    @property
    def char_count(self) -> int:
        return sum(len(p) for p in self.pieces if isinstance(p, str))

    @property
    def image_count(self) -> int:
        return sum(1 for p in self.pieces if isinstance(p, ImageInput))

    def to_contents(self) -> List[types.Part]:
        return [types.Part.from_text(text=p) if isinstance(p, str) else p.to_part() for p in self.pieces]


def _enum_name(value: Any) -> str:
    return str(getattr(value, "name", value))


def image_from_response(response: Any, context: str) -> str:
    """Returns the first inline image as a data URL or raises GenerationError."""
    feedback = getattr(response, "prompt_feedback", None)
    block_reason = getattr(feedback, "block_reason", None) if feedback else None
    if block_reason:
        message = getattr(feedback, "block_reason_message", None) or ""
        raise GenerationError(
            prompts.BLOCKED.format(context=context, reason=_enum_name(block_reason), message=message).strip(),
            error_code="GENERATION_BLOCKED",
        )

    candidates = getattr(response, "candidates", None) or []
    candidate = candidates[0] if candidates else None
    content = getattr(candidate, "content", None) if candidate else None
    for part in getattr(content, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        if inline is not None and getattr(inline, "data", None):
            return to_data_url(inline.data, inline.mime_type or "image/png")

    finish_reason = getattr(candidate, "finish_reason", None) if candidate else None
    if finish_reason and _enum_name(finish_reason) != "STOP":
        raise GenerationError(
            prompts.STOPPED.format(context=context, reason=_enum_name(finish_reason)),
            error_code="GENERATION_STOPPED",
        )

    text_feedback = (_response_text(response) or "").strip()
    message = prompts.NO_IMAGE.format(context=context)
    if text_feedback:
        message += prompts.NO_IMAGE_WITH_TEXT.format(text=text_feedback)
    else:
        message += prompts.NO_IMAGE_HINT
    raise GenerationError(message, error_code="NO_IMAGE_RETURNED")


def _response_text(response: Any) -> str:
    try:
        text = response.text
    except (AttributeError, ValueError):
        return ""
    return text or ""


def parse_json_text(text: str) -> Any:
    return json.loads(_FENCE_RE.sub("", text or "").strip())


def _join_pairs(values: Dict[str, Any], sep: str) -> str:
    return sep.join(f"{k}: {v}" for k, v in values.items())


class GenerationClient:
    def __init__(self, provider: Any = None, costs: Optional[CostRecorder] = None) -> None:
        self._provider = provider
        self.costs = costs
        self.image_model = config.IMAGE_MODEL
        self.text_model = config.TEXT_MODEL

    @property
    def provider(self) -> Any:
        if self._provider is None:
            if not config.GEMINI_API_KEY:
                raise GenerationError("GEMINI_API_KEY não configurada.", error_code="PROVIDER_NOT_CONFIGURED")
            self._provider = genai.Client(api_key=config.GEMINI_API_KEY)
        return self._provider

    def with_costs(self, costs: Optional[CostRecorder]) -> "GenerationClient":
        clone = GenerationClient(self._provider, costs)
        clone.image_model = self.image_model
        clone.text_model = self.text_model
        return clone

    # ---- transporte ----
    def _call(self, model: str, contents: Sequence[Any], cfg: Optional[types.GenerateContentConfig], context: str) -> Any:
        try:
            return self.provider.models.generate_content(model=model, contents=list(contents), config=cfg)
        except GenerationError:
            raise
        except Exception as e:
            text = str(e)
            if "RESOURCE_EXHAUSTED" in text:
                raise QuotaExceededError() from e
            logger.exception("provider call failed (%s)", context)
            raise GenerationError(f"Falha ao chamar o provedor de IA ({context}): {text}") from e

    def _image_call(self, builder: PromptBuilder, context: str) -> str:
        cfg = types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"], safety_settings=SAFETY_SETTINGS)
        response = self._call(self.image_model, builder.to_contents(), cfg, context)
        return image_from_response(response, context)

    def _text_call(self, builder: PromptBuilder, context: str, cfg: Optional[types.GenerateContentConfig] = None) -> str:
        response = self._call(self.text_model, builder.to_contents(), cfg, context)
        return _response_text(response)

    def _log(self, image_name: str, operation: str, shape: UsageShape, details: Optional[str] = None, **kw: Any) -> None:
        if self.costs is not None:
            self.costs.record(image_name=image_name, operation=operation, shape=shape, details=details, **kw)

    # ---- operações ----
    def enhance_and_upscale(self, image: ImageInput) -> str:
        builder = PromptBuilder().image(image).text(prompts.ENHANCE)
        result = self._image_call(builder, "aprimoramento")
        chars = len(prompts.ENHANCE)
        self._log(
            image.name,
            "enhance",
            UsageShape(input_chars=chars, input_images=1, output_images=1),
            f"1 img in, 1 img out, {chars} chars",
        )
        return result

    def train_age_characteristics(self, age: str) -> str:
        prompt = prompts.TRAIN_AGE.format(age=age)
        text = self._text_call(PromptBuilder().text(prompt), "treinamento de idade").strip()
        self._log(
            "AI Agent Training",
            "training",
            UsageShape(input_chars=len(prompt), output_chars=len(text)),
            f"{len(prompt)} chars in, {len(text)} chars out",
            project_id="root",
        )
        return text

    def generate_edited_image(
        self,
        image: ImageInput,
        prompt: str,
        *,
        hotspot: Optional[Tuple[int, int]] = None,
        mask: Optional[ImageInput] = None,
        log_cost: bool = True,
    ) -> str:
        builder = PromptBuilder().image(image)
        if mask is not None:
            full_prompt = prompts.EDIT_MASK.format(prompt=prompt)
            builder.text(prompts.EDIT_MASK_INTRO).image(mask).text(full_prompt)
        elif hotspot is not None:
            width, height = image_size(image.data)
            full_prompt = prompts.EDIT_HOTSPOT.format(
                width=width, height=height, x=int(hotspot[0]), y=int(hotspot[1]), prompt=prompt
            )
            builder.text(full_prompt)
        else:
            raise GenerationError(prompts.EDIT_NEEDS_SELECTION, error_code="EDIT_SELECTION_REQUIRED")

        result = self._image_call(builder, "edição")
        if log_cost:
            inputs = 2 if mask is not None else 1
            self._log(
                image.name,
                "retouch",
                UsageShape(input_chars=len(full_prompt), input_images=inputs, output_images=1),
                f"{inputs} imgs in, 1 img out, {len(full_prompt)} chars",
            )
        return result

    def generate_pose_variation(self, image: ImageInput) -> str:
        builder = PromptBuilder().image(image).text(prompts.POSE_VARIATION)
        result = self._image_call(builder, "variação de pose")
        chars = len(prompts.POSE_VARIATION)
        self._log(
            image.name,
            "retouch",
            UsageShape(input_chars=chars, input_images=1, output_images=1),
            f"1 img in, 1 img out, {chars} chars for pose variation",
        )
        return result

    def expand_image(self, image: ImageInput, width: int, height: int) -> str:
        canvas, mask = build_outpaint_canvas(image.data, int(width), int(height))
        result = self.generate_edited_image(
            ImageInput(canvas, "image/png", image.name),
            prompts.OUTPAINT,
            mask=ImageInput(mask, "image/png", "mask.png"),
            log_cost=False,
        )
        self._log(
            image.name,
            "expand",
            UsageShape(input_chars=len(prompts.OUTPAINT), input_images=2, output_images=1),
            f"Expand to {int(width)}x{int(height)}",
        )
        return result

    def describe_clothing(self, image: ImageInput) -> Dict[str, Any]:
        builder = PromptBuilder().image(image).text(prompts.DESCRIBE_CLOTHING)
        cfg = types.GenerateContentConfig(response_mime_type="application/json", safety_settings=SAFETY_SETTINGS)
        text = self._text_call(builder, "descrição da roupa", cfg)
        try:
            parsed = parse_json_text(text)
        except ValueError as e:
            raise GenerationError(prompts.INVALID_DESCRIPTION, error_code="INVALID_JSON") from e
        if not isinstance(parsed, dict):
            raise GenerationError(prompts.INVALID_DESCRIPTION, error_code="INVALID_JSON")

        out_chars = len(json.dumps(parsed, ensure_ascii=False))
        self._log(
            image.name,
            "describe",
            UsageShape(input_images=1, output_chars=out_chars),
            f"1 img in, {out_chars} chars out",
        )
        return parsed

    def describe_fit_and_style(self, image: ImageInput) -> str:
        return self._text_call(PromptBuilder().image(image).text(prompts.DESCRIBE_FIT), "caimento").strip()

    def build_model_prompt(self, req: ModelImageRequest) -> PromptBuilder:
        b = PromptBuilder().text(prompts.MODEL_HEADER)

        if req.photo_framing:
            b.text(prompts.MODEL_FRAMING.format(framing=req.photo_framing))
            if "costas" in req.photo_framing.lower():
                b.text(prompts.MODEL_BACK_WARNING)

        b.text(prompts.MODEL_ASPECT)

        if len(req.clothing_images) > 1:
            b.text(prompts.MODEL_MULTI_VIEW)
            for n, img in enumerate(req.clothing_images, start=1):
                b.text(prompts.MODEL_VIEW_N.format(n=n)).image(img)
        elif req.clothing_images:
            b.text(prompts.MODEL_SINGLE_VIEW).image(req.clothing_images[0])

        if req.clothing_description:
            b.text(prompts.MODEL_DESCRIPTION.format(description=req.clothing_description))

        if req.reference_bottom is not None:
            b.text(prompts.MODEL_BOTTOM).image(req.reference_bottom)
            if req.reference_bottom_description:
                b.text(prompts.MODEL_BOTTOM_DESCRIPTION.format(description=req.reference_bottom_description))

        if req.fit_reference is not None:
            fit = self.describe_fit_and_style(req.fit_reference)
            b.text(prompts.MODEL_FIT.format(fit=fit))

        b.text(prompts.MODEL_AGE.format(age=req.age))
        if (req.age or "").strip().lower() not in NO_AGE_PRESETS:
            b.text(prompts.MODEL_GENDER.format(gender=req.gender))
        b.text(prompts.MODEL_TRAINED.format(characteristics=req.trained_characteristics))

        if req.model_notes:
            b.text(prompts.MODEL_NOTES.format(notes=req.model_notes))
        if req.negative_prompt:
            b.text(prompts.MODEL_NEGATIVE.format(negative=req.negative_prompt))

        if req.reference_model is not None:
            b.text(prompts.MODEL_REFERENCE).image(req.reference_model)

        if req.reference_scene is not None:
            b.text(prompts.MODEL_SCENE_REFERENCE).image(req.reference_scene)
        elif req.scene_prompt:
            b.text(prompts.MODEL_SCENE_TEXT.format(scene=req.scene_prompt))

        b.text(prompts.MODEL_FINAL)
        return b

    def generate_model_image(self, req: ModelImageRequest) -> str:
        builder = self.build_model_prompt(req)
        result = self._image_call(builder, "modelo")

        # a referência de caimento entra como texto, mas conta como imagem de entrada
        images_in = builder.image_count + (1 if req.fit_reference is not None else 0)
        chars = builder.char_count
        self._log(
            req.image_name,
            "model",
            UsageShape(input_chars=chars, input_images=images_in, output_images=1),
            f"{images_in} imgs in, 1 img out, {chars} chars",
        )
        return result

    def find_clothing_differences(
        self, original: ImageInput, generated: ImageInput, original_description: str
    ) -> Dict[str, Any]:
        description = original_description or ""
        builder = (
            PromptBuilder()
            .text("Peça Original:")
            .image(original)
            .text("Imagem Gerada:")
            .image(generated)
            .text(f"Descrição Original:\n{description}")
            .text(prompts.FIND_DIFFERENCES)
        )
        cfg = types.GenerateContentConfig(response_mime_type="application/json", response_schema=DIFFERENCES_SCHEMA)
        text = self._text_call(builder, "análise de diferenças", cfg)

        self._log(
            generated.name,
            "findDifferences",
            UsageShape(
                input_chars=len(prompts.FIND_DIFFERENCES) + len(description),
                output_chars=len(text),
                input_images=2,
            ),
            "Finding differences",
        )

        try:
            parsed = parse_json_text(text)
        except ValueError as e:
            raise GenerationError(prompts.INVALID_DIFFERENCES, error_code="INVALID_JSON") from e
        if not isinstance(parsed, dict):
            raise GenerationError(prompts.INVALID_DIFFERENCES, error_code="INVALID_JSON")
        return {"plan": parsed.get("plan") or "", "points": parsed.get("points") or []}

    def apply_clothing_correction(self, original: ImageInput, generated: ImageInput, plan: str) -> str:
        prompt = prompts.APPLY_CORRECTION.format(plan=plan)
        builder = (
            PromptBuilder()
            .text("Imagem a ser corrigida (Imagem Gerada):")
            .image(generated)
            .text("Imagem de referência (Peça Original):")
            .image(original)
            .text(prompt)
        )
        result = self._image_call(builder, "correção")
        self._log(
            generated.name,
            "correction",
            UsageShape(input_chars=len(prompt), input_images=2, output_images=1),
            "Applying correction",
        )
        return result


def describe_as_text(description: Optional[Dict[str, Any]]) -> Optional[str]:
    """AI clothing description as 'k: v, k: v'; error payloads are dropped."""
    if not description or "Erro" in description:
        return None
    return _join_pairs(description, ", ")
