"""Batch settings and the per-item cascade: item override > spreadsheet row > global."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from vitrine.ai.genai_client import describe_as_text
from vitrine.batch.spreadsheet import find_value

GENDER_KEYS = ("gênero", "genero", "gender", "sexo")
AGE_KEYS = ("idade", "age", "faixa etária", "(anos)")
WIDTH_KEYS = ("largura", "width")
HEIGHT_KEYS = ("altura", "height")
BRAND_KEYS = ("marca", "brand")
STYLE_KEYS = ("estilo", "style", "tipo")
NEGATIVE_KEYS = ("negativo", "negative_prompt", "prompt_negativo", "prompt negativo", "evitar")
SCENE_KEYS = ("cenário", "cena", "fundo", "background", "scene")

HANDLED_KEYS = {
    k.lower()
    for k in (
        ("sku", "lista de referência")
        + GENDER_KEYS
        + AGE_KEYS
        + WIDTH_KEYS
        + HEIGHT_KEYS
        + STYLE_KEYS
        + NEGATIVE_KEYS
        + SCENE_KEYS
    )
}

# faixa -> idade representativa
AGE_PRESETS = {
    "adult": "30 anos",
    "teenager": "16 anos",
    "child": "8 anos",
    "baby": "1 ano",
    "newborn": "Recém-nascido",
}

ECOMMERCE_SCENE = "Estilo E-commerce, fundo limpo e neutro. "
EDITORIAL_SCENE = "Estilo Editorial/Criativo, mais artístico. "

Gender = Literal["male", "female"]


class ModelNotes(BaseModel):
    model_config = ConfigDict(extra="ignore")

    adult_male: str = ""
    adult_female: str = ""
    teenager_male: str = ""
    teenager_female: str = ""
    child_male: str = ""
    child_female: str = ""
    baby: str = ""
    newborn: str = ""

    def for_preset(self, preset: str, gender: str) -> str:
        if preset in ("baby", "newborn"):
            return getattr(self, preset)
        return getattr(self, f"{preset}_{gender}", "")


class GlobalSettings(BaseModel):
    model_config = ConfigDict(protected_namespaces=(), extra="ignore")

    model_gender: Gender = "female"
    model_age: Dict[str, str] = Field(default_factory=lambda: {"male": "30 anos", "female": "30 anos"})
    target_width: int = Field(default=0, ge=0)
    target_height: int = Field(default=0, ge=0)
    brand: str = ""
    style: Literal["ecommerce", "editorial"] = "ecommerce"
    theme: str = ""
    scene_notes: str = ""
    negative_prompt: str = ""
    clothing_notes: str = ""
    model_notes: ModelNotes = Field(default_factory=ModelNotes)
    selected_views: List[str] = Field(default_factory=list)

    # referências (ids de arquivos da galeria)
    male_reference_model_id: Optional[str] = None
    female_reference_model_id: Optional[str] = None
    male_reference_bottom_id: Optional[str] = None
    female_reference_bottom_id: Optional[str] = None
    male_reference_bottom_description: Optional[Dict[str, Any]] = None
    female_reference_bottom_description: Optional[Dict[str, Any]] = None
    reference_scene_id: Optional[str] = None
    fit_reference_id: Optional[str] = None


@dataclass
class ResolvedItemSettings:
    gender: str
    age: str
    width: int
    height: int
    brand: str
    style: str
    negative_prompt: str
    scene_prompt: str
    model_notes: str
    clothing_description: Optional[str]
    reference_model_id: Optional[str]
    reference_bottom_id: Optional[str]
    reference_bottom_description: Optional[str]


def _to_int(value: Optional[str]) -> int:
    try:
        return int(float(str(value).replace(",", ".")))
    except (TypeError, ValueError):
        return 0


def _gender_from(value: Optional[str]) -> Optional[str]:
    v = (value or "").strip().lower()
    if v in ("male", "masculino"):
        return "male"
    if v in ("female", "feminino"):
        return "female"
    return None


def age_preset_for(age: str) -> str:
    lowered = (age or "").strip().lower()
    for preset, representative in AGE_PRESETS.items():
        if representative.lower() == lowered or preset == lowered:
            return preset
    return "adult"


def notes_from_metadata(metadata: Dict[str, Any]) -> str:
    return ". ".join(
        f"{k}: {v}" for k, v in metadata.items() if str(k).lower() not in HANDLED_KEYS and v not in (None, "")
    )


def resolve_item_settings(
    settings: GlobalSettings,
    *,
    metadata: Optional[Dict[str, Any]] = None,
    gender_override: Optional[str] = None,
    age_override: Optional[str] = None,
    ai_description: Optional[Dict[str, Any]] = None,
    clothing_notes: Optional[str] = None,
) -> ResolvedItemSettings:
    meta = metadata or {}

    gender = settings.model_gender
    gender = _gender_from(find_value(meta, GENDER_KEYS)) or gender
    gender = _gender_from(gender_override) or gender

    age = settings.model_age.get(gender) or AGE_PRESETS["adult"]
    age = find_value(meta, AGE_KEYS) or age
    age = (age_override or "").strip() or age

    width, height = settings.target_width, settings.target_height
    meta_w = _to_int(find_value(meta, WIDTH_KEYS))
    meta_h = _to_int(find_value(meta, HEIGHT_KEYS))
    if meta_w > 0 and meta_h > 0:
        width, height = meta_w, meta_h

    brand = (find_value(meta, BRAND_KEYS) or settings.brand or "").strip()

    style = settings.style
    meta_style = (find_value(meta, STYLE_KEYS) or "").strip().lower()
    if meta_style in ("editorial", "ecommerce"):
        style = meta_style

    negative = find_value(meta, NEGATIVE_KEYS) or settings.negative_prompt

    scene = find_value(meta, SCENE_KEYS)
    if not scene:
        scene = settings.scene_notes
        if settings.theme:
            scene = f"Tema: {settings.theme}. {scene}"
    scene_prompt = (ECOMMERCE_SCENE if style == "ecommerce" else EDITORIAL_SCENE) + (scene or "")

    if meta:
        model_notes = notes_from_metadata(meta)
    else:
        model_notes = settings.model_notes.for_preset(age_preset_for(age), gender)

    description = describe_as_text(ai_description)
    notes = (clothing_notes or "").strip() or settings.clothing_notes.strip()
    if notes:
        description = "\n\n".join(filter(None, [description, f"Observações Adicionais: {notes}"]))

    if gender == "male":
        ref_model = settings.male_reference_model_id
        ref_bottom = settings.male_reference_bottom_id
        bottom_desc = settings.male_reference_bottom_description
    else:
        ref_model = settings.female_reference_model_id
        ref_bottom = settings.female_reference_bottom_id
        bottom_desc = settings.female_reference_bottom_description

    return ResolvedItemSettings(
        gender=gender,
        age=age,
        width=int(width or 0),
        height=int(height or 0),
        brand=brand,
        style=style,
        negative_prompt=negative or "",
        scene_prompt=scene_prompt,
        model_notes=model_notes,
        clothing_description=description,
        reference_model_id=ref_model,
        reference_bottom_id=ref_bottom,
        reference_bottom_description=describe_as_text(bottom_desc),
    )
