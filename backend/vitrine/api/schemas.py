from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Body(BaseModel):
    """JSON bodies use camelCase keys; snake_case is accepted too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())


# ---- usuários ----
class SignupBody(Body):
    email: Optional[str] = None
    username: Optional[str] = None


class CreateUserBody(Body):
    email: Optional[str] = None
    username: Optional[str] = None
    role: Optional[Literal["admin", "user"]] = None


# ---- galeria ----
class FolderBody(Body):
    name: Optional[str] = None
    parent_id: Optional[str] = None


class RenameBody(Body):
    new_name: Optional[str] = None


class MoveBody(Body):
    item_ids: Optional[List[str]] = None
    destination_folder_id: Optional[str] = None


class ItemIdsBody(Body):
    item_ids: Any = None


# ---- geração ----
class DescribeBody(Body):
    image_data: Optional[str] = None
    mime_type: Optional[str] = None


# ---- lote ----
class BatchCreateBody(Body):
    settings: Dict[str, Any] = Field(default_factory=dict)


class SpreadsheetBody(Body):
    rows: List[List[Any]]


class BatchItemUpdateBody(Body):
    model_gender: Optional[Literal["male", "female"]] = None
    model_age: Optional[str] = None
    clothing_notes: Optional[str] = None


class DescribeItemsBody(Body):
    item_ids: Optional[List[str]] = None


class PresetBody(Body):
    name: str
    settings: Optional[Dict[str, Any]] = None


# ---- editor ----
class SessionFromGalleryBody(Body):
    item_id: str


class GestureBody(Body):
    points: List[List[float]]
    mode: Literal["brush", "eraser"] = "brush"


class RetouchBody(Body):
    prompt: str = ""
    gestures: List[GestureBody] = Field(default_factory=list)
    display_width: int
    display_height: int
    brush_size: Optional[int] = None


class CropBody(Body):
    x: float
    y: float
    width: float
    height: float
    display_width: int
    display_height: int


class ResizeBody(Body):
    width: int
    height: int


class EditorModelBody(Body):
    gender: Literal["male", "female"] = "female"
    age: str = "30 anos"
    scene_prompt: str = ""
    model_notes: str = ""
    negative_prompt: str = ""
    width: int = 2000
    height: int = 2000
    reference_model_id: Optional[str] = None
    reference_scene_id: Optional[str] = None
    fit_reference_id: Optional[str] = None
    reference_bottom_id: Optional[str] = None
    reference_bottom_description: Optional[Dict[str, Any]] = None


class DifferencesBody(Body):
    original_description: str = ""


class CorrectionBody(Body):
    plan: str = ""
