from __future__ import annotations

import base64
import binascii
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from vitrine.ai.age_training import AgeTrainer
from vitrine.ai.genai_client import GenerationClient, ImageInput, ModelImageRequest
from vitrine.ai.image_utils import parse_data_url
from vitrine.api.deps import get_generation_client, optional_upload, rate_limit, read_upload_or_413
from vitrine.api.schemas import DescribeBody
from vitrine.infra.db.database import get_db
from vitrine.infra.db.models import ROOT_ID
from vitrine.ledger.costs import CostRecorder
from vitrine.security.auth import CurrentUser

router = APIRouter(prefix="/api/gemini", tags=["generation"])


def _image(upload: UploadFile, field: str, name: Optional[str] = None) -> ImageInput:
    data = read_upload_or_413(upload, field=field)
    return ImageInput.from_bytes(data, name or upload.filename or "imagem", upload.content_type)


def _optional_image(upload: Optional[UploadFile], field: str) -> Optional[ImageInput]:
    got = optional_upload(upload, field=field)
    if got is None:
        return None
    return ImageInput.from_bytes(got[1], got[0], got[2])


def _client(client: GenerationClient, db: Session, user: CurrentUser, project_id: Optional[str]) -> GenerationClient:
    return client.with_costs(CostRecorder(db, user.uid, project_id or ROOT_ID))


@router.post("/describe")
def describe(
    body: DescribeBody,
    projectId: Optional[str] = None,
    user: CurrentUser = Depends(rate_limit),
    client: GenerationClient = Depends(get_generation_client),
    db: Session = Depends(get_db),
):
    if not body.image_data or not body.mime_type:
        raise HTTPException(
            status_code=400,
            detail={"error_code": "FIELDS_REQUIRED", "message": "imageData e mimeType são obrigatórios."},
        )

    try:
        if body.image_data.startswith("data:"):
            data, _ = parse_data_url(body.image_data)
        else:
            data = base64.b64decode(body.image_data, validate=True)
    except (ValueError, binascii.Error):
        raise HTTPException(
            status_code=400,
            detail={"error_code": "INVALID_IMAGE_DATA", "message": "imageData deve estar em base64."},
        )

    image = ImageInput.from_bytes(data, "descrição", body.mime_type)
    return {"description": _client(client, db, user, projectId).describe_clothing(image)}


@router.post("/enhance")
def enhance(
    image: UploadFile = File(...),
    projectId: Optional[str] = Form(None),
    user: CurrentUser = Depends(rate_limit),
    client: GenerationClient = Depends(get_generation_client),
    db: Session = Depends(get_db),
):
    return {"image": _client(client, db, user, projectId).enhance_and_upscale(_image(image, "image"))}


@router.post("/edit")
def edit(
    image: UploadFile = File(...),
    prompt: str = Form(...),
    hotspotX: Optional[int] = Form(None),
    hotspotY: Optional[int] = Form(None),
    mask: Optional[UploadFile] = File(None),
    projectId: Optional[str] = Form(None),
    user: CurrentUser = Depends(rate_limit),
    client: GenerationClient = Depends(get_generation_client),
    db: Session = Depends(get_db),
):
    hotspot = (hotspotX, hotspotY) if hotspotX is not None and hotspotY is not None else None
    result = _client(client, db, user, projectId).generate_edited_image(
        _image(image, "image"),
        prompt,
        hotspot=hotspot,
        mask=_optional_image(mask, "mask"),
    )
    return {"image": result}


@router.post("/pose")
def pose(
    image: UploadFile = File(...),
    projectId: Optional[str] = Form(None),
    user: CurrentUser = Depends(rate_limit),
    client: GenerationClient = Depends(get_generation_client),
    db: Session = Depends(get_db),
):
    return {"image": _client(client, db, user, projectId).generate_pose_variation(_image(image, "image"))}


@router.post("/expand")
def expand(
    image: UploadFile = File(...),
    width: int = Form(...),
    height: int = Form(...),
    projectId: Optional[str] = Form(None),
    user: CurrentUser = Depends(rate_limit),
    client: GenerationClient = Depends(get_generation_client),
    db: Session = Depends(get_db),
):
    if width <= 0 or height <= 0:
        raise HTTPException(
            status_code=400,
            detail={"error_code": "INVALID_DIMENSIONS", "message": "Largura e altura devem ser maiores que zero."},
        )
    return {"image": _client(client, db, user, projectId).expand_image(_image(image, "image"), width, height)}


@router.post("/model")
def model(
    clothingImages: List[UploadFile] = File(...),
    age: str = Form("30 anos"),
    gender: str = Form("female"),
    imageName: Optional[str] = Form(None),
    scenePrompt: str = Form(""),
    clothingDescription: Optional[str] = Form(None),
    modelNotes: str = Form(""),
    negativePrompt: str = Form(""),
    photoFraming: Optional[str] = Form(None),
    referenceBottomDescription: Optional[str] = Form(None),
    referenceModel: Optional[UploadFile] = File(None),
    referenceScene: Optional[UploadFile] = File(None),
    fitReference: Optional[UploadFile] = File(None),
    referenceBottom: Optional[UploadFile] = File(None),
    projectId: Optional[str] = Form(None),
    user: CurrentUser = Depends(rate_limit),
    client: GenerationClient = Depends(get_generation_client),
    db: Session = Depends(get_db),
):
    if gender not in ("male", "female"):
        raise HTTPException(
            status_code=400,
            detail={"error_code": "INVALID_GENDER", "message": "gender deve ser 'male' ou 'female'."},
        )

    gen = _client(client, db, user, projectId)
    clothing = [_image(f, "clothingImages") for f in clothingImages]
    name = imageName or clothing[0].name
    result = gen.generate_model_image(
        ModelImageRequest(
            clothing_images=clothing,
            age=age,
            gender=gender,
            image_name=name,
            scene_prompt=scenePrompt,
            trained_characteristics=AgeTrainer(db, gen).characteristics_for(age),
            clothing_description=clothingDescription,
            model_notes=modelNotes,
            negative_prompt=negativePrompt,
            photo_framing=photoFraming,
            reference_model=_optional_image(referenceModel, "referenceModel"),
            reference_scene=_optional_image(referenceScene, "referenceScene"),
            fit_reference=_optional_image(fitReference, "fitReference"),
            reference_bottom=_optional_image(referenceBottom, "referenceBottom"),
            reference_bottom_description=referenceBottomDescription,
        )
    )
    return {"image": result}


@router.post("/differences")
def differences(
    original: UploadFile = File(...),
    generated: UploadFile = File(...),
    originalDescription: str = Form(""),
    projectId: Optional[str] = Form(None),
    user: CurrentUser = Depends(rate_limit),
    client: GenerationClient = Depends(get_generation_client),
    db: Session = Depends(get_db),
):
    return _client(client, db, user, projectId).find_clothing_differences(
        _image(original, "original"), _image(generated, "generated"), originalDescription
    )


@router.post("/correction")
def correction(
    original: UploadFile = File(...),
    generated: UploadFile = File(...),
    plan: str = Form(...),
    projectId: Optional[str] = Form(None),
    user: CurrentUser = Depends(rate_limit),
    client: GenerationClient = Depends(get_generation_client),
    db: Session = Depends(get_db),
):
    result = _client(client, db, user, projectId).apply_clothing_correction(
        _image(original, "original"), _image(generated, "generated"), plan
    )
    return {"image": result}


@router.post("/train-age")
def train_age(
    age: str = Form(...),
    user: CurrentUser = Depends(rate_limit),
    client: GenerationClient = Depends(get_generation_client),
    db: Session = Depends(get_db),
):
    characteristics = AgeTrainer(db, _client(client, db, user, ROOT_ID)).characteristics_for(age)
    return {"age": age, "characteristics": characteristics}
