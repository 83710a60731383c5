"""
HTTP routes for the AutoMate API.
"""

from __future__ import annotations

import logging
import time
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from automate.auth import Identity, get_current_identity
from automate.db import DbClient, UserRecord, VehicleRecord
from automate.dependencies import get_db_client, get_storage_client
from automate.schemas import (
    CreateReminderPayload,
    CreateVehiclePayload,
    DeleteResponse,
    DeviceResponse,
    DocumentListResponse,
    DocumentResponse,
    RegisterDevicePayload,
    RegisterUserPayload,
    ReminderListResponse,
    ReminderResponse,
    UpdateReminderPayload,
    UserResponse,
    VehicleListResponse,
    VehicleResponse,
)
from automate.storage import StorageClient

logger = logging.getLogger(__name__)

router = APIRouter()


def resolve_user(
    identity: Identity = Depends(get_current_identity),
    db: DbClient = Depends(get_db_client),
) -> UserRecord:
    """Translate the caller's Firebase uid into the internal user row."""
    user = db.get_user_by_firebase_uid(identity.uid)
    if not user:
        raise HTTPException(status_code=404, detail="Usuario no registrado")
    return user


def _owned_vehicle(db: DbClient, vehicle_id: str, user: UserRecord) -> VehicleRecord:
    vehicle = db.get_vehicle(vehicle_id)
    if not vehicle or vehicle.user_id != user.id:
        raise HTTPException(status_code=404, detail="Vehículo no encontrado")
    return vehicle


def _storage_path(uid: str, vehicle_id: str, filename: str) -> str:
    return f"{uid}/{vehicle_id}/{int(time.time() * 1000)}_{filename}"


@router.post("/registerUser", response_model=UserResponse)
def register_user(
    payload: Optional[RegisterUserPayload] = None,
    identity: Identity = Depends(get_current_identity),
    db: DbClient = Depends(get_db_client),
):
    payload = payload or RegisterUserPayload()
    user = db.upsert_user(
        identity.uid,
        email=identity.email or payload.email,
        display_name=identity.name or payload.displayName,
    )
    logger.info("Registered user %s", identity.uid)
    return UserResponse(user=user.as_dict())


@router.post("/vehicles", response_model=VehicleResponse)
def create_vehicle(
    payload: CreateVehiclePayload,
    user: UserRecord = Depends(resolve_user),
    db: DbClient = Depends(get_db_client),
):
    vehicle = db.create_vehicle(user.id, **payload.model_dump())
    return VehicleResponse(vehicle=vehicle.as_dict())


@router.get("/vehicles", response_model=VehicleListResponse)
def list_vehicles(
    user: UserRecord = Depends(resolve_user),
    db: DbClient = Depends(get_db_client),
):
    vehicles = db.list_vehicles(user.id)
    return VehicleListResponse(vehicles=[v.as_dict() for v in vehicles])


@router.get("/vehicles/{vehicle_id}/documents", response_model=DocumentListResponse)
def list_documents(
    vehicle_id: str,
    user: UserRecord = Depends(resolve_user),
    db: DbClient = Depends(get_db_client),
):
    _owned_vehicle(db, vehicle_id, user)
    documents = db.list_documents(vehicle_id)
    return DocumentListResponse(documents=[d.as_dict() for d in documents])


@router.post("/vehicles/{vehicle_id}/documents", response_model=DocumentResponse)
async def upload_document(
    vehicle_id: str,
    file: Optional[UploadFile] = File(None),
    documentType: Optional[str] = Form(None),
    expiryDate: Optional[date] = Form(None),
    identity: Identity = Depends(get_current_identity),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    """
    Store the uploaded file, then insert its metadata row.

    The two writes are not transactional: if the insert fails the stored
    object stays in the bucket.
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="file required")

    user = resolve_user(identity, db)
    _owned_vehicle(db, vehicle_id, user)

    data = await file.read()
    path = _storage_path(identity.uid, vehicle_id, file.filename)
    storage.upload_bytes(path, data, content_type=file.content_type)
    public_url = storage.public_url(path)
    if public_url is None:
        logger.warning("No public URL for %s", path)

    document = db.create_document(
        vehicle_id,
        document_type=documentType,
        expiry_date=expiryDate,
        storage_path=path,
        public_url=public_url,
    )
    logger.info("Stored document %s for vehicle %s", document.id, vehicle_id)
    return DocumentResponse(document=document.as_dict())


@router.post("/registerDevice", response_model=DeviceResponse)
def register_device(
    payload: RegisterDevicePayload,
    identity: Identity = Depends(get_current_identity),
    db: DbClient = Depends(get_db_client),
):
    if not payload.token:
        raise HTTPException(status_code=400, detail="token required")
    user = resolve_user(identity, db)
    device = db.upsert_device(user.id, payload.token, payload.platform)
    return DeviceResponse(device=device.as_dict())


@router.get("/reminders", response_model=ReminderListResponse)
def list_reminders(
    vehicle_id: Optional[str] = Query(None, alias="vehicleId"),
    user: UserRecord = Depends(resolve_user),
    db: DbClient = Depends(get_db_client),
):
    reminders = db.list_reminders(user.id, vehicle_id=vehicle_id)
    return ReminderListResponse(reminders=[r.as_dict() for r in reminders])


@router.post("/reminders", response_model=ReminderResponse)
def create_reminder(
    payload: CreateReminderPayload,
    user: UserRecord = Depends(resolve_user),
    db: DbClient = Depends(get_db_client),
):
    if payload.vehicle_id:
        _owned_vehicle(db, payload.vehicle_id, user)
    reminder = db.create_reminder(user.id, payload.model_dump())
    return ReminderResponse(reminder=reminder.as_dict())


@router.put("/reminders/{reminder_id}", response_model=ReminderResponse)
def update_reminder(
    reminder_id: str,
    payload: UpdateReminderPayload,
    user: UserRecord = Depends(resolve_user),
    db: DbClient = Depends(get_db_client),
):
    values = payload.model_dump(exclude_unset=True)
    if values.get("title") is None:
        values.pop("title", None)
    if values.get("is_completed") is None:
        values.pop("is_completed", None)
    if values.get("vehicle_id"):
        _owned_vehicle(db, values["vehicle_id"], user)
    reminder = db.update_reminder(reminder_id, user.id, values)
    if reminder is None:
        logger.info("Reminder %s not updated for user %s", reminder_id, user.id)
        return ReminderResponse(reminder=None)
    return ReminderResponse(reminder=reminder.as_dict())


@router.delete("/reminders/{reminder_id}", response_model=DeleteResponse)
def delete_reminder(
    reminder_id: str,
    user: UserRecord = Depends(resolve_user),
    db: DbClient = Depends(get_db_client),
):
    deleted = db.delete_reminder(reminder_id, user.id)
    message = "Recordatorio eliminado" if deleted else "Ningún recordatorio eliminado"
    return DeleteResponse(message=message, deleted=deleted)
