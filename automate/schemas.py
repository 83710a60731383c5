"""
Pydantic schemas for the AutoMate API.
"""

from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field


class RegisterUserPayload(BaseModel):
    email: Optional[str] = None
    displayName: Optional[str] = None


class CreateVehiclePayload(BaseModel):
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    license_plate: Optional[str] = None
    nickname: Optional[str] = None


class RegisterDevicePayload(BaseModel):
    token: Optional[str] = None
    platform: Optional[str] = None


class CreateReminderPayload(BaseModel):
    vehicle_id: Optional[str] = None
    title: str = Field(..., min_length=1)
    notes: Optional[str] = None
    due_date: Optional[date] = None
    is_completed: Optional[bool] = None


class UpdateReminderPayload(BaseModel):
    vehicle_id: Optional[str] = None
    title: Optional[str] = Field(default=None, min_length=1)
    notes: Optional[str] = None
    due_date: Optional[date] = None
    is_completed: Optional[bool] = None


class User(BaseModel):
    id: str
    firebase_uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    created_at: Optional[float] = None


class Vehicle(BaseModel):
    id: str
    user_id: str
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    license_plate: Optional[str] = None
    nickname: Optional[str] = None
    created_at: Optional[float] = None


class Document(BaseModel):
    id: str
    vehicle_id: str
    document_type: Optional[str] = None
    expiry_date: Optional[date] = None
    storage_path: str
    public_url: Optional[str] = None
    created_at: Optional[float] = None


class Device(BaseModel):
    id: str
    user_id: str
    token: str
    platform: Optional[str] = None
    updated_at: Optional[float] = None


class Reminder(BaseModel):
    id: str
    user_id: str
    vehicle_id: Optional[str] = None
    title: str
    notes: Optional[str] = None
    due_date: Optional[date] = None
    is_completed: bool = False
    created_at: Optional[float] = None


class HealthResponse(BaseModel):
    ok: Literal[True] = True


class UserResponse(BaseModel):
    ok: bool = True
    user: User


class VehicleResponse(BaseModel):
    ok: bool = True
    vehicle: Vehicle


class VehicleListResponse(BaseModel):
    ok: bool = True
    vehicles: list[Vehicle]


class DocumentResponse(BaseModel):
    ok: bool = True
    document: Document


class DocumentListResponse(BaseModel):
    ok: bool = True
    documents: list[Document]


class DeviceResponse(BaseModel):
    ok: bool = True
    device: Device


class ReminderResponse(BaseModel):
    ok: bool = True
    reminder: Optional[Reminder]


class ReminderListResponse(BaseModel):
    ok: bool = True
    reminders: list[Reminder]


class DeleteResponse(BaseModel):
    ok: bool = True
    message: str
    deleted: int


class ErrorResponse(BaseModel):
    error: str
