"""
Pydantic schemas for request bodies and the fixed-shape responses.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class TenantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    slug: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    document: Optional[str] = None
    document_type: Optional[Literal["cpf", "cnpj"]] = None
    business_type: Optional[str] = None
    tenant_type: Optional[Literal["pf", "pj"]] = None
    creci: Optional[str] = None
    street: Optional[str] = None
    number: Optional[str] = None
    complement: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    settings: Optional[dict] = None


class TenantUpdate(TenantCreate):
    name: Optional[str] = None


class SignupRequest(BaseModel):
    email: str
    password: str
    name: str
    phone: str
    tenant_name: str
    tenant_type: str
    document: str
    business_type: Optional[str] = None
    tenant_creci: Optional[str] = None
    is_user_broker: bool = False
    user_creci: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    firebase_token: str
    tenant_id: str
    is_platform_admin: bool
    broker: dict


class RefreshResponse(BaseModel):
    firebase_token: str
    tenant_id: str
    broker_id: str


class UserCreate(BaseModel):
    name: str
    email: str
    phone: Optional[str] = None
    document: Optional[str] = None
    document_type: Optional[str] = None
    creci: Optional[str] = None
    role: Optional[str] = None
    permissions: Optional[list[str]] = None
    photo_url: Optional[str] = None


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    document: Optional[str] = None
    document_type: Optional[str] = None
    creci: Optional[str] = None
    role: Optional[str] = None
    permissions: Optional[list[str]] = None
    photo_url: Optional[str] = None


class BrokerProfileFields(BaseModel):
    bio: Optional[str] = None
    specialties: Optional[list[str]] = None
    languages: Optional[list[str]] = None
    experience: Optional[int] = None
    company: Optional[str] = None
    website: Optional[str] = None
    social_media: Optional[dict] = None
    service_areas: Optional[list[str]] = None
    certifications_awards: Optional[list[str]] = None


class BrokerCreate(UserCreate, BrokerProfileFields):
    creci: str
    tenant_id: Optional[str] = None


class BrokerUpdate(UserUpdate, BrokerProfileFields):
    pass


class PermissionChange(BaseModel):
    permission: str


class InvitationCreate(BaseModel):
    email: str
    name: str
    phone: Optional[str] = None
    role: str = "broker"
    creci: Optional[str] = None
    permissions: Optional[list[str]] = None


class InvitationAccept(BaseModel):
    password: str


class LeadCreate(BaseModel):
    property_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    message: Optional[str] = None
    channel: Optional[str] = None
    utm_source: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_medium: Optional[str] = None
    referrer: Optional[str] = None
    consent_given: bool = False
    consent_text: Optional[str] = None


class LeadUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    message: Optional[str] = None
    status: Optional[str] = None


class AnonymizeRequest(BaseModel):
    reason: str


class PublicFormLead(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    message: Optional[str] = None
    utm_source: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_medium: Optional[str] = None
    referrer: Optional[str] = None
    consent_given: bool = False
    consent_text: Optional[str] = None


class PublicWhatsAppLead(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    message: Optional[str] = None
    utm_source: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_medium: Optional[str] = None
    referrer: Optional[str] = None


class OwnerPayload(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    document: Optional[str] = None
    document_type: Optional[str] = None
    consent_given: Optional[bool] = None
    consent_text: Optional[str] = None
    consent_origin: Optional[str] = None


class PropertyPayload(BaseModel):
    owner_id: Optional[str] = None
    captador_id: Optional[str] = None
    captador_name: Optional[str] = None
    reference: Optional[str] = None
    external_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    slug: Optional[str] = None
    property_type: Optional[str] = None
    transaction_type: Optional[str] = None
    status: Optional[str] = None
    visibility: Optional[str] = None
    sale_price: Optional[float] = None
    rental_price: Optional[float] = None
    street: Optional[str] = None
    number: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    suites: Optional[int] = None
    parking_spaces: Optional[int] = None
    area_sqm: Optional[float] = None
    total_area_sqm: Optional[float] = None
    images: Optional[list[str]] = None
    cover_image_url: Optional[str] = None
    featured: Optional[bool] = None


class BrokerRoleAssign(BaseModel):
    broker_id: str
    role: str
    commission_percentage: float = 0.0
    is_primary: bool = False


class BrokerRoleUpdate(BaseModel):
    role: Optional[str] = None
    commission_percentage: Optional[float] = None


class ConfirmationLinkRequest(BaseModel):
    delivery_hint: Optional[str] = None
    send_email: bool = True


class ConfirmationSubmit(BaseModel):
    action: str
    price_amount: Optional[float] = None


class ImportBatchResponse(BaseModel):
    success: bool = True
    batch_id: str
    status: str


class ImportErrorItem(BaseModel):
    error_type: str
    error_message: str
    record_reference: Optional[str] = None
    row_number: Optional[int] = None


class ImportErrorsResponse(BaseModel):
    errors: list[ImportErrorItem]
    count: int
