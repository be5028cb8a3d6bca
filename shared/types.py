# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================


from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, StrEnum
from typing import List, Optional, Type, TypeVar

from dacite import Config, from_dict


class PropertyType(StrEnum):
    APARTMENT = "apartment"
    HOUSE = "house"
    LAND = "land"
    COMMERCIAL = "commercial"
    NEW_DEVELOPMENT = "new_development"
    CONDO_LOT = "condo_lot"
    BUILDING_LOT = "building_lot"


class PropertyStatus(StrEnum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    PENDING_CONFIRMATION = "pending_confirmation"


class PropertyVisibility(StrEnum):
    PRIVATE = "private"  # originating broker only
    NETWORK = "network"  # whole tenant
    MARKETPLACE = "marketplace"  # every broker on the platform
    PUBLIC = "public"  # public site
    # Deprecated, still present on old documents.
    HIDDEN_STALE = "hidden_stale"
    HIDDEN_UNAVAILABLE = "hidden_unavailable"


class TransactionType(StrEnum):
    SALE = "sale"
    RENT = "rent"
    BOTH = "both"


class LeadChannel(StrEnum):
    WHATSAPP = "whatsapp"
    FORM = "form"
    PHONE = "phone"
    EMAIL = "email"
    CHAT = "chat"
    REFERRAL = "referral"


class LeadStatus(StrEnum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    NEGOTIATING = "negotiating"
    CONVERTED = "converted"
    LOST = "lost"


class ActorType(StrEnum):
    USER = "user"
    SYSTEM = "system"
    OWNER = "owner"


class UserRole(StrEnum):
    ADMIN = "admin"
    MANAGER = "manager"
    BROKER = "broker"
    BROKER_ADMIN = "broker_admin"


class InvitationStatus(StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class BusinessType(StrEnum):
    IMOBILIARIA = "imobiliaria"
    INCORPORADORA = "incorporadora"
    LOTEADORA = "loteadora"
    CONSTRUTORA = "construtora"
    CORRETOR_AUTONOMO = "corretor_autonomo"


class TenantType(StrEnum):
    PF = "pf"  # pessoa fisica, independent broker
    PJ = "pj"  # pessoa juridica, company


class DocumentType(StrEnum):
    CPF = "cpf"
    CNPJ = "cnpj"


class OwnerStatus(StrEnum):
    INCOMPLETE = "incomplete"
    PARTIAL = "partial"
    VERIFIED = "verified"


class BrokerPropertyRole(StrEnum):
    ORIGINATING = "originating_broker"
    LISTING = "listing_broker"
    CO_BROKER = "co_broker"


class ConfirmationAction(StrEnum):
    CONFIRM_AVAILABLE = "confirm_available"
    CONFIRM_UNAVAILABLE = "confirm_unavailable"
    CONFIRM_PRICE = "confirm_price"


class AnonymizationReason(StrEnum):
    RETENTION_POLICY = "retention_policy"
    USER_REQUEST = "user_request"


class ImportBatchStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ImportSource(StrEnum):
    UNION = "union"
    OTHER = "other"


BROKER_ROLES = (UserRole.BROKER, UserRole.BROKER_ADMIN)
FULL_ACCESS_ROLES = (UserRole.ADMIN, UserRole.BROKER_ADMIN)

ADMIN_PERMISSIONS = [
    "properties.view_all",
    "properties.create",
    "properties.edit_all",
    "properties.delete",
    "brokers.view",
    "brokers.create",
    "brokers.edit",
    "users.view",
    "users.create",
    "users.edit",
    "settings.view",
    "settings.edit",
]

MANAGER_PERMISSIONS = [
    "properties.view_all",
    "properties.edit_all",
    "brokers.view",
    "users.view",
    "leads.view_all",
    "leads.edit_all",
]

BROKER_PERMISSIONS = [
    "properties.create",
    "leads.view_own",
]


def default_permissions(role: str) -> List[str]:
    """Returns the permission list a freshly created user of `role` receives."""
    if role in FULL_ACCESS_ROLES:
        return list(ADMIN_PERMISSIONS)
    if role == UserRole.MANAGER:
        return list(MANAGER_PERMISSIONS)
    return list(BROKER_PERMISSIONS)


@dataclass
class Tenant:
    """A customer organization. Every other record lives under one tenant."""

    id: str
    name: str = ""
    slug: str = ""
    email: str = ""
    phone: str = ""
    document: str = ""
    document_type: str = ""
    business_type: str = ""
    tenant_type: str = ""
    creci: str = ""
    street: str = ""
    number: str = ""
    complement: str = ""
    neighborhood: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = "BR"
    settings: dict = field(default_factory=dict)
    is_active: bool = True
    is_platform_admin: bool = False
    subscription_plan: str = "full"
    subscription_status: str = "active"
    subscription_started_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class User:
    """A person who logs into the admin app. Brokers are users with a CRECI."""

    id: str
    tenant_id: str = ""
    firebase_uid: str = ""
    name: str = ""
    email: str = ""
    phone: str = ""
    document: str = ""
    document_type: str = ""
    creci: str = ""
    role: UserRole = UserRole.BROKER
    is_active: bool = True
    permissions: List[str] = field(default_factory=list)
    photo_url: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def has_permission(self, permission: str) -> bool:
        if self.role in FULL_ACCESS_ROLES:
            return True
        return permission in self.permissions


@dataclass
class Broker(User):
    """Broker profile with the public-facing fields shown on the listing site."""

    bio: str = ""
    specialties: List[str] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)
    experience: int = 0
    company: str = ""
    website: str = ""
    social_media: dict = field(default_factory=dict)
    total_sales: int = 0
    total_listings: int = 0
    average_price: float = 0.0
    rating: float = 0.0
    review_count: int = 0
    last_sale_date: Optional[datetime] = None
    service_areas: List[str] = field(default_factory=list)
    certifications_awards: List[str] = field(default_factory=list)


@dataclass
class Lead:
    id: str
    tenant_id: str = ""
    property_id: str = ""
    name: str = ""
    email: str = ""
    phone: str = ""
    message: str = ""
    channel: LeadChannel = LeadChannel.FORM
    status: LeadStatus = LeadStatus.NEW
    utm_source: str = ""
    utm_campaign: str = ""
    utm_medium: str = ""
    referrer: str = ""
    # LGPD
    consent_given: bool = False
    consent_text: str = ""
    consent_date: Optional[datetime] = None
    consent_ip: str = ""
    consent_revoked: bool = False
    revoked_at: Optional[datetime] = None
    is_anonymized: bool = False
    anonymized_at: Optional[datetime] = None
    anonymization_reason: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Owner:
    id: str
    tenant_id: str = ""
    name: str = ""
    email: str = ""
    phone: str = ""
    document: str = ""
    document_type: str = ""
    owner_status: OwnerStatus = OwnerStatus.INCOMPLETE
    consent_given: bool = False
    consent_text: str = ""
    consent_date: Optional[datetime] = None
    consent_origin: str = ""
    consent_revoked: bool = False
    revoked_at: Optional[datetime] = None
    is_anonymized: bool = False
    anonymized_at: Optional[datetime] = None
    anonymization_reason: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Property:
    id: str
    tenant_id: str = ""
    owner_id: str = ""
    captador_id: str = ""
    captador_name: str = ""
    reference: str = ""
    external_id: str = ""
    title: str = ""
    description: str = ""
    slug: str = ""
    property_type: PropertyType = PropertyType.APARTMENT
    transaction_type: TransactionType = TransactionType.SALE
    status: PropertyStatus = PropertyStatus.AVAILABLE
    visibility: PropertyVisibility = PropertyVisibility.PRIVATE
    sale_price: float = 0.0
    rental_price: float = 0.0
    price_amount: float = 0.0
    street: str = ""
    number: str = ""
    neighborhood: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    bedrooms: int = 0
    bathrooms: int = 0
    suites: int = 0
    parking_spaces: int = 0
    area_sqm: float = 0.0
    total_area_sqm: float = 0.0
    images: List[str] = field(default_factory=list)
    cover_image_url: str = ""
    featured: bool = False
    import_batch_id: str = ""
    last_confirmed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class UserInvitation:
    id: str
    tenant_id: str = ""
    email: str = ""
    name: str = ""
    phone: str = ""
    role: UserRole = UserRole.BROKER
    permissions: List[str] = field(default_factory=list)
    creci: str = ""
    token: str = ""
    status: InvitationStatus = InvitationStatus.PENDING
    invited_by: str = ""
    expires_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    user_id: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class ActivityLog:
    id: str
    tenant_id: str = ""
    event_id: str = ""
    event_hash: str = ""
    request_id: str = ""
    event_type: str = ""
    actor_type: ActorType = ActorType.SYSTEM
    actor_id: str = ""
    metadata: dict = field(default_factory=dict)
    timestamp: Optional[datetime] = None


@dataclass
class PropertyBrokerRoleRecord:
    id: str
    tenant_id: str = ""
    property_id: str = ""
    broker_id: str = ""
    role: BrokerPropertyRole = BrokerPropertyRole.LISTING
    commission_percentage: float = 0.0
    is_primary: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class OwnerSnapshot:
    """Masked owner contact data shown on the public confirmation page."""

    name: str = ""
    phone: str = ""
    email: str = ""


@dataclass
class OwnerConfirmationToken:
    id: str
    tenant_id: str = ""
    property_id: str = ""
    owner_id: Optional[str] = None
    token_hash: str = ""
    expires_at: Optional[datetime] = None
    created_by_actor_id: str = ""
    created_by_actor_type: ActorType = ActorType.USER
    used_at: Optional[datetime] = None
    last_action: str = ""
    delivery_hint: str = ""
    owner_snapshot: Optional[OwnerSnapshot] = None
    created_at: Optional[datetime] = None


RecordT = TypeVar("RecordT")

_DACITE_CONFIG = Config(check_types=False, cast=[Enum])


def record_from_document(cls: Type[RecordT], doc_id: str, data: dict) -> RecordT:
    """Builds a record dataclass from a stored document, ignoring unknown keys."""
    payload = {key: value for key, value in (data or {}).items() if value is not None}
    payload["id"] = doc_id
    return from_dict(data_class=cls, data=payload, config=_DACITE_CONFIG)
