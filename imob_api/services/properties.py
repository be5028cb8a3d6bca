"""
Property listings: tenant CRUD plus the read-only public catalogue.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from imob_api.documents import DocumentStore, utc_now
from imob_api.errors import ConflictError, NotFoundError, ValidationError
from imob_api.services.activity_log import record_activity
from imob_api.services.common import (
    Pagination,
    clean_updates,
    get_tenant,
    get_tenant_record,
    parse_enum,
    to_record,
)
from shared.firebase_constants import (
    PROPERTIES_COLLECTION,
    tenant_collection,
    tenant_document,
)
from shared.string_utils import generate_slug, normalize_slug
from shared.types import (
    ActorType,
    Property,
    PropertyStatus,
    PropertyType,
    PropertyVisibility,
    TransactionType,
)

logger = logging.getLogger(__name__)

FEATURED_LIMIT = 6

EDITABLE_FIELDS = {
    "owner_id",
    "captador_id",
    "captador_name",
    "reference",
    "external_id",
    "title",
    "description",
    "slug",
    "property_type",
    "transaction_type",
    "status",
    "visibility",
    "sale_price",
    "rental_price",
    "street",
    "number",
    "neighborhood",
    "city",
    "state",
    "zip_code",
    "bedrooms",
    "bathrooms",
    "suites",
    "parking_spaces",
    "area_sqm",
    "total_area_sqm",
    "images",
    "cover_image_url",
    "featured",
    "import_batch_id",
}
PRICE_FIELDS = ("sale_price", "rental_price")
COUNT_FIELDS = ("bedrooms", "bathrooms", "suites", "parking_spaces")
AREA_FIELDS = ("area_sqm", "total_area_sqm")
ENUM_FIELDS = {
    "property_type": PropertyType,
    "transaction_type": TransactionType,
    "status": PropertyStatus,
    "visibility": PropertyVisibility,
}

TYPE_LABELS = {
    PropertyType.APARTMENT: "Apartamento",
    PropertyType.HOUSE: "Casa",
    PropertyType.LAND: "Terreno",
    PropertyType.COMMERCIAL: "Imóvel comercial",
    PropertyType.NEW_DEVELOPMENT: "Lançamento",
    PropertyType.CONDO_LOT: "Lote em condomínio",
    PropertyType.BUILDING_LOT: "Lote",
}
TRANSACTION_LABELS = {
    TransactionType.SALE: "à venda",
    TransactionType.RENT: "para alugar",
    TransactionType.BOTH: "à venda ou para alugar",
}


@dataclass
class PublicPropertyFilters:
    transaction_type: Optional[str] = None
    property_type: Optional[str] = None
    city: Optional[str] = None
    neighborhood: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    bedrooms: Optional[int] = None
    parking_spaces: Optional[int] = None
    min_area: Optional[float] = None
    max_area: Optional[float] = None

    def matches(self, prop: Property) -> bool:
        if self.min_price is not None and prop.price_amount < self.min_price:
            return False
        if self.max_price is not None and prop.price_amount > self.max_price:
            return False
        if self.bedrooms is not None and prop.bedrooms < self.bedrooms:
            return False
        if self.parking_spaces is not None and prop.parking_spaces < self.parking_spaces:
            return False
        if self.min_area is not None and prop.area_sqm < self.min_area:
            return False
        if self.max_area is not None and prop.area_sqm > self.max_area:
            return False
        return True


def _properties_path(tenant_id: str) -> str:
    return tenant_collection(tenant_id, PROPERTIES_COLLECTION)


def generate_title(data: dict) -> str:
    """'Apartamento à venda em Moema' from type, transaction and location."""
    property_type = PropertyType(data.get("property_type") or PropertyType.APARTMENT)
    transaction = TransactionType(data.get("transaction_type") or TransactionType.SALE)
    title = f"{TYPE_LABELS[property_type]} {TRANSACTION_LABELS[transaction]}"
    location = data.get("neighborhood") or data.get("city")
    if location:
        title = f"{title} em {location}"
    return title


def price_amount(data: dict) -> float:
    """Headline price: sale price unless the property is only for rent."""
    if data.get("transaction_type") == TransactionType.RENT:
        return float(data.get("rental_price") or 0)
    return float(data.get("sale_price") or data.get("rental_price") or 0)


def _normalize(data: dict) -> None:
    for key, enum_cls in ENUM_FIELDS.items():
        if data.get(key):
            data[key] = parse_enum(enum_cls, data[key], key).value
    for key in PRICE_FIELDS + AREA_FIELDS:
        if key in data:
            try:
                data[key] = float(data[key])
            except (TypeError, ValueError) as exc:
                raise ValidationError(f"{key} must be a number") from exc
            if data[key] < 0:
                raise ValidationError(f"{key} cannot be negative")
    for key in COUNT_FIELDS:
        if key in data:
            try:
                data[key] = int(data[key])
            except (TypeError, ValueError) as exc:
                raise ValidationError(f"{key} must be an integer") from exc
            if data[key] < 0:
                raise ValidationError(f"{key} cannot be negative")


def _unique_slug(
    store: DocumentStore, tenant_id: str, base: str, exclude_id: Optional[str] = None
) -> str:
    slug = base
    suffix = 2
    while True:
        taken = [
            doc
            for doc in store.query(_properties_path(tenant_id), [("slug", "==", slug)], limit=2)
            if doc.id != exclude_id
        ]
        if not taken:
            return slug
        slug = f"{base}-{suffix}"
        suffix += 1


def create_property(
    store: DocumentStore,
    tenant_id: str,
    data: dict,
    *,
    actor_id: str = "",
    actor_type: Optional[ActorType] = None,
) -> Property:
    get_tenant(store, tenant_id)
    data = clean_updates(data, EDITABLE_FIELDS)
    _normalize(data)
    data.setdefault("property_type", PropertyType.APARTMENT.value)
    data.setdefault("transaction_type", TransactionType.SALE.value)
    data.setdefault("status", PropertyStatus.AVAILABLE.value)
    data.setdefault("visibility", PropertyVisibility.PRIVATE.value)
    data["title"] = (data.get("title") or "").strip() or generate_title(data)

    if data.get("slug"):
        slug = normalize_slug(data["slug"])
        if _unique_slug(store, tenant_id, slug) != slug:
            raise ConflictError(f"slug '{slug}' is already in use")
    else:
        base = generate_slug(
            f"{data['title']} {data['reference']}" if data.get("reference") else data["title"]
        )
        slug = _unique_slug(store, tenant_id, base)
    data["slug"] = slug

    if data.get("images") and not data.get("cover_image_url"):
        data["cover_image_url"] = data["images"][0]

    now = utc_now()
    property_id = store.new_id()
    data.update(
        {
            # Collection-group lookups match on this field, not the document id.
            "property_id": property_id,
            "tenant_id": tenant_id,
            "price_amount": price_amount(data),
            "created_at": now,
            "updated_at": now,
        }
    )
    doc = store.create(_properties_path(tenant_id), data, doc_id=property_id)
    record_activity(
        store,
        tenant_id,
        "property_created",
        actor_type=actor_type or (ActorType.USER if actor_id else ActorType.SYSTEM),
        actor_id=actor_id,
        metadata={"property_id": doc.id, "reference": data.get("reference", "")},
    )
    return to_record(Property, doc)


def get_property(store: DocumentStore, tenant_id: str, property_id: str) -> Property:
    return get_tenant_record(
        store, Property, tenant_id, PROPERTIES_COLLECTION, property_id, "property not found"
    )


def update_property(
    store: DocumentStore,
    tenant_id: str,
    property_id: str,
    updates: dict,
    *,
    actor_id: str = "",
    actor_type: Optional[ActorType] = None,
) -> Property:
    current = get_property(store, tenant_id, property_id)
    updates = clean_updates(updates, EDITABLE_FIELDS)
    _normalize(updates)
    if "slug" in updates:
        slug = normalize_slug(updates["slug"])
        if not slug:
            raise ValidationError("slug cannot be empty")
        if _unique_slug(store, tenant_id, slug, exclude_id=property_id) != slug:
            raise ConflictError(f"slug '{slug}' is already in use")
        updates["slug"] = slug
    if "title" in updates and not updates["title"].strip():
        raise ValidationError("title cannot be empty")

    if any(key in updates for key in PRICE_FIELDS + ("transaction_type",)):
        merged = {
            "transaction_type": current.transaction_type,
            "sale_price": current.sale_price,
            "rental_price": current.rental_price,
        }
        merged.update(updates)
        updates["price_amount"] = price_amount(merged)
    updates["updated_at"] = utc_now()

    store.update(tenant_document(tenant_id, PROPERTIES_COLLECTION, property_id), updates)
    metadata = {"property_id": property_id, "fields": sorted(k for k in updates if k != "updated_at")}
    if "status" in updates and updates["status"] != current.status:
        metadata.update({"from_status": str(current.status), "to_status": updates["status"]})
    record_activity(
        store,
        tenant_id,
        "property_updated",
        actor_type=actor_type or (ActorType.USER if actor_id else ActorType.SYSTEM),
        actor_id=actor_id,
        metadata=metadata,
    )
    return get_property(store, tenant_id, property_id)


def delete_property(
    store: DocumentStore, tenant_id: str, property_id: str, *, actor_id: str = ""
) -> None:
    get_property(store, tenant_id, property_id)
    store.delete(tenant_document(tenant_id, PROPERTIES_COLLECTION, property_id))
    record_activity(
        store,
        tenant_id,
        "property_deleted",
        actor_type=ActorType.USER if actor_id else ActorType.SYSTEM,
        actor_id=actor_id,
        metadata={"property_id": property_id},
    )


def list_properties(
    store: DocumentStore,
    tenant_id: str,
    *,
    filters: Optional[dict] = None,
    page: Optional[Pagination] = None,
) -> list[Property]:
    page = page or Pagination()
    query_filters = []
    for key, value in (filters or {}).items():
        if value is None or value == "":
            continue
        if key in ENUM_FIELDS:
            value = parse_enum(ENUM_FIELDS[key], value, key).value
        elif key not in {"city", "neighborhood", "featured", "reference", "captador_id", "owner_id"}:
            raise ValidationError(f"unsupported filter: {key}")
        query_filters.append((key, "==", value))
    docs = store.query(
        _properties_path(tenant_id),
        query_filters,
        order_by=page.order_by,
        descending=page.descending,
        limit=page.limit,
        offset=page.offset,
    )
    return [to_record(Property, doc) for doc in docs]


def get_property_by_reference(
    store: DocumentStore, tenant_id: str, reference: str
) -> Optional[Property]:
    if not reference:
        return None
    docs = store.query(_properties_path(tenant_id), [("reference", "==", reference)], limit=1)
    return to_record(Property, docs[0]) if docs else None


# Public catalogue


def _public_filters(extra: Optional[dict] = None) -> list:
    filters = [
        ("visibility", "==", PropertyVisibility.PUBLIC.value),
        ("status", "==", PropertyStatus.AVAILABLE.value),
    ]
    for key, value in (extra or {}).items():
        if value:
            filters.append((key, "==", value))
    return filters


def is_public(prop: Property) -> bool:
    return prop.visibility == PropertyVisibility.PUBLIC and prop.status == PropertyStatus.AVAILABLE


def _with_tenant(doc) -> Property:
    prop = to_record(Property, doc)
    if not prop.tenant_id:
        prop.tenant_id = doc.tenant_id
    return prop


def list_public_properties(
    store: DocumentStore,
    criteria: Optional[PublicPropertyFilters] = None,
    *,
    tenant_id: Optional[str] = None,
    captador_id: Optional[str] = None,
    page: Optional[Pagination] = None,
) -> list[Property]:
    """
    Available public properties across all tenants, or one tenant when given.

    Equality filters go to the store; price, room and area ranges are applied
    here since Firestore allows range filters on a single field only.
    """
    criteria = criteria or PublicPropertyFilters()
    page = page or Pagination()
    equality = {
        "transaction_type": criteria.transaction_type
        and parse_enum(TransactionType, criteria.transaction_type, "transaction_type").value,
        "property_type": criteria.property_type
        and parse_enum(PropertyType, criteria.property_type, "property_type").value,
        "city": criteria.city,
        "neighborhood": criteria.neighborhood,
        "captador_id": captador_id,
    }
    if tenant_id:
        docs = store.query(_properties_path(tenant_id), _public_filters(equality))
    else:
        docs = store.collection_group(PROPERTIES_COLLECTION, _public_filters(equality))

    results = [prop for prop in (_with_tenant(doc) for doc in docs) if criteria.matches(prop)]
    results.sort(key=lambda prop: (prop.created_at is not None, prop.created_at), reverse=True)
    return results[page.offset : page.offset + page.limit]


def list_featured_properties(store: DocumentStore, limit: int = FEATURED_LIMIT) -> list[Property]:
    docs = store.collection_group(
        PROPERTIES_COLLECTION, _public_filters({"featured": True}), limit=limit
    )
    return [_with_tenant(doc) for doc in docs]


def find_property_any_tenant(store: DocumentStore, property_id: str) -> Property:
    """Resolves a property by id without knowing its tenant."""
    docs = store.collection_group(
        PROPERTIES_COLLECTION, [("property_id", "==", property_id)], limit=1
    )
    if not docs:
        raise NotFoundError("property not found")
    return _with_tenant(docs[0])


def get_public_property(store: DocumentStore, property_id: str) -> Property:
    try:
        prop = find_property_any_tenant(store, property_id)
    except NotFoundError:
        raise NotFoundError("Public property not found") from None
    if not is_public(prop):
        raise NotFoundError("Public property not found")
    return prop
