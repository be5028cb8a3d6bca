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


# Top-level collection. Everything else is a subcollection of a tenant.
TENANTS_COLLECTION = "tenants"

USERS_COLLECTION = "users"
BROKERS_COLLECTION = "brokers"
PROPERTIES_COLLECTION = "properties"
LEADS_COLLECTION = "leads"
OWNERS_COLLECTION = "owners"
USER_INVITATIONS_COLLECTION = "user_invitations"
ACTIVITY_LOGS_COLLECTION = "activity_logs"
PROPERTY_BROKER_ROLES_COLLECTION = "property_broker_roles"
OWNER_CONFIRMATION_TOKENS_COLLECTION = "owner_confirmation_tokens"

# Platform administrators belong to this tenant.
TENANT_MASTER_ID = "tenant_master"


def tenant_path(tenant_id: str) -> str:
    return f"{TENANTS_COLLECTION}/{tenant_id}"


def tenant_collection(tenant_id: str, collection: str) -> str:
    return f"{TENANTS_COLLECTION}/{tenant_id}/{collection}"


def tenant_document(tenant_id: str, collection: str, doc_id: str) -> str:
    return f"{TENANTS_COLLECTION}/{tenant_id}/{collection}/{doc_id}"


def tenant_id_from_path(path: str) -> str:
    """'tenants/abc/users/u1' -> 'abc'"""
    parts = path.split("/")
    if len(parts) >= 2 and parts[0] == TENANTS_COLLECTION:
        return parts[1]
    return ""
