"""Pydantic schemas for stored records and API responses.

This module defines the Item and DownloadCard records kept in the Metadata
Store, the result object returned by the issuance coordinator, and the health
check payload.

Schema Hierarchy
=================
::
    Item (stored, keyed by code)
    ├─ code: str
    ├─ name: str (display name)
    ├─ store: Datastore
    └─ locator: str (object path inside the store)

    DownloadCard (stored, keyed by key)
    ├─ key: str (uppercase alphanumeric, 0-8 chars)
    ├─ item_code: str        -> "itemCode"
    ├─ count_now: int >= 0   -> "countNow"
    ├─ count_max: int >= 0   -> "countMax"
    ├─ started_at: datetime | None  -> "startedAt"
    └─ expired_at: datetime | None  -> "expiredAt"

    RedemptionResult (output of IssuanceCoordinator.redeem)
    ├─ outcome: RedemptionOutcome
    ├─ url: str | None
    └─ item_name: str | None

    HealthResponse (output)
    ├─ status: HealthStatus
    └─ store: HealthStatus

Key Behaviours
===============
- Stored JSON uses camelCase field names; snake_case is accepted on input.
- Counters are validated as non-negative; the relation between them is
  enforced by the coordinator, not at load time.
- The validity window fields are carried through untouched.
"""

import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from dlcard.enums import Datastore, HealthStatus, RedemptionOutcome

__all__ = [
    "Item",
    "DownloadCard",
    "RedemptionResult",
    "HealthResponse",
]


class Item(BaseModel):
    code: str
    name: str
    store: Datastore = Datastore.STATIC
    locator: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class DownloadCard(BaseModel):
    key: str
    item_code: str
    count_now: int = Field(0, ge=0)
    count_max: int = Field(..., ge=0)
    started_at: datetime.datetime | None = None
    expired_at: datetime.datetime | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RedemptionResult(BaseModel):
    outcome: RedemptionOutcome
    url: str | None = None
    item_name: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is RedemptionOutcome.SUCCESS


class HealthResponse(BaseModel):
    status: HealthStatus
    store: HealthStatus
