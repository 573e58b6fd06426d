"""Routing value types shared by the engine, the repositories and the job."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class RoutingBranchKey(str, Enum):
    """Branches a quote request can be routed to."""
    AVELLANEDA = "avellaneda"
    LANUS = "lanus"
    DOCK_SUD = "dock_sud"
    LEJANOS = "lejanos"


class RoutingStatus(str, Enum):
    """Why a resolution ended up with its branch and distance."""
    RESOLVED = "resolved"
    FALLBACK_INVALID_CP = "fallback_invalid_cp"
    FALLBACK_GEOCODE_FAILED = "fallback_geocode_failed"


DEFAULT_BRANCH = RoutingBranchKey.LEJANOS


class RoutingResolution(BaseModel):
    """Complete routing decision for one quote request."""

    model_config = ConfigDict(frozen=True)

    routing_branch: RoutingBranchKey = Field(..., description="Final branch, never null")
    routing_distance_km: Optional[float] = Field(
        None, description="Distance to the nearest branch, rounded to 2 decimals"
    )
    routing_postal_code_normalized: Optional[str] = Field(
        None, description="4-digit postal code used for the lookup"
    )
    routing_latitude: Optional[float] = Field(None, description="Latitude used")
    routing_longitude: Optional[float] = Field(None, description="Longitude used")
    routing_provider: Optional[str] = Field(None, description="Geocoding provider used")
    routing_status: RoutingStatus = Field(..., description="Resolution outcome")
    redirect_url: str = Field(..., description="Contact target for the final branch")

    def persisted_fields(self) -> dict:
        """Columns stored on the owning lead record."""
        return self.model_dump(exclude={"redirect_url"})


# Step results. Each internal step returns one of a found/missed pair instead
# of raising, so the orchestrator can branch on the type.

@dataclass(frozen=True)
class GeocodedLocation:
    """Coordinates resolved for a postal code."""
    latitude: float
    longitude: float
    provider: str
    formatted_address: Optional[str] = None


class GeocodeFailure(str, Enum):
    DISABLED = "disabled"
    HTTP_ERROR = "http_error"
    TIMEOUT = "timeout"
    INVALID_PAYLOAD = "invalid_payload"
    NO_RESULT = "no_result"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class GeocodeFound:
    location: GeocodedLocation


@dataclass(frozen=True)
class GeocodeMissed:
    reason: GeocodeFailure


GeocodeResult = Union[GeocodeFound, GeocodeMissed]


@dataclass(frozen=True)
class NearestBranch:
    """Closest active branch and its great-circle distance."""
    branch: RoutingBranchKey
    distance_km: float


class BranchLookupFailure(str, Enum):
    CAPABILITY_UNAVAILABLE = "capability_unavailable"
    NO_ACTIVE_BRANCHES = "no_active_branches"
    INVALID_ROW = "invalid_row"
    QUERY_FAILED = "query_failed"


@dataclass(frozen=True)
class BranchFound:
    nearest: NearestBranch


@dataclass(frozen=True)
class BranchMissed:
    reason: BranchLookupFailure


BranchLookupResult = Union[BranchFound, BranchMissed]
