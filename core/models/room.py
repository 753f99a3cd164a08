"""Room domain models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from core.models.common import Amount, OptionalAmount, PageRequest


class RoomType(str, Enum):
    """Kind of rentable unit."""

    SINGLE = "single"
    DOUBLE = "double"
    TRIPLE = "triple"
    SUITE = "suite"
    STUDIO = "studio"
    APARTMENT = "apartment"


class RoomStatus(str, Enum):
    """Occupancy status of a room."""

    VACANT = "vacant"
    RENTED = "rented"
    MAINTENANCE = "maintenance"
    RESERVED = "reserved"


class RoomCreate(BaseModel):
    """Data required to create a room."""

    room_number: str = Field(..., min_length=1, max_length=20)
    type: RoomType = RoomType.SINGLE
    monthly_rent: Amount = Decimal(0)
    status: RoomStatus = RoomStatus.VACANT
    floor: int = Field(0, ge=0, le=100)
    area: OptionalAmount = None
    description: str | None = Field(None, max_length=1000)
    has_air_conditioning: bool = False
    has_private_bathroom: bool = False
    is_furnished: bool = False


class RoomUpdate(BaseModel):
    """Data that can be updated on a room. All fields optional."""

    room_number: str | None = Field(None, min_length=1, max_length=20)
    type: RoomType | None = None
    monthly_rent: OptionalAmount = None
    status: RoomStatus | None = None
    floor: int | None = Field(None, ge=0, le=100)
    area: OptionalAmount = None
    description: str | None = Field(None, max_length=1000)
    has_air_conditioning: bool | None = None
    has_private_bathroom: bool | None = None
    is_furnished: bool | None = None


class RoomSearch(PageRequest):
    """Filters for room search. Every filter is optional."""

    search: str | None = None
    type: RoomType | None = None
    status: RoomStatus | None = None
    floor: int | None = Field(None, ge=0, le=100)
    min_rent: OptionalAmount = None
    max_rent: OptionalAmount = None
    has_air_conditioning: bool | None = None
    has_private_bathroom: bool | None = None
    is_furnished: bool | None = None


class Room(BaseModel):
    """Full room entity as stored."""

    id: UUID
    room_number: str
    type: RoomType
    monthly_rent: Decimal
    status: RoomStatus
    floor: int
    area: Decimal | None
    description: str | None
    has_air_conditioning: bool
    has_private_bathroom: bool
    is_furnished: bool
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}

    @property
    def is_available(self) -> bool:
        """Whether the room can take a new tenant."""
        return self.status == RoomStatus.VACANT


class RoomOccupancy(BaseModel):
    """Occupancy snapshot across all rooms."""

    total_rooms: int
    vacant_rooms: int
    rented_rooms: int
    maintenance_rooms: int
    reserved_rooms: int
    occupancy_rate: Decimal
    monthly_rent_potential: Decimal
