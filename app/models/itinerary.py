from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional
from datetime import date as date_type, datetime

LocationStatus = Literal["pending", "completed", "skipped"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class EndpointLocation(CamelModel):
    """Start or end point of a day; only locations with an address take part in travel times."""
    name: Optional[str] = None
    address: Optional[str] = None
    time: Optional[str] = None


class LocationBase(CamelModel):
    set_name: str
    address: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    notes: Optional[str] = None
    status: LocationStatus = "pending"

    @field_validator('status', mode='before')
    def default_status(cls, v):
        return v or "pending"


class LocationCreate(LocationBase):

    @field_validator('set_name', 'address')
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError('Set name and address cannot be empty')
        return v.strip()


class Location(LocationBase):
    id: int


class ItineraryCreate(CamelModel):
    title: str
    date: date_type
    locations: List[LocationCreate] = []
    start_location: Optional[EndpointLocation] = None
    end_location: Optional[EndpointLocation] = None

    @field_validator('title')
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError('Title cannot be empty')
        return v.strip()


class ItineraryUpdate(CamelModel):
    title: Optional[str] = None
    date: Optional[date_type] = None
    locations: Optional[List[LocationCreate]] = None
    start_location: Optional[EndpointLocation] = None
    end_location: Optional[EndpointLocation] = None

    @field_validator('title')
    def validate_title(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Title cannot be empty')
        return v.strip() if v else v


class LocationStatusUpdate(CamelModel):
    status: LocationStatus


class LocationReorder(CamelModel):
    order: List[int]


# Owner view; share_password is never part of it
class Itinerary(CamelModel):
    id: int
    user_id: int
    title: str
    date: date_type
    locations: List[Location] = []
    start_location: Optional[EndpointLocation] = None
    end_location: Optional[EndpointLocation] = None
    is_shared: bool = False
    share_token: Optional[str] = None
    shared_with: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('shared_with', mode='before')
    def default_shared_with(cls, v):
        return v or []


class ItineraryEnvelope(CamelModel):
    success: bool = True
    itinerary: Itinerary


class ItineraryListEnvelope(CamelModel):
    success: bool = True
    itineraries: List[Itinerary] = []
