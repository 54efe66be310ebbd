from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import date

from app.models.itinerary import EndpointLocation, LocationStatus


class ShareRequest(BaseModel):
    emails: List[str] = []
    password: str = ""
    message: Optional[str] = None


class ShareResponse(BaseModel):
    success: bool = True
    shareLink: str
    sharedWith: List[str]


class SharedAccessRequest(BaseModel):
    password: Optional[str] = None


class _PublicModel(BaseModel):
    # Unknown attributes are dropped, never passed through
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True, extra="ignore")


class PublicLocation(_PublicModel):
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


class PublicOwner(_PublicModel):
    name: str
    email: str


class PublicItinerary(_PublicModel):
    """Read-only view handed to share recipients."""
    title: str
    date: date
    start_location: Optional[EndpointLocation] = None
    end_location: Optional[EndpointLocation] = None
    locations: List[PublicLocation] = []
    owner: PublicOwner


class SharedAccessResponse(BaseModel):
    success: bool = True
    itinerary: PublicItinerary


class GeneratedPassword(BaseModel):
    password: str
    strength: str
