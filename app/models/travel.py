from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import List, Optional


class TravelTimeRequest(BaseModel):
    origins: List[str] = []
    destinations: List[str] = []
    mode: Optional[str] = "driving"


class TextValue(BaseModel):
    text: str
    value: int


class MatrixElement(BaseModel):
    status: str
    distance: Optional[TextValue] = None
    duration: Optional[TextValue] = None


class MatrixRow(BaseModel):
    elements: List[MatrixElement]


class DistanceMatrix(BaseModel):
    status: str = "OK"
    origin_addresses: List[str] = []
    destination_addresses: List[str] = []
    rows: List[MatrixRow] = []


class TravelTimeResponse(BaseModel):
    success: bool = True
    data: DistanceMatrix


class Segment(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    from_name: str
    to_name: str
    duration: Optional[str] = None
    distance: Optional[str] = None
    duration_seconds: Optional[int] = None
    distance_meters: Optional[int] = None
    error: Optional[str] = None


class TravelTotal(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    duration: str
    distance: str
    duration_seconds: int
    distance_meters: int


class TravelReportResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    segments: List[Segment]
    total: Optional[TravelTotal] = None
