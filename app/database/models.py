from sqlalchemy.orm import DeclarativeBase, relationship
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy import Column, Integer, String, Date, Text, Boolean, JSON, ForeignKey, DateTime, func


# Base class for all models
class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    google_id = Column(String(255), unique=True, index=True, nullable=True)
    email = Column(String(320), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    profile_picture = Column(Text, nullable=True)
    # Only set for local accounts
    password = Column(String(255), nullable=True)
    auth_provider = Column(String(20), default="google", nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    itineraries = relationship("Itinerary", back_populates="user", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        if self.name:
            return self.name
        return self.email.split("@")[0]


class Itinerary(Base):
    __tablename__ = "itineraries"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    date = Column(Date, nullable=False)
    # {"name", "address", "time"}
    start_location = Column(JSON, nullable=True)
    end_location = Column(JSON, nullable=True)

    is_shared = Column(Boolean, default=False, nullable=False)
    share_token = Column(String(64), unique=True, index=True, nullable=True)
    share_password = Column(String(255), nullable=True)
    shared_with = Column(JSON, default=list, nullable=False)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="itineraries")
    locations = relationship(
        "Location",
        back_populates="itinerary",
        order_by="Location.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )


class Location(Base):
    __tablename__ = "locations"
    id = Column(Integer, primary_key=True, index=True)
    itinerary_id = Column(Integer, ForeignKey("itineraries.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    set_name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=False)
    start_time = Column(String(20), nullable=True)
    end_time = Column(String(20), nullable=True)
    contact_name = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), default="pending", nullable=False)

    itinerary = relationship("Itinerary", back_populates="locations")
