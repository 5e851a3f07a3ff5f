from typing import Optional, List
import datetime as dt
from enum import Enum
from pydantic import field_validator
from sqlmodel import SQLModel, Field, Relationship, Column, JSON

from apps.core.utils import utcnow

class PartCategory(str, Enum):
    ENGINE = "engine"
    EXHAUST = "exhaust"
    SUSPENSION = "suspension"
    WHEELS = "wheels"
    TIRES = "tires"
    BRAKES = "brakes"
    INTERIOR = "interior"
    EXTERIOR = "exterior"
    ELECTRONICS = "electronics"
    AUDIO = "audio"
    PERFORMANCE = "performance"
    MAINTENANCE = "maintenance"
    OTHER = "other"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def estimated_install_cost(self) -> float:
        return ESTIMATED_INSTALL_COSTS.get(self, DEFAULT_INSTALL_COST)

# What a shop would typically charge to fit a part of each category
ESTIMATED_INSTALL_COSTS = {
    PartCategory.ENGINE: 800,
    PartCategory.EXHAUST: 300,
    PartCategory.SUSPENSION: 600,
    PartCategory.WHEELS: 200,
    PartCategory.TIRES: 150,
    PartCategory.BRAKES: 400,
    PartCategory.INTERIOR: 250,
    PartCategory.EXTERIOR: 350,
    PartCategory.ELECTRONICS: 200,
    PartCategory.AUDIO: 300,
    PartCategory.PERFORMANCE: 500,
    PartCategory.MAINTENANCE: 200,
    PartCategory.OTHER: 150,
}
DEFAULT_INSTALL_COST = 150

class Vehicle(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)

    name: str
    make: str
    model: str
    year: int
    color: str
    mileage: int = 0
    vin: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None # Public URL in the vehicle-images bucket

    total_spent: float = 0 # Sum of the vehicle's part totals

    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)

    parts: List["Part"] = Relationship(back_populates="vehicle")

class Part(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    vehicle_id: int = Field(foreign_key="vehicle.id", index=True)

    name: str
    category: PartCategory = Field(index=True)
    brand: Optional[str] = None
    part_number: Optional[str] = None

    cost: float
    installation_cost: Optional[float] = None
    total_cost: float # cost + installation_cost

    mileage: int = 0 # Odometer at install
    date: dt.date
    description: Optional[str] = None
    warranty: Optional[str] = None
    notes: Optional[str] = None

    images: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    links: List[str] = Field(default_factory=list, sa_column=Column(JSON))

    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)

    vehicle: Optional[Vehicle] = Relationship(back_populates="parts")

# --- Form schemas (not tables) ---

def _blank_to_none(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value

class VehicleForm(SQLModel):
    name: str = Field(min_length=1)
    make: str = Field(min_length=1)
    model: str = Field(min_length=1)
    year: int = Field(ge=1886, le=2100)
    color: str = ""
    mileage: int = Field(default=0, ge=0)
    vin: Optional[str] = None
    description: Optional[str] = None

    @field_validator("vin", "description", mode="before")
    @classmethod
    def optional_text(cls, value):
        return _blank_to_none(value)

class PartForm(SQLModel):
    vehicle_id: int
    name: str = Field(min_length=1)
    category: PartCategory
    brand: Optional[str] = None
    part_number: Optional[str] = None
    cost: float = Field(ge=0)
    installation_cost: Optional[float] = Field(default=None, ge=0)
    mileage: int = Field(default=0, ge=0)
    date: dt.date
    description: Optional[str] = None
    warranty: Optional[str] = None
    notes: Optional[str] = None
    links: List[str] = Field(default_factory=list)

    @field_validator("brand", "part_number", "description", "warranty", "notes", "installation_cost", mode="before")
    @classmethod
    def optional_fields(cls, value):
        return _blank_to_none(value)

    @field_validator("links", mode="before")
    @classmethod
    def drop_blank_links(cls, value):
        return [link.strip() for link in (value or []) if link and link.strip()]

    @property
    def total_cost(self) -> float:
        return round(self.cost + (self.installation_cost or 0), 2)
