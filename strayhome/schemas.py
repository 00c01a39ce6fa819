from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from .models import (
    AdoptionStatus,
    AnimalAge,
    AnimalGender,
    AnimalSize,
    AnimalStatus,
    AnimalType,
)


class CamelModel(BaseModel):
    """Base schema exchanging camelCase JSON keys with the frontend."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageOut(BaseModel):
    """Plain confirmation message."""

    message: str


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int


# Users


class NotificationPreferences(CamelModel):
    """Which emails a user agreed to receive."""

    adoption_interest: bool = True
    adoption_confirmed: bool = True
    rescue_updates: bool = True


class NotificationPreferencesUpdate(CamelModel):
    adoption_interest: Optional[bool] = None
    adoption_confirmed: Optional[bool] = None
    rescue_updates: Optional[bool] = None


class UserStats(CamelModel):
    animals_rescued: int = 0
    animals_adopted: int = 0


class UserCreate(CamelModel):
    """Payload for registering a new user."""

    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6)
    phone: Optional[str] = None
    location: Optional[str] = None


class UserUpdate(CamelModel):
    """Profile fields a user may change (all optional)."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = None
    location: Optional[str] = None
    notification_preferences: Optional[NotificationPreferencesUpdate] = None


class UserSummary(CamelModel):
    """Contact card embedded in listings and adoption requests."""

    id: int
    name: str
    email: str
    phone: Optional[str] = None
    location: Optional[str] = None


class UserOut(UserSummary):
    """Response schema for the user's own profile."""

    notification_preferences: NotificationPreferences
    stats: UserStats
    created_at: Optional[datetime] = None


class Token(BaseModel):
    """JWT token response schema."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenRefresh(BaseModel):
    """Schema for requesting a new access token from a refresh token."""

    refresh_token: str


class TokenData(BaseModel):
    """Payload stored inside JWT token."""

    sub: str | None = None
    exp: Optional[datetime] = None
    scope: Optional[str] = None


# Animals


class Coordinates(CamelModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class Location(CamelModel):
    """Where the animal was found."""

    address: str = Field(min_length=1)
    coordinates: Coordinates
    city: Optional[str] = None
    state: Optional[str] = None


class AnimalCreate(CamelModel):
    """Descriptive fields of a new listing; photos are uploaded separately."""

    type: AnimalType
    name: str = ""
    breed: str = ""
    age: AnimalAge = AnimalAge.UNKNOWN
    gender: AnimalGender = AnimalGender.UNKNOWN
    size: AnimalSize = AnimalSize.UNKNOWN
    color: str = ""
    description: str = ""
    special_notes: str = ""
    medical_needs: str = ""
    location: Location
    current_location: str = ""
    urgent: bool = False
    needs_foster: bool = False


class AnimalUpdate(CamelModel):
    """Partial update of a listing (all fields optional)."""

    type: Optional[AnimalType] = None
    name: Optional[str] = None
    breed: Optional[str] = None
    age: Optional[AnimalAge] = None
    gender: Optional[AnimalGender] = None
    size: Optional[AnimalSize] = None
    color: Optional[str] = None
    description: Optional[str] = None
    special_notes: Optional[str] = None
    medical_needs: Optional[str] = None
    location: Optional[Location] = None
    current_location: Optional[str] = None
    urgent: Optional[bool] = None
    needs_foster: Optional[bool] = None
    status: Optional[AnimalStatus] = None


class InterestCreate(CamelModel):
    message: str = ""
    contact_info: str = ""


class InterestOut(CamelModel):
    user_id: int
    message: str
    contact_info: str
    timestamp: datetime


class MarkAdopted(CamelModel):
    adopter_id: int


class AnimalSummary(CamelModel):
    id: int
    name: str
    type: str
    photos: List[str]


class AnimalOut(CamelModel):
    """Full listing as shown on the detail page."""

    id: int
    type: str
    name: str
    breed: str
    age: str
    gender: str
    size: str
    color: str
    description: str
    special_notes: str
    medical_needs: str
    photos: List[str]
    location: Location
    current_location: str
    status: str
    urgent: bool
    needs_foster: bool
    poster_id: int
    poster: Optional[UserSummary] = None
    adopter_id: Optional[int] = None
    adopter: Optional[UserSummary] = None
    adoption_date: Optional[datetime] = None
    interested_users: List[InterestOut] = []
    created_at: datetime
    updated_at: datetime


class AnimalList(CamelModel):
    animals: List[AnimalOut]
    pagination: Pagination


class AnimalEnvelope(CamelModel):
    message: str
    animal: AnimalOut


# Adoptions


class AdoptionCreate(CamelModel):
    """Formal adoption request submitted by an adopter."""

    animal_id: int
    message: str = ""
    contact_info: str = Field(min_length=1)


class AdoptionStatusUpdate(CamelModel):
    status: AdoptionStatus
    notes: Optional[str] = None


class AdoptionOut(CamelModel):
    id: int
    animal_id: int
    animal: Optional[AnimalSummary] = None
    adopter_id: int
    adopter: Optional[UserSummary] = None
    poster_id: int
    poster: Optional[UserSummary] = None
    status: str
    adopter_message: str
    adopter_contact: str
    adoption_date: Optional[datetime] = None
    notes: str
    created_at: datetime
    updated_at: datetime


class AdoptionEnvelope(CamelModel):
    message: str
    adoption: AdoptionOut


class AdoptionList(CamelModel):
    adoptions: List[AdoptionOut]


# Users' own listings


class RescueList(CamelModel):
    rescues: List[AnimalOut]
    pagination: Pagination


class AdoptedList(CamelModel):
    adoptions: List[AnimalOut]
    pagination: Pagination


class DashboardCounts(CamelModel):
    rescues: int
    adoptions: int
    pending: int


class RecentRescue(CamelModel):
    id: int
    name: str
    type: str
    photos: List[str]
    status: str
    created_at: datetime


class RecentAdoption(CamelModel):
    id: int
    name: str
    type: str
    photos: List[str]
    adoption_date: Optional[datetime] = None
    poster: Optional[UserSummary] = None


class RecentActivity(CamelModel):
    rescues: List[RecentRescue]
    adoptions: List[RecentAdoption]


class DashboardOut(CamelModel):
    stats: DashboardCounts
    recent_activity: RecentActivity


# Statistics


class Overview(CamelModel):
    total_animals: int
    total_adoptions: int
    total_users: int
    available_animals: int
    urgent_animals: int
    adoption_rate: float


class MonthlyAdoptions(CamelModel):
    year: int
    month: int
    count: int


class TypeBreakdown(CamelModel):
    type: str
    total: int
    adopted: int


class CityCount(CamelModel):
    city: str
    count: int


class Charts(CamelModel):
    adoptions_by_month: List[MonthlyAdoptions]
    animals_by_type: List[TypeBreakdown]
    top_cities: List[CityCount]


class StatsOut(CamelModel):
    overview: Overview
    charts: Charts


class MapAnimal(CamelModel):
    """Reduced listing payload for the map view."""

    id: int
    type: str
    status: str
    location: Location
    photos: List[str]
    name: str
    urgent: bool
    needs_foster: bool


class MapOut(CamelModel):
    animals: List[MapAnimal]
