"""
Database Schemas for EventPro

Each Pydantic model represents a MongoDB collection; the collection name is
the lowercase class name (Venue -> "venue", MusicalGroup -> "musicalgroup").
Validated request payloads are passed through these models on create so
defaults are applied consistently.

References to other documents are stored as id strings.
"""

from datetime import datetime
from typing import List, Literal, Optional, get_args

from pydantic import BaseModel, Field

Role = Literal["user", "admin", "organizer"]
EventType = Literal["Wedding", "Birthday", "Corporate", "Anniversary", "Graduation", "Other"]
EventStatus = Literal["pending", "confirmed", "in-progress", "completed", "cancelled"]
PaymentStatus = Literal["pending", "partial", "completed"]
GuestStatus = Literal["pending", "confirmed", "declined"]
ReviewStatus = Literal["pending", "approved", "rejected"]
MenuCategory = Literal["Appetizers", "Main Course", "Desserts", "Beverages", "Snacks", "Salads"]
DietaryInfo = Literal["Vegetarian", "Vegan", "Gluten-Free", "Halal", "Kosher", "Nut-Free"]
StaffRole = Literal[
    "Event Manager",
    "Photography Infomation Manager",
    "Event Orgernizer",
    "Financial Officer",
    "Entertainment Manager",
    "Other",
]
RentalCategory = Literal["Equipment", "Furniture", "Decor", "Other"]

ROLES = get_args(Role)
EVENT_TYPES = get_args(EventType)
EVENT_STATUSES = get_args(EventStatus)
PAYMENT_STATUSES = get_args(PaymentStatus)
GUEST_STATUSES = get_args(GuestStatus)
REVIEW_STATUSES = get_args(ReviewStatus)
MENU_CATEGORIES = get_args(MenuCategory)
DIETARY_OPTIONS = get_args(DietaryInfo)
STAFF_ROLES = get_args(StaffRole)
RENTAL_CATEGORIES = get_args(RentalCategory)


# Users

class User(BaseModel):
    fullName: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., description="Unique, lower-cased")
    passwordHash: str = Field(..., description="BCrypt hash of password")
    phoneNumber: str
    location: str
    role: Role = "user"
    avatar: str = "uploads/default-avatar.png"


# Embedded review shared by Venue and Decoration

class EmbeddedReview(BaseModel):
    user: str
    rating: int = Field(..., ge=1, le=5)
    comment: str
    date: datetime
    images: List[str] = Field(default_factory=list)


# Catalogue

class Location(BaseModel):
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None


class Capacity(BaseModel):
    min: int = Field(..., ge=1)
    max: int = Field(..., ge=1)


class Venue(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    description: Optional[str] = Field(None, max_length=1000)
    location: Location = Field(default_factory=Location)
    capacity: Capacity
    pricePerHour: Optional[float] = Field(None, ge=0)
    amenities: List[str] = Field(default_factory=list)
    facilities: str = Field("", max_length=5000)
    images: List[str] = Field(default_factory=lambda: ["uploads/default-venue.png"])
    availableFor: List[EventType] = Field(default_factory=list)
    rules: str = Field("", max_length=5000)
    isAvailable: bool = True
    rating: float = Field(0, ge=0, le=5, description="Derived from reviews")
    reviews: List[EmbeddedReview] = Field(default_factory=list)
    createdBy: str


class Package(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    description: str = Field(..., max_length=500)
    type: EventType
    pricePerPerson: float = Field(..., ge=0)
    minimumGuests: int = Field(..., ge=1)
    maximumGuests: int = Field(..., ge=1)
    menuItems: List[str] = Field(default_factory=list)
    services: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    image: str = "uploads/default-package.png"
    isAvailable: bool = True
    createdBy: str


class MenuItem(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    description: str = Field(..., max_length=200)
    category: MenuCategory
    pricePerPlate: float = Field(..., ge=0)
    dietaryInfo: List[DietaryInfo] = Field(default_factory=list)
    ingredients: List[str] = Field(default_factory=list)
    image: str = "uploads/default-food.png"
    isAvailable: bool = True
    createdBy: str


class DecorationItem(BaseModel):
    name: str
    quantity: int = Field(..., ge=1)
    description: Optional[str] = None


class ColorScheme(BaseModel):
    primary: str
    secondary: str = ""
    accent: str = ""


class Dimensions(BaseModel):
    minSpace: Optional[float] = Field(None, ge=0, description="square feet")
    maxSpace: float = Field(0, ge=0, description="square feet, 0 = unbounded")


class UnavailableRange(BaseModel):
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    reason: Optional[str] = None


class Availability(BaseModel):
    isAvailable: bool = True
    unavailableDates: List[UnavailableRange] = Field(default_factory=list)


class Decoration(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    description: Optional[str] = Field(None, max_length=1000)
    type: Optional[EventType] = None
    theme: Optional[str] = None
    items: List[DecorationItem]
    pricePerDay: float = Field(..., ge=0)
    setupTime: float = Field(..., ge=0, description="hours")
    features: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=lambda: ["uploads/default-decoration.png"])
    colorScheme: ColorScheme
    dimensions: Dimensions = Field(default_factory=Dimensions)
    availability: Availability = Field(default_factory=Availability)
    specialRequirements: List[str] = Field(default_factory=list)
    rating: float = Field(0, ge=0, le=5, description="Derived from reviews")
    reviews: List[EmbeddedReview] = Field(default_factory=list)
    createdBy: str


class MusicalGroup(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    description: str = Field(..., max_length=200)
    genre: str = Field(..., min_length=3, max_length=50)
    price: float = Field(..., ge=0)
    members: List[str] = Field(default_factory=list)
    contactEmail: str = Field(..., description="Unique, lower-cased")
    contactPhone: str
    availableForEvents: bool = True
    rating: int = Field(0, ge=0, le=5)
    image: str = "uploads/default-band-image.png"


class Photographer(BaseModel):
    photographerId: str
    fullName: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., description="Unique, lower-cased")
    image: str = "uploads/default-avatar.png"
    phoneNumber: str
    experience: int = Field(..., ge=0, le=99)
    availability: bool = True
    ratings: float = Field(0, ge=0, le=5)


class Staff(BaseModel):
    fullName: str = Field(..., min_length=3, max_length=50)
    email: str = Field(..., description="Unique, lower-cased")
    phoneNumber: str
    role: StaffRole
    experience: int = Field(..., ge=0, le=99)
    salary: Optional[float] = Field(None, ge=0)
    availability: bool = True
    ratings: int = Field(0, ge=0, le=5)
    image: Optional[str] = None


class RentalItem(BaseModel):
    name: str = Field(..., min_length=3, max_length=50)
    description: Optional[str] = Field(None, max_length=200)
    category: RentalCategory
    rentalPrice: float = Field(..., ge=0)
    duration: Optional[int] = Field(None, ge=0, description="days")
    rentalStartDate: datetime
    availability: bool = True


# Events

class EventTime(BaseModel):
    start: str
    end: str


class Guest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: GuestStatus = "pending"


class Guests(BaseModel):
    count: int = Field(..., ge=1)
    list: List[Guest] = Field(default_factory=list)


class EventServices(BaseModel):
    decoration: Optional[str] = None
    photographer: Optional[str] = None
    musicalGroup: Optional[str] = None


class RentalLine(BaseModel):
    """Rental item snapshot taken at booking time"""
    itemId: str
    name: str
    rentalPrice: float
    quantity: int = Field(1, ge=1)


class MenuLine(BaseModel):
    """Menu item snapshot taken at booking time"""
    itemId: str
    name: str
    category: str
    pricePerPlate: float


class PaymentRecord(BaseModel):
    amount: Optional[float] = None
    date: Optional[datetime] = None
    method: Optional[str] = None
    status: Optional[str] = None
    transactionId: Optional[str] = None


class Payment(BaseModel):
    status: PaymentStatus = "pending"
    amount: float = Field(0, ge=0)
    history: List[PaymentRecord] = Field(default_factory=list)


class Event(BaseModel):
    title: str = Field(..., min_length=3, max_length=100)
    type: EventType
    description: str = Field(..., max_length=1000)
    date: datetime
    time: EventTime
    venue: str
    package: Optional[str] = None
    client: str
    guests: Guests
    services: EventServices = Field(default_factory=EventServices)
    rentalItems: List[RentalLine] = Field(default_factory=list)
    menuItems: List[MenuLine] = Field(default_factory=list)
    staff: List[str] = Field(default_factory=list)
    status: EventStatus = "pending"
    totalCost: float = Field(..., ge=0)
    payment: Payment = Field(default_factory=Payment)
    rating: float = Field(0, ge=0, le=5, description="Derived from reviews")
    reviewCount: int = 0
    ratingStale: bool = False
    notes: Optional[str] = Field(None, max_length=500)
    createdBy: str


# Reviews

class Reply(BaseModel):
    user: str
    comment: str = Field(..., max_length=500)
    createdAt: Optional[datetime] = None


class Review(BaseModel):
    user: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=1000)
    eventId: str
    status: ReviewStatus = "pending"
    isVerified: bool = False
    likes: int = 0
    replies: List[Reply] = Field(default_factory=list)
