"""Request bodies accepted by the API.

Every write endpoint parses its JSON through one of these models before it
touches the database; a ``ValidationError`` becomes a 400 response.
Update models mirror the create models with every field optional and are
applied with ``model_dump(exclude_unset=True)``.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from hotel_pms.services.reservations import to_naive_utc

Role = Literal['superadmin', 'branch-admin', 'front-desk']
RoomStatus = Literal['available', 'occupied', 'maintenance', 'housekeeping', 'out-of-order', 'reserved']
IdType = Literal['passport', 'driving-license', 'national-id']
ReservationStatus = Literal['confirmed', 'pending', 'checked-in', 'checked-out', 'cancelled', 'no-show']
PaymentType = Literal['advance', 'partial', 'full', 'credit']
PaymentMethod = Literal['cash', 'card', 'online', 'bank-transfer']
PaymentStatus = Literal['pending', 'completed', 'failed', 'refunded']

Money = Decimal


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class SetupRequest(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1)
    last_name: Optional[str] = None


class UserCreate(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=6)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Role = 'front-desk'
    branch_id: Optional[int] = None
    is_active: bool = True
    permissions: List[str] = Field(default_factory=list)

    @model_validator(mode='after')
    def branch_required_for_staff(self):
        if self.role != 'superadmin' and self.branch_id is None:
            raise ValueError('branch_id is required for branch-admin and front-desk users')
        return self


class UserUpdate(BaseModel):
    email: Optional[str] = Field(default=None, min_length=3, max_length=255)
    password: Optional[str] = Field(default=None, min_length=6)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[Role] = None
    branch_id: Optional[int] = None
    is_active: Optional[bool] = None
    permissions: Optional[List[str]] = None


class ProfileUpdate(BaseModel):
    email: Optional[str] = Field(default=None, min_length=3, max_length=255)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    current_password: Optional[str] = None
    new_password: Optional[str] = Field(default=None, min_length=6)


class BranchCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    address: Optional[str] = None
    phone: Optional[str] = Field(default=None, max_length=50)
    email: Optional[str] = Field(default=None, max_length=255)
    is_active: bool = True


class BranchUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    address: Optional[str] = None
    phone: Optional[str] = Field(default=None, max_length=50)
    email: Optional[str] = Field(default=None, max_length=255)
    is_active: Optional[bool] = None


class RoomTypeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    base_price: Money = Field(ge=0)
    max_occupancy: int = Field(ge=1)
    amenities: List[str] = Field(default_factory=list)
    branch_id: Optional[int] = None
    is_active: bool = True


class RoomTypeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    base_price: Optional[Money] = Field(default=None, ge=0)
    max_occupancy: Optional[int] = Field(default=None, ge=1)
    amenities: Optional[List[str]] = None
    branch_id: Optional[int] = None
    is_active: Optional[bool] = None


class RoomCreate(BaseModel):
    number: str = Field(min_length=1, max_length=20)
    floor: Optional[int] = None
    room_type_id: int
    branch_id: int
    status: RoomStatus = 'available'
    is_active: bool = True


class RoomUpdate(BaseModel):
    number: Optional[str] = Field(default=None, min_length=1, max_length=20)
    floor: Optional[int] = None
    room_type_id: Optional[int] = None
    status: Optional[RoomStatus] = None
    is_active: Optional[bool] = None


class GuestCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    id_type: Optional[IdType] = None
    id_number: Optional[str] = Field(default=None, max_length=100)
    address: Optional[str] = None
    date_of_birth: Optional[date] = None
    nationality: Optional[str] = Field(default=None, max_length=100)
    branch_id: Optional[int] = None


class GuestUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    id_type: Optional[IdType] = None
    id_number: Optional[str] = Field(default=None, max_length=100)
    address: Optional[str] = None
    date_of_birth: Optional[date] = None
    nationality: Optional[str] = Field(default=None, max_length=100)
    credit_balance: Optional[Money] = None
    is_active: Optional[bool] = None


class ReservationRoomCreate(BaseModel):
    room_id: int
    check_in_date: datetime
    check_out_date: datetime
    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)
    rate_per_night: Money = Field(ge=0)
    special_requests: Optional[str] = None

    @field_validator('check_in_date', 'check_out_date')
    @classmethod
    def stay_dates_in_utc(cls, value):
        return to_naive_utc(value)

    @model_validator(mode='after')
    def check_out_after_check_in(self):
        if self.check_out_date <= self.check_in_date:
            raise ValueError('check_out_date must be after check_in_date')
        return self


class ReservationDetails(BaseModel):
    branch_id: int
    status: Literal['confirmed', 'pending'] = 'pending'
    notes: Optional[str] = None


class ReservationCreate(BaseModel):
    guest: GuestCreate
    reservation: ReservationDetails
    rooms: List[ReservationRoomCreate] = Field(min_length=1)

    @field_validator('rooms')
    @classmethod
    def rooms_are_distinct(cls, rooms):
        room_ids = [room.room_id for room in rooms]
        if len(room_ids) != len(set(room_ids)):
            raise ValueError('a room can only appear once in a reservation')
        return rooms


class ReservationRoomDates(BaseModel):
    id: int
    check_in_date: datetime
    check_out_date: datetime

    @field_validator('check_in_date', 'check_out_date')
    @classmethod
    def stay_dates_in_utc(cls, value):
        return to_naive_utc(value)

    @model_validator(mode='after')
    def check_out_after_check_in(self):
        if self.check_out_date <= self.check_in_date:
            raise ValueError('check_out_date must be after check_in_date')
        return self


class ReservationUpdate(BaseModel):
    status: Optional[ReservationStatus] = None
    notes: Optional[str] = None
    rooms: Optional[List[ReservationRoomDates]] = None


class PaymentCreate(BaseModel):
    payment_type: PaymentType
    payment_method: PaymentMethod
    amount: Money = Field(gt=0, max_digits=10, decimal_places=2)
    transaction_reference: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None
    status: Optional[Literal['pending', 'completed']] = None
    due_date: Optional[datetime] = None

    @model_validator(mode='after')
    def credit_needs_due_date(self):
        if self.payment_type == 'credit' and self.due_date is None:
            raise ValueError('due_date is required for credit payments')
        return self


class PaymentStatusUpdate(BaseModel):
    status: PaymentStatus


class HotelSettingsPayload(BaseModel):
    branch_id: Optional[int] = None
    hotel_name: Optional[str] = Field(default=None, max_length=255)
    hotel_chain: Optional[str] = Field(default=None, max_length=255)
    logo: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = Field(default=None, max_length=100)
    postal_code: Optional[str] = Field(default=None, max_length=20)
    phone: Optional[str] = Field(default=None, max_length=50)
    email: Optional[str] = Field(default=None, max_length=255)
    website: Optional[str] = Field(default=None, max_length=255)
    tax_number: Optional[str] = Field(default=None, max_length=100)
    registration_number: Optional[str] = Field(default=None, max_length=100)
    check_in_time: Optional[str] = Field(default=None, pattern=r'^\d{2}:\d{2}$')
    check_out_time: Optional[str] = Field(default=None, pattern=r'^\d{2}:\d{2}$')
    currency: Optional[str] = Field(default=None, max_length=10)
    time_zone: Optional[str] = Field(default=None, max_length=50)
    billing_footer: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    cancellation_policy: Optional[str] = None


class PushSubscriptionCreate(BaseModel):
    endpoint: str = Field(min_length=1)
    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class PushSubscriptionDelete(BaseModel):
    endpoint: str = Field(min_length=1)
