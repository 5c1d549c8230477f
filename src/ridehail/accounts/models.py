"""Account request and response models."""

import re
from enum import Enum
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator

PHONE_PATTERN = re.compile(r"^(\+?6?0?)?[0-9]{9,11}$")
EMAIL_PATTERN = re.compile(r"^\w+([.-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,3})+$")


class Role(str, Enum):
    PASSENGER = "passenger"
    DRIVER = "driver"


def validate_phone_number(value: str) -> str:
    """Accept +60123456789, 0123456789, 60123456789 and 123456789 forms."""
    value = value.strip()
    digits = re.sub(r"\D", "", value)
    if not PHONE_PATTERN.match(value) or len(digits) < 9:
        raise ValueError("Invalid phone number format")
    return value


def validate_email(value: str) -> str:
    value = value.strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email address")
    return value


PhoneNumber = Annotated[str, AfterValidator(validate_phone_number)]
Email = Annotated[str, AfterValidator(validate_email)]


class VehicleDetails(BaseModel):
    vehicle_model: str = Field(min_length=1, max_length=60)
    vehicle_color: str = Field(min_length=1, max_length=30)
    plate_number: str = Field(min_length=2, max_length=15)

    @field_validator("plate_number")
    @classmethod
    def normalize_plate(cls, v: str) -> str:
        return " ".join(v.upper().split())


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=30, pattern=r"^[A-Za-z0-9_.]+$")
    password: str = Field(min_length=8, max_length=72)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    phone_number: PhoneNumber
    email: Email | None = None
    role: Role
    vehicle: VehicleDetails | None = None

    @model_validator(mode="after")
    def drivers_need_a_vehicle(self) -> "RegisterRequest":
        if self.role == Role.DRIVER and self.vehicle is None:
            raise ValueError("Driver must provide vehicle details")
        return self


class LoginRequest(BaseModel):
    identifier: str = Field(min_length=1, description="Username, email or phone number")
    password: str = Field(min_length=1)
    role: Role | None = None


class LinkRoleRequest(BaseModel):
    role: Role
    vehicle: VehicleDetails | None = None

    @model_validator(mode="after")
    def drivers_need_a_vehicle(self) -> "LinkRoleRequest":
        if self.role == Role.DRIVER and self.vehicle is None:
            raise ValueError("Driver must provide vehicle details")
        return self


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=72)


class VerifyPhoneRequest(BaseModel):
    verification_code: str = Field(pattern=r"^\d{6}$")


class UpdateProfileRequest(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=50)
    last_name: str | None = Field(default=None, min_length=1, max_length=50)
    email: Email | None = None


class UpdateVehicleRequest(BaseModel):
    vehicle_model: str | None = Field(default=None, min_length=1, max_length=60)
    vehicle_color: str | None = Field(default=None, min_length=1, max_length=30)
    plate_number: str | None = Field(default=None, min_length=2, max_length=15)

    @field_validator("plate_number")
    @classmethod
    def normalize_plate(cls, v: str | None) -> str | None:
        return " ".join(v.upper().split()) if v else v


class EmergencyContact(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    phone_number: PhoneNumber
    relationship: str | None = Field(default=None, max_length=40)


class StoredPaymentMethod(BaseModel):
    """Card reference kept for display. Card numbers never reach this service."""

    processor_method_id: str = Field(min_length=1)
    brand: str = Field(min_length=1, max_length=20)
    last4: str = Field(pattern=r"^\d{4}$")
    exp_month: int = Field(ge=1, le=12)
    exp_year: int = Field(ge=2000, le=2100)


class DriverProfileView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    vehicle_model: str
    vehicle_color: str
    plate_number: str
    available: bool
    latitude: float | None
    longitude: float | None
    wallet_balance: float
    total_earnings: float
    completed_ride_count: int
    rating: float
    rating_count: int


class PassengerProfileView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rating: float
    rating_count: int
    emergency_contacts: list[dict[str, Any]]
    stored_payment_methods: list[dict[str, Any]]


class AccountView(BaseModel):
    id: str
    username: str
    email: str | None
    phone_number: str
    first_name: str
    last_name: str
    phone_verified: bool
    roles: list[Role]
    passenger: PassengerProfileView | None = None
    driver: DriverProfileView | None = None


class AuthResult(BaseModel):
    token: str
    role: Role
    account: AccountView
