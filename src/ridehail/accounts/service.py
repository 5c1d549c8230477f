"""Account registration, login and profile management."""

import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ridehail.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    GuardViolationError,
    NotFoundError,
    ValidationError,
)
from ridehail.db.repositories import AccountRepository, DriverRepository, PassengerRepository
from ridehail.db.transaction import transaction
from ridehail.db.utils import new_id

from .models import (
    AccountView,
    AuthResult,
    ChangePasswordRequest,
    DriverProfileView,
    EmergencyContact,
    LinkRoleRequest,
    LoginRequest,
    PassengerProfileView,
    RegisterRequest,
    Role,
    StoredPaymentMethod,
    UpdateProfileRequest,
    UpdateVehicleRequest,
    VehicleDetails,
)
from .passwords import hash_password, verify_password
from .tokens import TokenService

logger = logging.getLogger(__name__)


class AccountService:
    """Multi-role accounts: one credential, a passenger and/or driver profile."""

    def __init__(self, session_factory: sessionmaker[Session], tokens: TokenService):
        self._session_factory = session_factory
        self._tokens = tokens

    def register(self, request: RegisterRequest) -> AuthResult:
        try:
            with self._session_factory() as session, transaction(session):
                accounts = AccountRepository(session)
                taken = accounts.find_taken_identifiers(
                    request.username, request.phone_number, request.email
                )
                if taken:
                    raise ValidationError(
                        f"Already in use: {', '.join(taken)}", {"fields": taken}
                    )

                account_id = new_id()
                accounts.create(
                    account_id=account_id,
                    username=request.username,
                    phone_number=request.phone_number,
                    first_name=request.first_name,
                    last_name=request.last_name,
                    password_hash=hash_password(request.password),
                    email=request.email,
                )
                self._create_profile(session, account_id, request.role, request.vehicle)
                view = self._view(session, account_id)
        except IntegrityError as e:
            raise ConflictError("Account details were claimed concurrently") from e

        logger.info(f"Registered {request.role.value} account {account_id}")
        return AuthResult(
            token=self._tokens.issue(account_id, request.role), role=request.role, account=view
        )

    def login(self, request: LoginRequest) -> AuthResult:
        """Check credentials and issue a token for the requested (or default) role."""
        with self._session_factory() as session:
            account = AccountRepository(session).get_by_login(request.identifier.strip())
            if account is None or not verify_password(request.password, account.password_hash):
                raise AuthenticationError("Invalid credentials")
            if not account.is_active:
                raise AuthenticationError("Account is disabled")

            view = self._view(session, account.id)

        if request.role is not None:
            if request.role not in view.roles:
                raise AuthorizationError(
                    f"Account has no {request.role.value} profile", {"roles": view.roles}
                )
            role = request.role
        elif view.roles:
            role = view.roles[0]
        else:
            raise AuthorizationError("Account has no role profile")

        logger.info(f"Account {account.id} logged in as {role.value}")
        return AuthResult(token=self._tokens.issue(account.id, role), role=role, account=view)

    def get_account(self, account_id: str) -> AccountView:
        with self._session_factory() as session:
            return self._view(session, account_id)

    def link_role(self, account_id: str, request: LinkRoleRequest) -> AuthResult:
        """Add the missing role profile to an existing account."""
        try:
            with self._session_factory() as session, transaction(session):
                view = self._view(session, account_id)
                if request.role in view.roles:
                    raise GuardViolationError(
                        f"Account already has a {request.role.value} profile"
                    )
                self._create_profile(session, account_id, request.role, request.vehicle)
                view = self._view(session, account_id)
        except IntegrityError as e:
            raise ConflictError("Role profile was created concurrently") from e

        logger.info(f"Linked {request.role.value} profile to account {account_id}")
        return AuthResult(
            token=self._tokens.issue(account_id, request.role), role=request.role, account=view
        )

    def change_password(self, account_id: str, request: ChangePasswordRequest) -> None:
        with self._session_factory() as session, transaction(session):
            accounts = AccountRepository(session)
            account = accounts.get(account_id)
            if account is None:
                raise NotFoundError("Account not found", {"account_id": account_id})
            if not verify_password(request.current_password, account.password_hash):
                raise AuthenticationError("Current password is incorrect")
            if request.current_password == request.new_password:
                raise ValidationError("New password must differ from the current one")
            accounts.update_password(account_id, hash_password(request.new_password))

        logger.info(f"Password changed for account {account_id}")

    def verify_phone(self, account_id: str) -> AccountView:
        """Mark the phone verified. The one-time code itself is checked by the SMS provider."""
        with self._session_factory() as session, transaction(session):
            accounts = AccountRepository(session)
            if accounts.get(account_id) is None:
                raise NotFoundError("Account not found", {"account_id": account_id})
            accounts.mark_phone_verified(account_id)
            session.flush()
            return self._view(session, account_id)

    def update_profile(self, account_id: str, request: UpdateProfileRequest) -> AccountView:
        fields = request.model_dump(exclude_none=True)
        try:
            with self._session_factory() as session, transaction(session):
                accounts = AccountRepository(session)
                if accounts.get(account_id) is None:
                    raise NotFoundError("Account not found", {"account_id": account_id})
                if fields:
                    accounts.update_profile(account_id, **fields)
                    session.flush()
                return self._view(session, account_id)
        except IntegrityError as e:
            raise ConflictError("Email already in use") from e

    def update_vehicle(self, account_id: str, request: UpdateVehicleRequest) -> AccountView:
        fields = request.model_dump(exclude_none=True)
        try:
            with self._session_factory() as session, transaction(session):
                drivers = DriverRepository(session)
                profile = drivers.get(account_id)
                if profile is None:
                    raise NotFoundError("Driver profile not found", {"account_id": account_id})
                plate = fields.get("plate_number")
                if plate and plate != profile.plate_number and drivers.plate_in_use(plate):
                    raise ValidationError("Plate number already registered")
                if fields:
                    drivers.update_vehicle(account_id, **fields)
                    session.flush()
                return self._view(session, account_id)
        except IntegrityError as e:
            raise ConflictError("Plate number already registered") from e

    def set_emergency_contacts(
        self, account_id: str, contacts: list[EmergencyContact]
    ) -> AccountView:
        with self._session_factory() as session, transaction(session):
            passengers = PassengerRepository(session)
            if not passengers.exists(account_id):
                raise NotFoundError("Passenger profile not found", {"account_id": account_id})
            passengers.set_emergency_contacts(
                account_id, [c.model_dump() for c in contacts]
            )
            session.flush()
            return self._view(session, account_id)

    def add_payment_method(self, account_id: str, method: StoredPaymentMethod) -> AccountView:
        with self._session_factory() as session, transaction(session):
            passengers = PassengerRepository(session)
            profile = passengers.get(account_id)
            if profile is None:
                raise NotFoundError("Passenger profile not found", {"account_id": account_id})
            if any(
                m.get("processor_method_id") == method.processor_method_id
                for m in profile.stored_payment_methods
            ):
                raise GuardViolationError("Payment method already stored")
            passengers.add_payment_method(account_id, method.model_dump())
            session.flush()
            return self._view(session, account_id)

    def _create_profile(
        self, session: Session, account_id: str, role: Role, vehicle: VehicleDetails | None
    ) -> None:
        if role == Role.PASSENGER:
            PassengerRepository(session).create(account_id)
            return

        if vehicle is None:
            raise ValidationError("Driver must provide vehicle details")
        drivers = DriverRepository(session)
        if drivers.plate_in_use(vehicle.plate_number):
            raise ValidationError(
                "Plate number already registered", {"plate_number": vehicle.plate_number}
            )
        drivers.create(
            account_id=account_id,
            vehicle_model=vehicle.vehicle_model,
            vehicle_color=vehicle.vehicle_color,
            plate_number=vehicle.plate_number,
        )

    def _view(self, session: Session, account_id: str) -> AccountView:
        account = AccountRepository(session).get(account_id)
        if account is None:
            raise NotFoundError("Account not found", {"account_id": account_id})

        passenger = PassengerRepository(session).get(account_id)
        driver = DriverRepository(session).get(account_id)
        roles = [
            role
            for role, profile in ((Role.PASSENGER, passenger), (Role.DRIVER, driver))
            if profile is not None
        ]
        fields: dict[str, Any] = {
            "id": account.id,
            "username": account.username,
            "email": account.email,
            "phone_number": account.phone_number,
            "first_name": account.first_name,
            "last_name": account.last_name,
            "phone_verified": account.phone_verified,
            "roles": roles,
        }
        return AccountView(
            **fields,
            passenger=PassengerProfileView.model_validate(passenger) if passenger else None,
            driver=DriverProfileView.model_validate(driver) if driver else None,
        )
