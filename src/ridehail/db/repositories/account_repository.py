"""Account repository for credential and identity records."""

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ..schema import Account


class AccountRepository:
    """Repository for account CRUD operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        account_id: str,
        username: str,
        phone_number: str,
        first_name: str,
        last_name: str,
        password_hash: str,
        email: str | None = None,
    ) -> Account:
        account = Account(
            id=account_id,
            username=username,
            email=email,
            phone_number=phone_number,
            first_name=first_name,
            last_name=last_name,
            password_hash=password_hash,
            phone_verified=False,
            is_active=True,
        )
        self.session.add(account)
        self.session.flush()
        return account

    def get(self, account_id: str) -> Account | None:
        return self.session.get(Account, account_id)

    def get_by_login(self, identifier: str) -> Account | None:
        """Look an account up by username, email or phone number."""
        stmt = select(Account).where(
            or_(
                Account.username == identifier,
                Account.email == identifier,
                Account.phone_number == identifier,
            )
        )
        return self.session.execute(stmt).scalars().first()

    def find_taken_identifiers(
        self, username: str, phone_number: str, email: str | None = None
    ) -> list[str]:
        """Return which of the unique identifiers already belong to an account."""
        conditions = [Account.username == username, Account.phone_number == phone_number]
        if email:
            conditions.append(Account.email == email)
        stmt = select(Account).where(or_(*conditions))

        taken: set[str] = set()
        for account in self.session.execute(stmt).scalars():
            if account.username == username:
                taken.add("username")
            if account.phone_number == phone_number:
                taken.add("phone_number")
            if email and account.email == email:
                taken.add("email")
        return sorted(taken)

    def update_password(self, account_id: str, password_hash: str) -> None:
        account = self.session.get(Account, account_id)
        if account:
            account.password_hash = password_hash

    def mark_phone_verified(self, account_id: str) -> None:
        account = self.session.get(Account, account_id)
        if account:
            account.phone_verified = True

    def update_profile(self, account_id: str, **fields: str) -> None:
        account = self.session.get(Account, account_id)
        if account:
            for key, value in fields.items():
                setattr(account, key, value)
