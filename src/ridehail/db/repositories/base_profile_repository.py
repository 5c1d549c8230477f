"""Base repository for role profile operations using generics."""

from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..schema import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseProfileRepository(Generic[ModelT]):
    """Generic base repository for DriverProfile and PassengerProfile."""

    model_class: ClassVar[type[Any]]

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, account_id: str) -> ModelT | None:
        return self.session.get(self.model_class, account_id, populate_existing=True)

    def exists(self, account_id: str) -> bool:
        return self.get(account_id) is not None

    def lock(self, account_id: str) -> ModelT | None:
        """Load the profile with a row lock held until the transaction ends.

        SQLite drops FOR UPDATE and relies on its database-wide write lock.
        """
        stmt = (
            select(self.model_class)
            .where(self.model_class.account_id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.session.execute(stmt).scalars().first()

    def update_rating(self, account_id: str, new_rating: float, rating_count: int) -> None:
        stmt = (
            update(self.model_class)
            .where(self.model_class.account_id == account_id)
            .values(rating=new_rating, rating_count=rating_count)
            .execution_options(synchronize_session=False)
        )
        self.session.execute(stmt)
