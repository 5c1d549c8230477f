"""Payment repository with conditional settlement updates."""

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from ridehail.payment import Payment as PaymentDomain
from ridehail.ride import PaymentMethod, PaymentStatus

from ..schema import Payment
from ..utils import utc_now


class PaymentRepository:
    """Repository for payment records."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        payment_id: str,
        ride_id: str,
        payer_id: str,
        payee_id: str,
        amount: float,
        currency: str,
        method: PaymentMethod,
        status: PaymentStatus,
    ) -> PaymentDomain:
        now = utc_now()
        payment = Payment(
            payment_id=payment_id,
            ride_id=ride_id,
            payer_id=payer_id,
            payee_id=payee_id,
            amount=amount,
            currency=currency,
            method=method.value,
            status=status.value,
            created_at=now,
            completed_at=now if status == PaymentStatus.COMPLETED else None,
        )
        self.session.add(payment)
        self.session.flush()
        return self._to_domain(payment)

    def get(self, payment_id: str) -> PaymentDomain | None:
        payment = self.session.get(Payment, payment_id, populate_existing=True)
        return self._to_domain(payment) if payment else None

    def get_by_ride(self, ride_id: str) -> PaymentDomain | None:
        stmt = select(Payment).where(Payment.ride_id == ride_id)
        payment = self.session.execute(
            stmt, execution_options={"populate_existing": True}
        ).scalars().first()
        return self._to_domain(payment) if payment else None

    def get_by_intent(self, intent_id: str) -> PaymentDomain | None:
        stmt = select(Payment).where(Payment.processor_intent_id == intent_id)
        payment = self.session.execute(
            stmt, execution_options={"populate_existing": True}
        ).scalars().first()
        return self._to_domain(payment) if payment else None

    def attach_intent(self, payment_id: str, intent_id: str) -> None:
        payment = self.session.get(Payment, payment_id)
        if payment:
            payment.processor_intent_id = intent_id

    def transition_status(
        self, payment_id: str, expected: PaymentStatus, new: PaymentStatus
    ) -> bool:
        """Move expected -> new atomically. False means someone else already moved it."""
        values: dict[str, object] = {"status": new.value, "updated_at": utc_now()}
        if new == PaymentStatus.COMPLETED:
            values["completed_at"] = utc_now()
        stmt = (
            update(Payment)
            .where(Payment.payment_id == payment_id, Payment.status == expected.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def list_for_account(self, account_id: str, limit: int = 50) -> list[PaymentDomain]:
        """Payments the account paid or received, newest first."""
        stmt = (
            select(Payment)
            .where(or_(Payment.payer_id == account_id, Payment.payee_id == account_id))
            .order_by(Payment.created_at.desc())
            .limit(limit)
        )
        return [self._to_domain(p) for p in self.session.execute(stmt).scalars().all()]

    def _to_domain(self, payment: Payment) -> PaymentDomain:
        return PaymentDomain(
            payment_id=payment.payment_id,
            ride_id=payment.ride_id,
            payer_id=payment.payer_id,
            payee_id=payment.payee_id,
            amount=payment.amount,
            currency=payment.currency,
            method=PaymentMethod(payment.method),
            status=PaymentStatus(payment.status),
            processor_intent_id=payment.processor_intent_id,
            created_at=payment.created_at,
            completed_at=payment.completed_at,
        )
