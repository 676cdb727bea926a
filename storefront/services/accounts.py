"""Account store: the narrow view of customer accounts the order ledger needs.

Credentials, profiles and admin screens live elsewhere. This module only
reads a customer's status and wallet balance and moves wallet money with
conditional, single-statement updates so concurrent orders from the same
customer can never push a balance below zero.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.orm import Session

from storefront.models.customer import AccountStatus, Customer


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomerSnapshot:
    id: uuid.UUID
    status: str
    balance_cents: int

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE.value


class AccountStore:
    def __init__(self, db: Session):
        self.db = db

    def get_customer(self, customer_id: uuid.UUID) -> CustomerSnapshot | None:
        row = (
            self.db.query(Customer.id, Customer.status, Customer.balance_cents)
            .filter(Customer.id == customer_id)
            .first()
        )
        if not row:
            return None
        return CustomerSnapshot(id=row.id, status=row.status, balance_cents=int(row.balance_cents or 0))

    def debit_wallet(self, customer_id: uuid.UUID, amount_cents: int) -> bool:
        """Take ``amount_cents`` from the wallet if, and only if, it is covered.

        The balance check and the decrement are one UPDATE statement, so two
        concurrent debits cannot both pass the check against the same balance.

        Returns:
            bool: True when the wallet was debited, False when the balance was
            insufficient or the account is not active.
        """
        if amount_cents <= 0:
            return True

        updated = (
            self.db.query(Customer)
            .filter(
                Customer.id == customer_id,
                Customer.status == AccountStatus.ACTIVE.value,
                Customer.balance_cents >= amount_cents,
            )
            .update(
                {Customer.balance_cents: Customer.balance_cents - amount_cents},
                synchronize_session=False,
            )
        )
        self.db.commit()

        if updated != 1:
            logger.info(
                "wallet debit refused",
                extra={"customer_id": str(customer_id), "amount_cents": amount_cents},
            )
            return False
        return True

    def credit_wallet(self, customer_id: uuid.UUID, amount_cents: int) -> None:
        if amount_cents <= 0:
            return
        self.db.query(Customer).filter(Customer.id == customer_id).update(
            {Customer.balance_cents: Customer.balance_cents + amount_cents},
            synchronize_session=False,
        )
        self.db.commit()
        logger.info(
            "wallet credited",
            extra={"customer_id": str(customer_id), "amount_cents": amount_cents},
        )
