from fastapi import Depends
from sqlalchemy.orm import Session

from storefront.db import get_db
from storefront.services.accounts import AccountStore
from storefront.services.catalog import CatalogStore
from storefront.services.key_inventory import KeyInventory
from storefront.services.order_ledger import OrderLedger


def get_inventory(db: Session = Depends(get_db)) -> KeyInventory:
    return KeyInventory(db)


def get_catalog(db: Session = Depends(get_db)) -> CatalogStore:
    return CatalogStore(db)


def get_ledger(db: Session = Depends(get_db)) -> OrderLedger:
    # One session per request, shared by the ledger and its collaborators.
    return OrderLedger(
        db,
        inventory=KeyInventory(db),
        accounts=AccountStore(db),
        catalog=CatalogStore(db),
    )
