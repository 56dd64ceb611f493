from __future__ import annotations

import hashlib
import logging
from typing import Any

from sqlalchemy.orm import Session

from beestat.db.models import Address
from beestat.repositories.entities import addresses
from beestat.services.smarty_streets_client import SmartyStreetsClient


class AddressService:
    """Normalizes free form addresses and deduplicates them per user.

    Lookups cost money, so a user only gets one row per normalized address
    no matter how the address was typed.
    """

    def __init__(self, *, smarty_streets: SmartyStreetsClient) -> None:
        self._smarty_streets = smarty_streets
        self._logger = logging.getLogger("beestat.addresses")

    def search(self, db: Session, user_id: int, address_string: str, country: str) -> Address:
        normalized = self._smarty_streets.normalize(address_string, country)
        if normalized is None:
            self._logger.info("no address candidate user_id=%s country=%s", user_id, country)
            normalized = {}

        key = generate_key(normalized)
        existing = addresses.get(db, user_id, {"key": key})
        if existing is not None:
            return existing
        return addresses.create(db, user_id, {"key": key, "normalized": normalized})


def generate_key(normalized: dict[str, Any]) -> str:
    """Hash of the full normalized address.

    The delivery point barcode wins when present. The key is not a unique
    identifier for a place: a changed ZIP code is a new address.
    """
    barcode = normalized.get("delivery_point_barcode")
    if barcode is not None:
        return hashlib.sha1(str(barcode).encode("utf-8")).hexdigest()
    joined = "".join(
        str(normalized[name])
        for name in ("address1", "address2", "address3")
        if normalized.get(name) is not None
    )
    return hashlib.sha1(joined.encode("utf-8")).hexdigest()
