"""Read-only views of the collaborators the order engine depends on.

The catalog (restaurants, menu items, customization options) and the address
book belong to other services. The engine only needs a small snapshot of each,
described by the models below, and reads them through a provider:

* ``SqlCatalog`` / ``SqlAddressBook`` query the shared tables through the
  order's own session, so validation happens inside the order transaction.
* ``HttpCatalog`` asks the restaurantes service over HTTP.
"""
import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

import requests
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError
from sqlalchemy.orm import Session

from .config import CATALOG_BACKEND, CATALOG_TIMEOUT, RESTAURANTES_URL_BASE
from .errors import PersistenceError
from .models import AddressORM, MenuItemORM, RestaurantORM

logger = logging.getLogger("pedidos.providers")


class RestaurantInfo(BaseModel):
    id: str
    owner_id: str
    name: Optional[str] = None
    is_active: bool = True
    delivery_fee: Decimal = Decimal("0")
    max_delivery_time: int = 60


class OptionInfo(BaseModel):
    id: str
    customization_id: Optional[str] = None
    name: Optional[str] = None
    price_modifier: Decimal = Decimal("0")
    is_available: bool = True


class MenuItemInfo(BaseModel):
    id: str
    restaurant_id: str
    name: str
    price: Decimal
    is_available: bool = True
    options: Dict[str, OptionInfo] = {}


class AddressInfo(BaseModel):
    id: str
    user_id: str


class Catalog:
    def get_restaurant(self, restaurant_id: str) -> Optional[RestaurantInfo]:
        raise NotImplementedError

    def get_restaurant_by_owner(self, owner_id: str) -> Optional[RestaurantInfo]:
        raise NotImplementedError

    def get_menu_items(
        self, restaurant_id: str, item_ids: Iterable[str]
    ) -> Dict[str, MenuItemInfo]:
        """Return the requested items found in the catalog, keyed by id.

        Items of other restaurants may be returned; callers must check
        ``restaurant_id`` themselves.
        """
        raise NotImplementedError


class AddressBook:
    def get_address(self, address_id: str) -> Optional[AddressInfo]:
        raise NotImplementedError


def _restaurant_info(r: RestaurantORM) -> RestaurantInfo:
    return RestaurantInfo(
        id=r.id,
        owner_id=r.owner_id,
        name=r.name,
        is_active=bool(r.is_active),
        delivery_fee=r.delivery_fee if r.delivery_fee is not None else Decimal("0"),
        max_delivery_time=r.max_delivery_time or 60,
    )


def _menu_item_info(item: MenuItemORM) -> MenuItemInfo:
    options = {}
    for cust in item.customizations:
        for opt in cust.options:
            options[opt.id] = OptionInfo(
                id=opt.id,
                customization_id=cust.id,
                name=opt.name,
                price_modifier=opt.price_modifier or Decimal("0"),
                is_available=bool(opt.is_available),
            )
    return MenuItemInfo(
        id=item.id,
        restaurant_id=item.restaurant_id,
        name=item.name,
        price=item.price,
        is_available=bool(item.is_available),
        options=options,
    )


class SqlCatalog(Catalog):
    def __init__(self, db: Session):
        self.db = db

    def get_restaurant(self, restaurant_id):
        r = self.db.query(RestaurantORM).filter(RestaurantORM.id == restaurant_id).first()
        return _restaurant_info(r) if r else None

    def get_restaurant_by_owner(self, owner_id):
        r = self.db.query(RestaurantORM).filter(RestaurantORM.owner_id == owner_id).first()
        return _restaurant_info(r) if r else None

    def get_menu_items(self, restaurant_id, item_ids):
        ids = list(set(item_ids))
        if not ids:
            return {}
        rows = self.db.query(MenuItemORM).filter(MenuItemORM.id.in_(ids)).all()
        return {row.id: _menu_item_info(row) for row in rows}


class SqlAddressBook(AddressBook):
    def __init__(self, db: Session):
        self.db = db

    def get_address(self, address_id):
        a = self.db.query(AddressORM).filter(AddressORM.id == address_id).first()
        return AddressInfo(id=a.id, user_id=a.user_id) if a else None


class HttpCatalog(Catalog):
    """Catalog backed by the restaurantes service REST API."""

    def __init__(self, base_url: str = RESTAURANTES_URL_BASE, timeout: float = CATALOG_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _get(self, url: str):
        try:
            resp = requests.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error("[PEDIDOS][CATALOG] GET %s failed: %s", url, e)
            raise PersistenceError("Catalog service unavailable") from e
        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            logger.error("[PEDIDOS][CATALOG] GET %s responded %s", url, resp.status_code)
            raise PersistenceError("Catalog service unavailable")
        try:
            return resp.json()
        except ValueError as e:
            raise self._invalid(url, e) from e

    @staticmethod
    def _invalid(url: str, cause: Exception) -> PersistenceError:
        logger.error("[PEDIDOS][CATALOG] GET %s returned an unexpected payload: %s", url, cause)
        return PersistenceError("Catalog service returned an invalid response")

    def _restaurant(self, url: str) -> Optional[RestaurantInfo]:
        data = self._get(url)
        if not data:
            return None
        try:
            return RestaurantInfo(**data)
        except (SchemaError, KeyError, TypeError, ValueError) as e:
            raise self._invalid(url, e) from e

    def get_restaurant(self, restaurant_id):
        return self._restaurant(f"{self.base_url}/api/v1/restaurantes/{restaurant_id}")

    def get_restaurant_by_owner(self, owner_id):
        return self._restaurant(f"{self.base_url}/api/v1/restaurantes/by-user/{owner_id}")

    def get_menu_items(self, restaurant_id, item_ids):
        wanted = set(item_ids)
        url = f"{self.base_url}/api/v1/restaurantes/{restaurant_id}/menu"
        data = self._get(url)
        if not data:
            return {}
        found = {}
        try:
            # the menu may come wrapped in {"menu": [...]} or as a bare list
            menu: List[dict] = data.get("menu", []) if isinstance(data, dict) else data
            for raw in menu:
                if raw.get("id") not in wanted:
                    continue
                raw = dict(raw)
                raw.setdefault("restaurant_id", restaurant_id)
                options = raw.pop("options", None) or []
                raw["options"] = {o["id"]: OptionInfo(**o) for o in options}
                found[raw["id"]] = MenuItemInfo(**raw)
        except (SchemaError, KeyError, TypeError, ValueError, AttributeError) as e:
            raise self._invalid(url, e) from e
        return found


def get_catalog(db: Session) -> Catalog:
    if CATALOG_BACKEND == "http":
        return HttpCatalog()
    return SqlCatalog(db)
