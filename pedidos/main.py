import logging
import time
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import tracking
from .config import LOG_LEVEL
from .database_sql import create_db_and_tables, get_db
from .errors import OrderError
from .identity import Caller, get_current_caller
from .ledger import (
    create_order,
    get_order_for,
    list_customer_orders,
    list_restaurant_orders,
)
from .ratings import submit_review
from .schemas import (
    OrderCreate,
    OrderOut,
    OrderPage,
    ReviewCreate,
    StatusUpdate,
    TrackingOut,
)
from .workflow import transition_order

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger("pedidos")

app = FastAPI(title="Servicio de pedidos")


@app.exception_handler(OrderError)
def order_error_handler(request: Request, exc: OrderError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={
            "kind": "validation_error",
            "detail": f"{where}: {msg}" if where else msg,
        },
    )


@app.on_event("startup")
def startup():
    attempts = 0
    while attempts < 10:
        try:
            create_db_and_tables()
            break
        except Exception as e:
            attempts += 1
            logger.warning("[PEDIDOS] database not ready (attempt %s): %s", attempts, e)
            time.sleep(1)


@app.get("/")
def read_root():
    return {"message": "Servicio de pedidos en funcionamiento."}


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.post("/api/v1/pedidos", response_model=OrderOut, status_code=201)
def create_pedido(
    payload: OrderCreate,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    """Crear un pedido a partir del carrito: precios del catálogo, un solo commit."""
    return create_order(db, caller, payload).to_dict()


@app.get("/api/v1/pedidos", response_model=OrderPage)
def list_pedidos(
    page: int = 1,
    limit: int = 10,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    rows, pagination = list_customer_orders(db, caller, page, limit)
    return {"orders": [o.to_dict() for o in rows], "pagination": pagination}


@app.get("/api/v1/pedidos/{order_id}", response_model=OrderOut)
def get_pedido(
    order_id: str,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return get_order_for(db, caller, order_id).to_dict()


@app.patch("/api/v1/pedidos/{order_id}/status", response_model=OrderOut)
@app.post("/api/v1/pedidos/{order_id}/status", response_model=OrderOut)
def update_pedido_status(
    order_id: str,
    payload: StatusUpdate,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    """Avanzar el estado del pedido (solo el dueño del restaurante)."""
    order = transition_order(
        db,
        caller,
        order_id,
        payload.status,
        message=payload.message,
        latitude=payload.latitude,
        longitude=payload.longitude,
    )
    return order.to_dict()


@app.get("/api/v1/pedidos/{order_id}/tracking", response_model=TrackingOut)
def get_pedido_tracking(
    order_id: str,
    order: str = tracking.DESC,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    o = get_order_for(db, caller, order_id)
    direction = tracking.ASC if order.lower() == tracking.ASC else tracking.DESC
    updates = tracking.list_updates(db, o.id, direction)
    return {
        "order_id": o.id,
        "status": o.status,
        "tracking_updates": [t.to_dict() for t in updates],
    }


@app.post("/api/v1/pedidos/{order_id}/review", status_code=201)
def review_pedido(
    order_id: str,
    payload: ReviewCreate,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return submit_review(db, caller, order_id, payload.rating, payload.comment).to_dict()


@app.get("/api/v1/restaurante/orders", response_model=OrderPage)
def orders_for_restaurante(
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    caller: Caller = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    """Pedidos del restaurante del usuario, más recientes primero."""
    rows, pagination = list_restaurant_orders(db, caller, status, page, limit)
    return {"orders": [o.to_dict() for o in rows], "pagination": pagination}
