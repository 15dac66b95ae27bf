# backend/workshop/routers/inventory.py
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from ..core.api import list_meta, ok
from ..core.db import get_db
from ..domain.statuses import TxnTypeLiteral
from ..schemas.inventory import StockItemCreate, StockItemRead, StockItemUpdate, StockTxnCreate, StockTxnRead
from ..services import inventory_service
from .deps import actor_name

router = APIRouter(prefix="/stock", tags=["stock"])


@router.get("")
def list_stock_items(
    q: Optional[str] = Query(None, description="Code or name contains"),
    status_s: Optional[str] = Query(None),
    fungible: Optional[bool] = Query(None),
    include_inactive: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    rows = inventory_service.list_stock_items(
        db,
        q=q,
        status_s=status_s,
        fungible=fungible,
        include_inactive=include_inactive,
        skip=skip,
        limit=limit,
    )
    items = [StockItemRead.model_validate(r) for r in rows]
    return ok(items, meta=list_meta(items))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_stock_item(payload: StockItemCreate, actor: str = Depends(actor_name), db: Session = Depends(get_db)):
    item = inventory_service.create_stock_item(db, payload, actor=actor)
    return ok(StockItemRead.model_validate(item), status_code=status.HTTP_201_CREATED)


@router.get("/below-min")
def below_min(db: Session = Depends(get_db)):
    items = [StockItemRead.model_validate(r) for r in inventory_service.list_below_min(db)]
    return ok(items, meta=list_meta(items))


# --- LEDGER ---
@router.get("/txns")
def list_txns(
    stock_item_id: Optional[int] = Query(None, ge=1),
    txn_type: Optional[TxnTypeLiteral] = Query(None),
    work_order_id: Optional[int] = Query(None, ge=1),
    requisition_id: Optional[int] = Query(None, ge=1),
    q: Optional[str] = Query(None, description="Search in notes"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    sort: str = Query("-TxnID"),
    db: Session = Depends(get_db),
):
    rows = inventory_service.list_transactions(
        db,
        stock_item_id=stock_item_id,
        txn_type=txn_type,
        work_order_id=work_order_id,
        requisition_id=requisition_id,
        q=q,
        skip=skip,
        limit=limit,
        sort=sort,
    )
    items = [StockTxnRead.model_validate(r) for r in rows]
    return ok(items, meta=list_meta(items))


@router.post("/txns", status_code=status.HTTP_201_CREATED)
def post_manual(payload: StockTxnCreate, actor: str = Depends(actor_name), db: Session = Depends(get_db)):
    txn = inventory_service.post_manual(db, payload, actor=actor)
    return ok(StockTxnRead.model_validate(txn), status_code=status.HTTP_201_CREATED)


# --- ITEM ---
@router.get("/{stock_item_id}")
def get_stock_item(stock_item_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    return ok(StockItemRead.model_validate(inventory_service.get_stock_item(db, stock_item_id)))


@router.patch("/{stock_item_id}")
def update_stock_item(payload: StockItemUpdate, stock_item_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    item = inventory_service.update_stock_item(db, stock_item_id, payload)
    return ok(StockItemRead.model_validate(item))


@router.get("/{stock_item_id}/reconcile")
def reconcile(stock_item_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    return ok(inventory_service.reconcile(db, stock_item_id))
