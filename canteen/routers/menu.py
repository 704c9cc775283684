"""
Menu router — browsing for everyone, item management for stall owners.

Endpoints:
  GET    /menu              — List items (filter by owner, category, in stock)
  GET    /menu/scan/{code}  — Resolve a scanned item QR or barcode
  GET    /menu/{item_id}    — Get one item
  POST   /menu              — [Owner] Add an item
  PATCH  /menu/{item_id}    — [Owner/Admin] Edit or restock an item
  DELETE /menu/{item_id}    — [Owner/Admin] Remove an item

Editing a price never changes existing orders; they keep the price they
were placed at.
"""

import uuid
from typing import Literal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from canteen.database import get_db
from canteen.dependencies import get_current_account, require_owner
from canteen.models.account import Account
from canteen.schemas.menu import MenuItemCreate, MenuItemResponse, MenuItemUpdate
from canteen.services import inventory_service

router = APIRouter()


@router.get("", response_model=list[MenuItemResponse], summary="List menu items")
async def list_menu(
    owner_id: uuid.UUID | None = Query(None),
    category: Literal["food", "drink"] | None = Query(None),
    in_stock: bool = Query(False, description="Only items with stock > 0"),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await inventory_service.list_items(
        db, owner_id=owner_id, category=category, in_stock_only=in_stock
    )


@router.get("/scan/{code}", response_model=MenuItemResponse, summary="Look up a scanned item")
async def scan_item(
    code: str,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """Accepts an item id, an item QR payload, or a printed barcode value."""
    return await inventory_service.find_by_code(db, code)


@router.get("/{item_id}", response_model=MenuItemResponse, summary="Get a menu item")
async def get_menu_item(
    item_id: uuid.UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await inventory_service.get_item(db, item_id)


@router.post(
    "",
    response_model=MenuItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="[Owner] Add a menu item",
)
async def create_menu_item(
    request: MenuItemCreate,
    owner: Account = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    return await inventory_service.create_item(db, owner, **request.model_dump())


@router.patch("/{item_id}", response_model=MenuItemResponse, summary="Edit or restock a menu item")
async def update_menu_item(
    item_id: uuid.UUID,
    request: MenuItemUpdate,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """Only fields present in the body are changed."""
    return await inventory_service.update_item(
        db, item_id, account, request.model_dump(exclude_unset=True)
    )


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a menu item")
async def delete_menu_item(
    item_id: uuid.UUID,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    await inventory_service.delete_item(db, item_id, account)
