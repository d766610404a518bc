from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List, Optional

from bistro.db import get_db
from bistro.schemas.menu import MenuItemIn, MenuItemUpdate, PricedOptionIn
from bistro.models.core import MenuItem, MenuItemVariation, MenuItemAddOn, MenuCategory, User, UserRole
from bistro.models.common import utcnow
from bistro.deps import require_user, require_role
from bistro.util.rows import menu_row

router = APIRouter(prefix="/menu", tags=["menu"])


# ---------- helpers ----------

def _get_item(db: Session, item_id: str) -> MenuItem:
    m = db.get(MenuItem, item_id)
    if not m or m.deleted_at is not None:
        raise HTTPException(404, detail="Menu item not found")
    return m

def _check_unique_names(options: list[PricedOptionIn], what: str):
    # pricing looks options up by name, duplicates would be ambiguous
    names = [o.name.strip() for o in options]
    if len(names) != len(set(names)):
        raise HTTPException(400, detail=f"Duplicate {what} names")

def _variations(options: list[PricedOptionIn]) -> list[MenuItemVariation]:
    _check_unique_names(options, "variation")
    return [MenuItemVariation(name=o.name.strip(), price=o.price, position=i) for i, o in enumerate(options)]

def _add_ons(options: list[PricedOptionIn]) -> list[MenuItemAddOn]:
    _check_unique_names(options, "add-on")
    return [MenuItemAddOn(name=o.name.strip(), price=o.price, position=i) for i, o in enumerate(options)]


# ---------- ITEMS ----------

@router.get("/")
def list_items(
    category: Optional[str] = None,
    active: Optional[bool] = None,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    """
    Menu items for the order screen, grouped client-side by category.
    """
    q = db.query(MenuItem).filter(MenuItem.deleted_at.is_(None))

    if category:
        try:
            q = q.filter(MenuItem.category == MenuCategory(category))
        except ValueError:
            raise HTTPException(400, detail="invalid category")
    if active is not None:
        q = q.filter(MenuItem.is_active.is_(active))

    rows: List[MenuItem] = q.order_by(MenuItem.category, MenuItem.name).all()
    return [menu_row(m) for m in rows]


@router.get("/{item_id}")
def get_item(item_id: str, db: Session = Depends(get_db), user: User = Depends(require_user)):
    return menu_row(_get_item(db, item_id))


@router.post("/", status_code=201)
def create_item(
    body: MenuItemIn,
    db: Session = Depends(get_db),
    user: User = Depends(require_role(UserRole.ADMIN)),
):
    it = MenuItem(
        name=body.name.strip(),
        price=body.price,
        category=MenuCategory(body.category),
        description=body.description,
        is_active=body.is_active,
        variations=_variations(body.variations),
        add_ons=_add_ons(body.add_ons),
    )
    db.add(it)
    db.commit()
    db.refresh(it)
    return menu_row(it)


@router.put("/{item_id}")
def update_item(
    item_id: str,
    body: MenuItemUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_role(UserRole.ADMIN)),
):
    """
    Partial update. Passing ``variations`` or ``add_ons`` replaces the whole
    list; existing order lines keep the prices they were taken at.
    """
    it = _get_item(db, item_id)
    data = body.model_dump(exclude_unset=True)

    if data.get("name"):
        it.name = data["name"].strip()
    if data.get("price") is not None:
        it.price = data["price"]
    if data.get("category"):
        it.category = MenuCategory(data["category"])
    if "description" in data:
        it.description = data["description"]
    if data.get("is_active") is not None:
        it.is_active = data["is_active"]
    if body.variations is not None:
        it.variations = _variations(body.variations)
    if body.add_ons is not None:
        it.add_ons = _add_ons(body.add_ons)

    db.commit()
    db.refresh(it)
    return menu_row(it)


@router.delete("/{item_id}")
def delete_item(
    item_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_role(UserRole.ADMIN)),
):
    # soft delete: past order lines still point at the row
    it = _get_item(db, item_id)
    it.deleted_at = utcnow()
    it.is_active = False
    db.commit()
    return {"message": "Menu item deleted successfully"}
