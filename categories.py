import logging
import re
from typing import List, Optional

from bson.objectid import ObjectId
from fastapi import APIRouter, Depends, HTTPException

from database import create_document, get_db, now_utc, serialize_doc
from schemas import Category as CategorySchema, CategoryUpdate, ReorderBody
from security import authorize_admin

logger = logging.getLogger(__name__)

router = APIRouter(tags=["categories"])

CATEGORY_SORT = [("displayOrder", 1), ("name", 1)]

_TURKISH_FOLD = str.maketrans({"ş": "s", "ğ": "g", "ü": "u", "ı": "i", "ö": "o", "ç": "c"})


def slugify(text: str) -> str:
    slug = str(text).lower().strip().translate(_TURKISH_FOLD)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^\w\-]+", "", slug, flags=re.ASCII)
    return re.sub(r"-{2,}", "-", slug)


def with_subcategories(categories: List[dict]) -> List[dict]:
    """Attach each category's direct children, resolved from parent pointers."""
    children = {}
    for cat in categories:
        if cat.get("parent") is not None:
            children.setdefault(cat["parent"], []).append(cat)
    out = []
    for cat in categories:
        item = serialize_doc(cat)
        item["subcategories"] = [serialize_doc(c) for c in children.get(cat["_id"], [])]
        out.append(item)
    return out


def resolve_parent(db, parent: Optional[str], category_id: Optional[ObjectId] = None) -> Optional[ObjectId]:
    """Validate a parent reference: it must exist and must not create a cycle."""
    if not parent:
        return None
    parent_id = ObjectId(parent)
    if category_id is not None and parent_id == category_id:
        raise HTTPException(status_code=400, detail="A category cannot be its own parent")
    if not db["category"].find_one({"_id": parent_id}):
        raise HTTPException(status_code=400, detail="Parent category not found")
    if category_id is not None:
        seen = set()
        current = parent_id
        while current is not None and current not in seen:
            if current == category_id:
                raise HTTPException(status_code=400, detail="A category cannot be moved under its own subcategory")
            seen.add(current)
            doc = db["category"].find_one({"_id": current}, {"parent": 1})
            current = doc.get("parent") if doc else None
    return parent_id


@router.get("")
def list_categories(db=Depends(get_db)):
    categories = with_subcategories(list(db["category"].find().sort(CATEGORY_SORT)))
    return {"count": len(categories), "categories": categories}


@router.patch("/reorder")
def reorder_categories(body: ReorderBody, admin=Depends(authorize_admin), db=Depends(get_db)):
    logger.info("Reordering %d categories", len(body.orders))
    # one independent write per category; a failure part way leaves earlier writes in place
    for entry in body.orders:
        logger.debug("Category %s -> displayOrder %s", entry.id, entry.display_order)
        db["category"].update_one(
            {"_id": ObjectId(entry.id)},
            {"$set": {"displayOrder": entry.display_order, "updatedAt": now_utc()}},
        )
    categories = [serialize_doc(c) for c in db["category"].find().sort(CATEGORY_SORT)]
    return {"message": "Categories reordered successfully", "categories": categories}


@router.get("/{slug}")
def get_category(slug: str, db=Depends(get_db)):
    category = db["category"].find_one({"slug": slug})
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    item = serialize_doc(category)
    item["subcategories"] = [serialize_doc(c) for c in db["category"].find({"parent": category["_id"]}).sort(CATEGORY_SORT)]
    return {"category": item}


@router.post("", status_code=201)
def create_category(body: CategorySchema, admin=Depends(authorize_admin), db=Depends(get_db)):
    slug = (body.slug or slugify(body.name)).lower()
    if not slug:
        raise HTTPException(status_code=400, detail="Category slug could not be derived from its name")
    if db["category"].find_one({"slug": slug}):
        raise HTTPException(status_code=409, detail="Category with this slug already exists")
    doc = {
        "name": body.name,
        "slug": slug,
        "description": body.description,
        "parent": resolve_parent(db, body.parent),
        "image": body.image,
        "displayOrder": 0,
    }
    category_id = create_document("category", doc, db)
    created = db["category"].find_one({"_id": ObjectId(category_id)})
    return {"message": "Category created successfully", "category": serialize_doc(created)}


@router.put("/{category_id}")
def update_category(category_id: str, body: CategoryUpdate, admin=Depends(authorize_admin), db=Depends(get_db)):
    oid = ObjectId(category_id)
    if not db["category"].find_one({"_id": oid}):
        raise HTTPException(status_code=404, detail="Category not found")

    fields = body.model_fields_set
    update = {}
    for name in ("name", "description", "image"):
        if name in fields:
            update[name] = getattr(body, name)
    if "slug" in fields and body.slug:
        slug = body.slug.lower()
        if db["category"].find_one({"slug": slug, "_id": {"$ne": oid}}):
            raise HTTPException(status_code=409, detail="Category with this slug already exists")
        update["slug"] = slug
    if "parent" in fields:
        update["parent"] = resolve_parent(db, body.parent, oid)

    if update:
        update["updatedAt"] = now_utc()
        db["category"].update_one({"_id": oid}, {"$set": update})
    category = db["category"].find_one({"_id": oid})
    return {"message": "Category updated successfully", "category": serialize_doc(category)}


@router.delete("/{category_id}")
def delete_category(category_id: str, admin=Depends(authorize_admin), db=Depends(get_db)):
    oid = ObjectId(category_id)
    res = db["category"].delete_one({"_id": oid})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Category not found")
    db["category"].update_many({"parent": oid}, {"$set": {"parent": None}})
    return {"message": "Category deleted successfully"}
