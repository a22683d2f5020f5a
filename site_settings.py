import logging

from bson.objectid import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pymongo import ReturnDocument

from database import get_db, get_documents, now_utc, serialize_doc
from middleware import sanitize_mongo
from products import serialize_products
from schemas import SettingsUpdate, SiteSettings
from security import authorize_admin

logger = logging.getLogger(__name__)

router = APIRouter(tags=["settings"])

SETTINGS_KEY = "site"


def load_settings(db) -> dict:
    """Return the single settings document, creating it with defaults on first read."""
    stamp = now_utc()
    defaults = SiteSettings().model_dump(by_alias=True)
    return db["settings"].find_one_and_update(
        {"key": SETTINGS_KEY},
        {"$setOnInsert": {**defaults, "key": SETTINGS_KEY, "createdAt": stamp, "updatedAt": stamp}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


def with_featured_products(db, settings: dict) -> dict:
    ids = [i for i in settings.get("featuredProducts") or [] if isinstance(i, ObjectId)]
    out = serialize_doc(settings)
    if not ids:
        out["featuredProducts"] = []
        return out
    products = {p["_id"]: p for p in get_documents("product", {"_id": {"$in": ids}, "active": True}, database=db)}
    # keep the admin's chosen order
    ordered = [products[i] for i in ids if i in products]
    out["featuredProducts"] = serialize_products(db, ordered)
    return out


@router.get("")
def get_settings(db=Depends(get_db)):
    return {"settings": with_featured_products(db, load_settings(db))}


@router.put("")
def update_settings(body: SettingsUpdate, admin=Depends(authorize_admin), db=Depends(get_db)):
    # provided blocks are replaced whole, defaults included
    data = body.model_dump(by_alias=True, include=body.model_fields_set)
    update = sanitize_mongo({k: v for k, v in data.items() if v is not None})
    if not update:
        raise HTTPException(status_code=400, detail="No settings provided")
    if "featuredProducts" in update:
        update["featuredProducts"] = [ObjectId(i) for i in update["featuredProducts"]]

    load_settings(db)
    update["updatedAt"] = now_utc()
    settings = db["settings"].find_one_and_update(
        {"key": SETTINGS_KEY},
        {"$set": update},
        return_document=ReturnDocument.AFTER,
    )
    logger.info("Site settings updated: %s", ", ".join(sorted(k for k in update if k != "updatedAt")))
    return {"message": "Ayarlar güncellendi", "settings": with_featured_products(db, settings)}
