import logging
import math
import re
import time
from typing import List, Optional, Tuple

from bson.objectid import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query

from categories import slugify
from database import create_document, get_db, now_utc, serialize_doc
from middleware import sanitize_mongo
from schemas import Product as ProductSchema, ProductUpdate
from security import authorize_admin

logger = logging.getLogger(__name__)

router = APIRouter(tags=["products"])

DISCOUNT_MESSAGE = "İndirimli fiyat, normal fiyattan düşük olmalıdır"
DEFAULT_SORT = "-createdAt"
DEFAULT_LIMIT = 20
MAX_LIMIT = 100
# keeps skip inside a 64-bit BSON integer
MAX_PAGE = 100000

_SORT_KEY_RE = re.compile(r"^-?[A-Za-z_][A-Za-z0-9_.]*$")
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


# ----------------------- Helpers -----------------------
def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_sku() -> str:
    return f"PRD-{to_base36(int(time.time() * 1000))}".upper()


def parse_number(value: Optional[str]) -> Optional[float]:
    if value is None or str(value).strip() == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_positive_int(value: Optional[str], default: int, maximum: int) -> int:
    try:
        number = int(str(value))
    except (TypeError, ValueError):
        return default
    return min(number, maximum) if number > 0 else default


def parse_sort(sort: Optional[str]) -> List[Tuple[str, int]]:
    """Turn "-createdAt basePrice" into a pymongo sort list."""
    keys = []
    for token in (sort or DEFAULT_SORT).replace(",", " ").split():
        if not _SORT_KEY_RE.match(token):
            continue
        if token.startswith("-"):
            keys.append((token[1:], -1))
        else:
            keys.append((token, 1))
    return keys or [("createdAt", -1)]


def with_virtuals(product: dict) -> dict:
    base = product.get("basePrice") or 0
    discounted = product.get("discountedPrice")
    product["effectivePrice"] = discounted or base
    if discounted and base and discounted < base:
        product["discountPercentage"] = round((base - discounted) / base * 100)
    else:
        product["discountPercentage"] = 0
    product["totalStock"] = sum(v.get("stock", 0) for v in product.get("variants") or [])
    return product


def serialize_products(db, products: List[dict]) -> List[dict]:
    """Serialize products with their category reduced to id, name and slug."""
    category_ids = {p["category"] for p in products if isinstance(p.get("category"), ObjectId)}
    categories = {}
    if category_ids:
        for cat in db["category"].find({"_id": {"$in": list(category_ids)}}, {"name": 1, "slug": 1}):
            categories[cat["_id"]] = serialize_doc(cat)
    out = []
    for product in products:
        item = with_virtuals(serialize_doc(product))
        item["category"] = categories.get(product.get("category"), item.get("category"))
        out.append(item)
    return out


def check_discount(base_price: Optional[float], discounted_price: Optional[float]) -> None:
    if base_price is None or discounted_price is None:
        return
    if discounted_price >= base_price:
        raise HTTPException(status_code=400, detail=DISCOUNT_MESSAGE)


def product_document(data: dict) -> dict:
    if data.get("category"):
        data["category"] = ObjectId(data["category"])
    if data.get("dimensions"):
        data["dimensions"] = sanitize_mongo(data["dimensions"])
    if data.get("sku"):
        data["sku"] = data["sku"].upper()
    if data.get("slug"):
        data["slug"] = data["slug"].lower()
    return data


# ----------------------- Routes -----------------------
@router.get("")
def list_products(
    category: Optional[str] = None,
    min_price: Optional[str] = Query(None, alias="minPrice"),
    max_price: Optional[str] = Query(None, alias="maxPrice"),
    search: Optional[str] = None,
    sort: Optional[str] = DEFAULT_SORT,
    page: Optional[str] = "1",
    limit: Optional[str] = str(DEFAULT_LIMIT),
    db=Depends(get_db),
):
    filt = {"active": True}
    if category:
        filt["category"] = ObjectId(category)

    low = parse_number(min_price)
    high = parse_number(max_price)
    if low is not None or high is not None:
        price = {}
        if low is not None:
            price["$gte"] = low
        if high is not None:
            price["$lte"] = high
        filt["basePrice"] = price

    if search and search.strip():
        filt["$text"] = {"$search": search.strip()}

    page_num = parse_positive_int(page, 1, MAX_PAGE)
    limit_num = parse_positive_int(limit, DEFAULT_LIMIT, MAX_LIMIT)
    skip = (page_num - 1) * limit_num

    cursor = db["product"].find(filt).sort(parse_sort(sort)).skip(skip).limit(limit_num)
    products = serialize_products(db, list(cursor))
    # separate count; not read in the same snapshot as the page
    total = db["product"].count_documents(filt)

    return {
        "count": len(products),
        "total": total,
        "page": page_num,
        "totalPages": math.ceil(total / limit_num),
        "products": products,
    }


@router.get("/{slug}")
def get_product(slug: str, db=Depends(get_db)):
    product = db["product"].find_one({"slug": slug, "active": True})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"product": serialize_products(db, [product])[0]}


@router.post("", status_code=201)
def create_product(body: ProductSchema, admin=Depends(authorize_admin), db=Depends(get_db)):
    check_discount(body.base_price, body.discounted_price)

    data = product_document(body.model_dump(by_alias=True, exclude_none=True))
    data["slug"] = data.get("slug") or slugify(body.name)
    data["sku"] = data.get("sku") or generate_sku()
    if not data["slug"]:
        raise HTTPException(status_code=400, detail="Product slug could not be derived from its name")

    if db["product"].find_one({"slug": data["slug"]}):
        raise HTTPException(status_code=409, detail="Product with this slug already exists")
    if db["product"].find_one({"sku": data["sku"]}):
        raise HTTPException(status_code=409, detail="Product with this SKU already exists")
    if not db["category"].find_one({"_id": data["category"]}):
        raise HTTPException(status_code=400, detail="Category not found")

    product_id = create_document("product", data, db)
    created = db["product"].find_one({"_id": ObjectId(product_id)})
    logger.info("Created product %s (%s)", created["slug"], created["sku"])
    return {"message": "Product created successfully", "product": serialize_products(db, [created])[0]}


@router.put("/{product_id}")
def update_product(product_id: str, body: ProductUpdate, admin=Depends(authorize_admin), db=Depends(get_db)):
    oid = ObjectId(product_id)
    existing = db["product"].find_one({"_id": oid})
    if not existing:
        raise HTTPException(status_code=404, detail="Product not found")

    fields = body.model_fields_set
    remove_discount = "discounted_price" in fields and body.discounted_price is None

    base_price = body.base_price if body.base_price is not None else existing.get("basePrice")
    if body.discounted_price is not None:
        check_discount(base_price, body.discounted_price)
    elif body.base_price is not None and not remove_discount:
        check_discount(body.base_price, existing.get("discountedPrice"))

    update = product_document(body.model_dump(by_alias=True, exclude_none=True, exclude_unset=True))
    if "category" in update and not db["category"].find_one({"_id": update["category"]}):
        raise HTTPException(status_code=400, detail="Category not found")
    if "slug" in update and db["product"].find_one({"slug": update["slug"], "_id": {"$ne": oid}}):
        raise HTTPException(status_code=409, detail="Product with this slug already exists")
    if "sku" in update and db["product"].find_one({"sku": update["sku"], "_id": {"$ne": oid}}):
        raise HTTPException(status_code=409, detail="Product with this SKU already exists")

    operations = {"$set": {**update, "updatedAt": now_utc()}}
    if remove_discount:
        operations["$unset"] = {"discountedPrice": ""}
    db["product"].update_one({"_id": oid}, operations)

    product = db["product"].find_one({"_id": oid})
    return {"message": "Product updated successfully", "product": serialize_products(db, [product])[0]}


@router.delete("/{product_id}")
def delete_product(product_id: str, admin=Depends(authorize_admin), db=Depends(get_db)):
    res = db["product"].delete_one({"_id": ObjectId(product_id)})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"message": "Product deleted successfully"}
