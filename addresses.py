from typing import List

from bson.objectid import ObjectId
from fastapi import APIRouter, Depends, HTTPException

from database import get_db, now_utc, serialize_doc
from schemas import Address as AddressSchema, AddressUpdate
from security import TokenPayload, authenticate

router = APIRouter(tags=["addresses"], dependencies=[Depends(authenticate)])


def load_user(db, user: TokenPayload) -> dict:
    doc = db["user"].find_one({"_id": ObjectId(user.user_id)}, {"addresses": 1})
    if not doc:
        raise HTTPException(status_code=404, detail="User not found")
    doc.setdefault("addresses", [])
    return doc


def find_address(addresses: List[dict], address_id: str) -> dict:
    oid = ObjectId(address_id)
    for address in addresses:
        if address.get("_id") == oid:
            return address
    raise HTTPException(status_code=404, detail="Address not found")


def normalize_defaults(addresses: List[dict]) -> List[dict]:
    """Keep at most one default; promote the first address when none is set."""
    seen_default = False
    for address in addresses:
        if address.get("isDefault") and not seen_default:
            seen_default = True
        else:
            address["isDefault"] = False
    if addresses and not seen_default:
        addresses[0]["isDefault"] = True
    return addresses


def save_addresses(db, doc: dict) -> List[dict]:
    addresses = normalize_defaults(doc["addresses"])
    db["user"].update_one({"_id": doc["_id"]}, {"$set": {"addresses": addresses, "updatedAt": now_utc()}})
    return [serialize_doc(a) for a in addresses]


@router.get("")
def list_addresses(user: TokenPayload = Depends(authenticate), db=Depends(get_db)):
    addresses = [serialize_doc(a) for a in load_user(db, user)["addresses"]]
    return {"count": len(addresses), "addresses": addresses}


@router.post("", status_code=201)
def add_address(body: AddressSchema, user: TokenPayload = Depends(authenticate), db=Depends(get_db)):
    doc = load_user(db, user)
    address = {"_id": ObjectId(), **body.model_dump(by_alias=True)}
    if not doc["addresses"]:
        address["isDefault"] = True
    if address["isDefault"]:
        for other in doc["addresses"]:
            other["isDefault"] = False
    doc["addresses"].append(address)
    return {"message": "Adres eklendi", "addresses": save_addresses(db, doc)}


@router.put("/{address_id}")
def update_address(address_id: str, body: AddressUpdate, user: TokenPayload = Depends(authenticate), db=Depends(get_db)):
    doc = load_user(db, user)
    address = find_address(doc["addresses"], address_id)
    address.update(body.model_dump(by_alias=True, exclude_none=True))
    return {"message": "Adres güncellendi", "addresses": save_addresses(db, doc)}


@router.delete("/{address_id}")
def delete_address(address_id: str, user: TokenPayload = Depends(authenticate), db=Depends(get_db)):
    doc = load_user(db, user)
    address = find_address(doc["addresses"], address_id)
    doc["addresses"] = [a for a in doc["addresses"] if a is not address]
    # normalize_defaults promotes the first remaining address if the default went away
    return {"message": "Adres silindi", "addresses": save_addresses(db, doc)}


@router.put("/{address_id}/set-default")
def set_default_address(address_id: str, user: TokenPayload = Depends(authenticate), db=Depends(get_db)):
    doc = load_user(db, user)
    target = find_address(doc["addresses"], address_id)
    for address in doc["addresses"]:
        address["isDefault"] = address is target
    return {"message": "Varsayılan adres güncellendi", "addresses": save_addresses(db, doc)}
