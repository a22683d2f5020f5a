import logging

from bson.objectid import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pymongo.errors import DuplicateKeyError

from config import get_config
from database import create_document, get_db, now_utc, serialize_doc
from middleware import auth_limiter
from schemas import (
    ChangePasswordBody,
    ForgotPasswordBody,
    LoginBody,
    ProfileUpdate,
    RefreshBody,
    RegisterBody,
    ResetPasswordBody,
    User as UserSchema,
)
from security import (
    REFRESH,
    TokenError,
    TokenPayload,
    authenticate,
    epoch_ms,
    generate_reset_code,
    hash_password,
    hash_reset_code,
    issue_access_token,
    issue_refresh_token,
    reset_code_expiry,
    verify_password,
    verify_token,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

PRIVATE_FIELDS = ("passwordHash", "resetPasswordToken", "resetPasswordExpires", "addresses")


def public_user(doc: dict) -> dict:
    user = serialize_doc({k: v for k, v in doc.items() if k not in PRIVATE_FIELDS})
    user.setdefault("role", "customer")
    return user


def token_pair(user: dict) -> dict:
    return {
        "accessToken": issue_access_token(user["id"], user["role"]),
        "refreshToken": issue_refresh_token(user["id"], user["role"]),
    }


@router.post("/register", status_code=201, dependencies=[Depends(auth_limiter)])
def register(body: RegisterBody, db=Depends(get_db)):
    email = body.email.lower()
    if db["user"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="Email already registered")
    user = UserSchema(
        name=body.name,
        email=email,
        password_hash=hash_password(body.password),
        role=body.role or "customer",
    )
    try:
        user_id = create_document("user", user, db)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Email already registered")
    created = public_user(db["user"].find_one({"_id": ObjectId(user_id)}))
    logger.info("Registered user %s (%s)", created["email"], created["role"])
    return {"message": "User registered successfully", "user": created, **token_pair(created)}


@router.post("/login", dependencies=[Depends(auth_limiter)])
def login(body: LoginBody, db=Depends(get_db)):
    doc = db["user"].find_one({"email": body.email.lower()})
    if not doc or not verify_password(body.password, doc.get("passwordHash")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    user = public_user(doc)
    return {"message": "Login successful", "user": user, **token_pair(user)}


@router.post("/refresh", dependencies=[Depends(auth_limiter)])
def refresh(body: RefreshBody):
    if not body.refresh_token:
        raise HTTPException(status_code=400, detail="Refresh token required")
    try:
        payload = verify_token(body.refresh_token, expected_type=REFRESH)
    except TokenError:
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")
    return {"accessToken": issue_access_token(payload.user_id, payload.role)}


@router.get("/me")
def get_profile(user: TokenPayload = Depends(authenticate), db=Depends(get_db)):
    doc = db["user"].find_one({"_id": ObjectId(user.user_id)})
    if not doc:
        raise HTTPException(status_code=404, detail="User not found")
    return {"user": public_user(doc)}


@router.patch("/profile")
def update_profile(body: ProfileUpdate, user: TokenPayload = Depends(authenticate), db=Depends(get_db)):
    user_id = ObjectId(user.user_id)
    updates = {}
    if body.name:
        updates["name"] = body.name
    if body.email:
        email = body.email.lower()
        if db["user"].find_one({"email": email, "_id": {"$ne": user_id}}):
            raise HTTPException(status_code=400, detail="Email already in use")
        updates["email"] = email
    if "phone" in body.model_fields_set:
        updates["phone"] = body.phone
    if updates:
        updates["updatedAt"] = now_utc()
        res = db["user"].update_one({"_id": user_id}, {"$set": updates})
        if res.matched_count == 0:
            raise HTTPException(status_code=404, detail="User not found")
    doc = db["user"].find_one({"_id": user_id})
    if not doc:
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "Profile updated successfully", "user": public_user(doc)}


@router.post("/change-password")
def change_password(body: ChangePasswordBody, user: TokenPayload = Depends(authenticate), db=Depends(get_db)):
    user_id = ObjectId(user.user_id)
    doc = db["user"].find_one({"_id": user_id})
    if not doc:
        raise HTTPException(status_code=404, detail="User not found")
    if not verify_password(body.current_password, doc.get("passwordHash")):
        raise HTTPException(status_code=400, detail="Mevcut şifre hatalı")
    db["user"].update_one(
        {"_id": user_id},
        {"$set": {"passwordHash": hash_password(body.new_password), "updatedAt": now_utc()}},
    )
    return {"message": "Şifre başarıyla güncellendi"}


@router.post("/forgot-password", dependencies=[Depends(auth_limiter)])
def forgot_password(body: ForgotPasswordBody, db=Depends(get_db)):
    email = body.email.lower()
    doc = db["user"].find_one({"email": email})
    if not doc:
        # same answer whether or not the account exists
        return {"message": "Eğer bu email kayıtlıysa, şifre sıfırlama kodu gönderildi"}

    code = generate_reset_code()
    db["user"].update_one(
        {"_id": doc["_id"]},
        {"$set": {"resetPasswordToken": hash_reset_code(code), "resetPasswordExpires": reset_code_expiry()}},
    )
    # email delivery is not wired up; the code goes to the log
    logger.info("Password reset code for %s: %s", email, code)

    response = {"message": "Eğer bu email kayıtlıysa, şifre sıfırlama kodu gönderildi"}
    if not get_config().is_production:
        response["message"] = f"Şifre sıfırlama kodu: {code} (15 dakika geçerli)"
        response["resetToken"] = code
    return response


@router.post("/reset-password", dependencies=[Depends(auth_limiter)])
def reset_password(body: ResetPasswordBody, db=Depends(get_db)):
    if not body.email or not body.reset_token or not body.new_password:
        raise HTTPException(status_code=400, detail="Email, kod ve yeni şifre gereklidir")
    if len(body.new_password) < 6:
        raise HTTPException(status_code=400, detail="Şifre en az 6 karakter olmalıdır")

    doc = db["user"].find_one({
        "email": body.email.lower(),
        "resetPasswordToken": hash_reset_code(body.reset_token),
        "resetPasswordExpires": {"$gt": epoch_ms()},
    })
    if not doc:
        raise HTTPException(status_code=400, detail="Geçersiz veya süresi dolmuş kod")

    db["user"].update_one(
        {"_id": doc["_id"]},
        {
            "$set": {"passwordHash": hash_password(body.new_password), "updatedAt": now_utc()},
            "$unset": {"resetPasswordToken": "", "resetPasswordExpires": ""},
        },
    )
    return {"message": "Şifre başarıyla güncellendi"}
