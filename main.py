import logging
import os
from contextlib import asynccontextmanager

from bson.objectid import ObjectId
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

import addresses
import auth
import categories
import orders
import products
import site_settings
import uploads
from config import configure_logging, get_config
from database import create_document, db, ensure_indexes, get_db, now_utc
from errors import register_exception_handlers
from middleware import AuditLogMiddleware, SecurityHeadersMiddleware, api_limiter
from schemas import User as UserSchema
from security import hash_password

config = get_config()
configure_logging(config)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config.require_jwt_secret()
    if db is not None:
        ensure_indexes(db)
    else:
        logger.warning("DATABASE_URL / DATABASE_NAME not set; running without a database")
    logger.info("Server starting on port %s (%s)", config.port, config.environment)
    yield


app = FastAPI(title="Former Mobilya API", lifespan=lifespan)

# added last runs first
app.add_middleware(AuditLogMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)
# outermost: the client address is settled before any limiter reads it
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=config.trusted_proxies)

register_exception_handlers(app)

# ----------------------- Routers -----------------------
limited = [Depends(api_limiter)]
app.include_router(auth.router, prefix="/api/auth", dependencies=limited)
app.include_router(categories.router, prefix="/api/categories", dependencies=limited)
app.include_router(products.router, prefix="/api/products", dependencies=limited)
app.include_router(orders.router, prefix="/api/orders", dependencies=limited)
app.include_router(addresses.router, prefix="/api/addresses", dependencies=limited)
app.include_router(site_settings.router, prefix="/api/settings", dependencies=limited)
app.include_router(uploads.router, prefix="/api/upload", dependencies=limited)

os.makedirs(config.upload_dir, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=config.upload_dir, check_dir=False), name="uploads")


# ----------------------- Health -----------------------
@app.get("/health")
def health():
    return {
        "status": "OK",
        "message": "Former Mobilya backend API is running",
        "timestamp": now_utc().isoformat(),
        "environment": get_config().environment,
    }


@app.get("/api")
def api_index():
    return {
        "message": "Former Mobilya API v1.0",
        "endpoints": {
            "health": "/health",
            "auth": "/api/auth",
            "categories": "/api/categories",
            "products": "/api/products",
            "orders": "/api/orders",
            "upload": "/api/upload",
            "settings": "/api/settings",
            "addresses": "/api/addresses",
        },
    }


# ----------------------- Seed Demo Data -----------------------
DEMO_CATEGORIES = [
    {
        "name": "Oturma Odası",
        "slug": "oturma-odasi",
        "description": "Konforlu ve şık oturma odası mobilyaları",
        "image": "https://images.unsplash.com/photo-1555041469-a586c61ea9bc?w=800&q=80",
    },
    {
        "name": "Yatak Odası",
        "slug": "yatak-odasi",
        "description": "Huzurlu uyku için yatak odası mobilyaları",
        "image": "https://images.unsplash.com/photo-1505693314120-0d443867891c?w=800&q=80",
    },
    {
        "name": "Yemek Odası",
        "slug": "yemek-odasi",
        "description": "Şık ve fonksiyonel yemek odası takımları",
        "image": "https://images.unsplash.com/photo-1617806118233-18e1de247200?w=800&q=80",
    },
    {
        "name": "Çalışma Odası",
        "slug": "calisma-odasi",
        "description": "Verimli çalışma alanları için mobilyalar",
        "image": "https://images.unsplash.com/photo-1524758631624-e2822e304c36?w=800&q=80",
    },
]

# category is the index into DEMO_CATEGORIES
DEMO_PRODUCTS = [
    {
        "name": "Modern Köşe Koltuk",
        "sku": "MOD-0001",
        "description": "Geniş ve rahat oturum sağlayan, modern tasarımlı L köşe koltuk takımı.",
        "basePrice": 25000,
        "discountedPrice": 22500,
        "images": ["https://images.unsplash.com/photo-1555041469-a586c61ea9bc?w=800&q=80"],
        "category": 0,
        "variants": [
            {"name": "Standart - Gri", "options": [{"name": "Renk", "values": ["Gri"]}], "stock": 15},
            {"name": "Standart - Bej", "options": [{"name": "Renk", "values": ["Bej"]}], "stock": 10},
        ],
        "dimensions": {"width": 280, "height": 85, "depth": 170, "unit": "cm"},
        "materials": ["Gürgen İskelet", "32 Dansite Sünger", "Keten Kumaş"],
        "featured": True,
    },
    {
        "name": "Berjer Koltuk",
        "sku": "BER-0002",
        "description": "Tekli, konforlu okuma koltuğu. Kadife kumaş ve ahşap ayaklar.",
        "basePrice": 6000,
        "discountedPrice": 5400,
        "images": ["https://images.unsplash.com/photo-1586023492125-27b2c045efd7?w=800&q=80"],
        "category": 0,
        "variants": [{"name": "Yeşil", "options": [{"name": "Renk", "values": ["Yeşil"]}], "stock": 12}],
        "materials": ["Kadife Kumaş", "Kayın Ayak"],
        "featured": True,
    },
    {
        "name": "Çift Kişilik Karyola",
        "sku": "CIF-0003",
        "description": "Kapitoneli başlıklı, masif ahşap iskeletli çift kişilik karyola.",
        "basePrice": 14000,
        "images": ["https://images.unsplash.com/photo-1505693314120-0d443867891c?w=800&q=80"],
        "category": 1,
        "variants": [{"name": "160x200", "options": [{"name": "Boyut", "values": ["160x200"]}], "stock": 6}],
        "dimensions": {"width": 170, "height": 120, "depth": 215, "unit": "cm"},
        "materials": ["Masif Ahşap", "Kadife Kumaş"],
        "featured": False,
    },
    {
        "name": "Masif Yemek Masası",
        "sku": "MAS-0004",
        "description": "Altı kişilik, doğal ceviz masif yemek masası.",
        "basePrice": 18000,
        "discountedPrice": 16500,
        "images": ["https://images.unsplash.com/photo-1617806118233-18e1de247200?w=800&q=80"],
        "category": 2,
        "variants": [{"name": "Ceviz", "options": [{"name": "Renk", "values": ["Ceviz"]}], "stock": 4}],
        "materials": ["Ceviz Masif"],
        "featured": True,
    },
    {
        "name": "Çalışma Masası",
        "sku": "CAL-0005",
        "description": "Kablo kanallı, çekmeceli minimalist çalışma masası.",
        "basePrice": 4500,
        "images": ["https://images.unsplash.com/photo-1524758631624-e2822e304c36?w=800&q=80"],
        "category": 3,
        "variants": [{"name": "120cm", "options": [{"name": "Boyut", "values": ["120cm"]}], "stock": 20}],
        "materials": ["MDF Lam", "Metal Ayak"],
        "featured": False,
    },
]


@app.post("/seed")
def seed(database=Depends(get_db)):
    if get_config().is_production:
        raise HTTPException(status_code=404, detail="The requested endpoint does not exist")
    if database["product"].count_documents({}) > 0:
        return {"seeded": False, "message": "Products already exist"}

    category_ids = []
    for index, cat in enumerate(DEMO_CATEGORIES):
        category_ids.append(create_document("category", {**cat, "parent": None, "displayOrder": index}, database))

    for item in DEMO_PRODUCTS:
        product = {
            **item,
            "slug": categories.slugify(item["name"]),
            "category": ObjectId(category_ids[item["category"]]),
            "active": True,
        }
        create_document("product", product, database)

    if database["user"].count_documents({"role": "admin"}) == 0:
        admin = UserSchema(
            name="Admin",
            email="admin@formermobilya.com",
            password_hash=hash_password("admin123"),
            role="admin",
        )
        create_document("user", admin, database)

    logger.info("Seeded %d categories and %d products", len(category_ids), len(DEMO_PRODUCTS))
    return {
        "seeded": True,
        "categories": database["category"].count_documents({}),
        "products": database["product"].count_documents({}),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.port)
