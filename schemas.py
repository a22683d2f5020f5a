"""
Database Schemas for the furniture storefront

Each collection model maps to one MongoDB collection (lowercase class name:
User -> "user", Category -> "category", Product -> "product", Order -> "order").
Documents are stored with camelCase keys, the same shape the API speaks, so every
model uses a camelCase alias generator while Python code reads snake_case.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

PHONE_PATTERN = r"^[0-9]{10,11}$"

Role = Literal["admin", "customer"]
PaymentStatus = Literal["pending", "paid", "failed", "refunded"]
OrderStatus = Literal["pending", "hazırlanıyor", "kargolandı", "teslim edildi", "iptal edildi"]
PaymentMethod = Literal["credit_card", "bank_transfer"]

ORDER_PENDING = "pending"
PAYMENT_PENDING = "pending"
DEFAULT_PAYMENT_METHOD = "credit_card"


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ----------------------- Users -----------------------
class Address(CamelModel):
    title: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    district: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    is_default: bool = False


class AddressUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1)
    full_name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = Field(None, min_length=1)
    city: Optional[str] = Field(None, min_length=1)
    district: Optional[str] = Field(None, min_length=1)
    address: Optional[str] = Field(None, min_length=1)


class User(CamelModel):
    name: str = Field(..., min_length=2, max_length=100, description="Full name")
    email: EmailStr
    password_hash: str = Field(..., description="bcrypt hash")
    role: Role = "customer"
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    addresses: List[Address] = []

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class RegisterBody(CamelModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=16)
    role: Optional[Role] = None


class LoginBody(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshBody(CamelModel):
    refresh_token: Optional[str] = None


class ProfileUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)


class ChangePasswordBody(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=16)


class ForgotPasswordBody(CamelModel):
    email: EmailStr


class ResetPasswordBody(CamelModel):
    email: Optional[str] = None
    reset_token: Optional[str] = None
    new_password: Optional[str] = Field(None, max_length=16)


# ----------------------- Catalog -----------------------
class Category(CamelModel):
    name: str = Field(..., min_length=2, max_length=100)
    slug: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    parent: Optional[str] = None
    image: Optional[str] = None


class CategoryUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    slug: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    parent: Optional[str] = None
    image: Optional[str] = None


class CategoryOrder(CamelModel):
    id: str
    display_order: int


class ReorderBody(CamelModel):
    orders: List[CategoryOrder]


class Dimensions(CamelModel):
    width: Optional[float] = Field(None, ge=0)
    height: Optional[float] = Field(None, ge=0)
    depth: Optional[float] = Field(None, ge=0)
    unit: str = "cm"


class VariantOption(CamelModel):
    name: str = Field(..., min_length=1)
    values: List[str]


class Variant(CamelModel):
    name: str = Field(..., min_length=1)
    options: List[VariantOption] = []
    stock: int = Field(0, ge=0)
    price_override: Optional[float] = Field(None, ge=0)


class Product(CamelModel):
    name: str = Field(..., min_length=2, max_length=200)
    slug: Optional[str] = Field(None, min_length=2, max_length=200)
    sku: Optional[str] = Field(None, min_length=2, max_length=50)
    description: str = Field(..., min_length=10, max_length=5000)
    category: str = Field(..., min_length=1, description="Category id")
    base_price: float = Field(..., ge=0)
    discounted_price: Optional[float] = Field(None, ge=0)
    images: List[str] = Field(..., min_length=1)
    model_3d: Optional[str] = Field(None, alias="model3D")
    dimensions: Optional[Dimensions] = None
    materials: List[str] = []
    variants: List[Variant] = []
    featured: bool = False
    active: bool = True


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    slug: Optional[str] = Field(None, min_length=2, max_length=200)
    sku: Optional[str] = Field(None, min_length=2, max_length=50)
    description: Optional[str] = Field(None, min_length=10, max_length=5000)
    category: Optional[str] = Field(None, min_length=1)
    base_price: Optional[float] = Field(None, ge=0)
    discounted_price: Optional[float] = Field(None, ge=0)
    images: Optional[List[str]] = Field(None, min_length=1)
    model_3d: Optional[str] = Field(None, alias="model3D")
    dimensions: Optional[Dimensions] = None
    materials: Optional[List[str]] = None
    variants: Optional[List[Variant]] = None
    featured: Optional[bool] = None
    active: Optional[bool] = None


# ----------------------- Orders -----------------------
class OrderItem(CamelModel):
    product: str = Field(..., min_length=1, description="Product id at order time")
    product_name: str = Field(..., min_length=1)
    product_image: str = Field(..., min_length=1)
    variant_id: Optional[str] = None
    variant_name: Optional[str] = None
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)
    total_price: float = Field(..., ge=0)


class ShippingAddress(CamelModel):
    full_name: str = Field(..., min_length=2)
    phone: str = Field(..., pattern=PHONE_PATTERN)
    city: str = Field(..., min_length=2)
    district: str = Field(..., min_length=2)
    address: str = Field(..., min_length=5)


class OrderCreate(CamelModel):
    items: List[OrderItem] = Field(..., min_length=1)
    shipping_address: ShippingAddress
    subtotal: float = Field(..., ge=0)
    shipping_cost: Optional[float] = Field(None, ge=0)
    total_amount: Optional[float] = Field(None, ge=0)
    payment_method: Optional[PaymentMethod] = None
    order_notes: Optional[str] = Field(None, max_length=500)


class OrderStatusUpdate(CamelModel):
    order_status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    cancel_reason: Optional[str] = Field(None, max_length=500)


# ----------------------- Settings -----------------------
class WhatsappSettings(CamelModel):
    enabled: bool = False
    phone_number: str = ""
    default_message: str = "Merhaba, Former Mobilya ile ilgili bilgi almak istiyorum."


class ContactSettings(CamelModel):
    email: str = "info@formermobilya.com"
    phone: str = ""
    address: str = ""


class SocialSettings(CamelModel):
    facebook: Optional[str] = None
    instagram: Optional[str] = None
    twitter: Optional[str] = None


class ContentBlock(CamelModel):
    enabled: bool = True
    title: str = ""
    content: str = ""


class StatItem(CamelModel):
    icon: str = "calendar"
    value: str = ""
    label: str = ""


class StatsBlock(CamelModel):
    enabled: bool = True
    items: List[StatItem] = []


class ValueItem(CamelModel):
    title: str = ""
    content: str = ""


class ValuesBlock(CamelModel):
    enabled: bool = True
    items: List[ValueItem] = []


class AboutPage(CamelModel):
    about: ContentBlock = ContentBlock(title="Hakkımızda")
    mission: ContentBlock = ContentBlock(title="Misyonumuz")
    vision: ContentBlock = ContentBlock(title="Vizyonumuz")
    stats: StatsBlock = StatsBlock()
    values: ValuesBlock = ValuesBlock()


class ContactPage(CamelModel):
    title: str = "İletişim"
    content: str = ""
    map_embed_url: str = ""


class StoreItem(CamelModel):
    name: str = ""
    address: str = ""
    phone: str = ""
    hours: str = ""


class StoresPage(CamelModel):
    enabled: bool = True
    items: List[StoreItem] = []


class TrustBadge(CamelModel):
    icon: str = ""
    title: str = ""
    description: str = ""


class SiteSettings(CamelModel):
    whatsapp: WhatsappSettings = WhatsappSettings()
    contact: ContactSettings = ContactSettings()
    social: SocialSettings = SocialSettings()
    about: AboutPage = AboutPage()
    contact_page: ContactPage = ContactPage()
    stores: StoresPage = StoresPage()
    trust_badges: List[TrustBadge] = [
        TrustBadge(icon="truck", title="Ücretsiz Kargo", description="5000 ₺ ve üzeri siparişlerde"),
        TrustBadge(icon="shield", title="Güvenli Ödeme", description="256-bit SSL ile korunur"),
        TrustBadge(icon="refresh", title="Kolay İade", description="14 gün içinde iade"),
    ]
    featured_products: List[str] = Field([], max_length=4)


class SettingsUpdate(CamelModel):
    whatsapp: Optional[WhatsappSettings] = None
    contact: Optional[ContactSettings] = None
    social: Optional[SocialSettings] = None
    about: Optional[AboutPage] = None
    contact_page: Optional[ContactPage] = None
    stores: Optional[StoresPage] = None
    trust_badges: Optional[List[TrustBadge]] = None
    featured_products: Optional[List[str]] = Field(None, max_length=4)
