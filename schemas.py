"""
Database Schemas for the Furniture Store

Each Pydantic model represents a collection in MongoDB. The collection name is the
lowercase of the class name (e.g., PaymentRequest -> "paymentrequest").
References to other documents are stored as id strings.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "completed", "rejected", "cancelled"]
PaymentMethod = Literal["credit_card", "paypal", "upi", "rupay", "bank_transfer", "cod"]
MessageStatus = Literal["unread", "read"]
Role = Literal["user", "admin"]


class User(BaseModel):
    """
    Users collection schema
    Collection name: "user"
    """
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address")
    password_hash: str = Field(..., description="Hashed password")
    role: Role = Field("user", description="user or admin")
    phone: Optional[str] = None
    address: Optional[str] = None
    is_active: bool = Field(True, description="Whether user is active")


class Session(BaseModel):
    """
    Login sessions
    Collection name: "session"
    """
    token: str
    user_id: str
    expires_at: datetime


class Category(BaseModel):
    """
    Categories collection schema
    Collection name: "category"
    """
    name: str = Field(..., min_length=1, max_length=50)
    slug: str
    description: str = Field("", max_length=500)
    image: Optional[str] = None


class Dimensions(BaseModel):
    length: Optional[float] = Field(None, ge=0)
    width: Optional[float] = Field(None, ge=0)
    height: Optional[float] = Field(None, ge=0)


class Review(BaseModel):
    user_id: str
    name: str
    rating: int = Field(..., ge=1, le=5)
    comment: str
    created_at: datetime


class Product(BaseModel):
    """
    Products collection schema
    Collection name: "product"
    """
    name: str = Field(..., min_length=1, max_length=100, description="Product name")
    description: str = Field(..., min_length=1, max_length=2000)
    price: float = Field(..., ge=0, description="Price in rupees")
    discount_price: Optional[float] = Field(None, ge=0)
    stock: int = Field(..., ge=0)
    category: str = Field(..., description="Category id")
    images: List[str] = Field(default_factory=list)
    material: Optional[str] = None
    color: Optional[str] = None
    dimensions: Optional[Dimensions] = None
    featured: bool = False
    reviews: List[Review] = Field(default_factory=list)
    num_reviews: int = 0
    rating: float = 0.0


class Address(BaseModel):
    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    country: str = "India"
    phone: str = Field(..., pattern=r"^\d{10}$")


class OrderItem(BaseModel):
    product_id: str
    name: str
    image: Optional[str] = None
    quantity: int = Field(..., ge=1)
    price: float


class PaymentResult(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None
    update_time: Optional[str] = None
    email_address: Optional[str] = None


class Order(BaseModel):
    """
    Orders collection schema
    Collection name: "order"
    """
    user_id: str
    items: List[OrderItem]
    shipping_address: Address
    payment_method: str = "cod"
    items_price: float
    tax_price: float
    shipping_price: float
    total_price: float
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    payment_result: Optional[PaymentResult] = None
    status: OrderStatus = "pending"
    delivered_at: Optional[datetime] = None


class PaymentRequest(BaseModel):
    """
    Payment requests collection schema
    Collection name: "paymentrequest"
    """
    user_id: str
    order_id: str
    amount: float = Field(..., ge=0)
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    status: PaymentStatus = "pending"
    notes: Optional[str] = None
    payment_proof: Optional[str] = None


class PaymentSettings(BaseModel):
    """
    Bank details shown at checkout
    Collection name: "paymentsettings"
    """
    account_number: str = Field(..., min_length=1)
    ifsc_code: str = Field(..., min_length=1)
    account_holder: str = Field(..., min_length=1)
    bank_name: Optional[str] = None
    branch_name: Optional[str] = None
    is_active: bool = True


class ContactMessage(BaseModel):
    """
    Contact form submissions
    Collection name: "contactmessage"
    """
    name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    subject: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., min_length=1, max_length=1000)
    status: MessageStatus = "unread"


class ShippingAddress(Address):
    """
    Saved addresses
    Collection name: "shippingaddress"
    """
    user_id: str
    is_default: bool = False


class SourceAddress(Address):
    """
    Warehouse address orders ship from
    Collection name: "sourceaddress"
    """
    is_active: bool = True
