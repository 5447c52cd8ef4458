"""
Database Schemas for the Oiko store

Each collection model mirrors one MongoDB collection. Field names are stored
exactly as declared (camelCase), so `model_dump()` output can be inserted
directly. Request bodies that arrive over the API live at the bottom.

Collections: users, products, orders, designs, subscribers, trial_requests,
reward_claims
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Category = Literal["hoodies", "tshirts", "hats", "socks", "totebags", "accessories", "custom"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "paid", "failed", "refunded"]
RewardType = Literal["free_product", "discount", "cashback"]
TrialStatus = Literal["pending", "approved", "delivered", "returned", "cancelled", "charged"]
GarmentType = Literal["hoodie", "tshirt"]

# Core domain models


class Address(BaseModel):
    street: str
    city: str
    zipCode: str
    country: str = "Saudi Arabia"
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    isDefault: bool = False


class CartItem(BaseModel):
    productId: str
    quantity: int = Field(..., ge=1)
    size: Optional[str] = None
    color: Optional[str] = None
    addedAt: datetime = Field(default_factory=datetime.utcnow)


class ProfilePhoto(BaseModel):
    url: str
    publicId: str


class User(BaseModel):
    email: EmailStr
    password: str = Field(..., description="bcrypt hash, never returned")
    firstName: str
    lastName: str
    phone: Optional[str] = None
    birthday: Optional[str] = Field(None, description="ISO date, YYYY-MM-DD")
    role: Literal["customer", "admin"] = "customer"
    fragmentPoints: int = Field(0, ge=0)
    lastBirthdayRewardYear: Optional[int] = None
    profilePhoto: Optional[ProfilePhoto] = None
    addresses: List[Dict[str, Any]] = Field(default_factory=list)
    wishlist: List[str] = Field(default_factory=list)
    cart: List[Dict[str, Any]] = Field(default_factory=list)


class Product(BaseModel):
    name: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    description: str
    image: str
    category: Category
    colors: List[str] = Field(default_factory=list)
    sizes: List[str] = Field(default_factory=list)
    stock: int = Field(100, ge=0)
    featured: bool = False


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    image: Optional[str] = None
    category: Optional[Category] = None
    colors: Optional[List[str]] = None
    sizes: Optional[List[str]] = None
    stock: Optional[int] = Field(None, ge=0)
    featured: Optional[bool] = None


class OrderItem(BaseModel):
    productId: str
    productName: str
    productImage: str = ""
    category: Optional[str] = None
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    size: Optional[str] = None
    color: Optional[str] = None


class CustomerInfo(BaseModel):
    firstName: str
    lastName: str
    email: EmailStr
    phone: str
    address: str
    zipCode: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class Order(BaseModel):
    orderRef: str
    customerInfo: CustomerInfo
    items: List[OrderItem] = Field(..., min_length=1)
    subtotal: float = Field(..., ge=0)
    shipping: float = Field(..., ge=0)
    total: float = Field(..., ge=0)
    pointsEarned: int = Field(0, ge=0)
    status: OrderStatus = "pending"
    paymentStatus: PaymentStatus = "pending"
    paymentMethod: Optional[str] = None
    paymentIntentId: Optional[str] = None
    trackingNumber: Optional[str] = None
    trackingUrl: Optional[str] = None
    userId: Optional[str] = None
    pointsCredited: bool = False


class Position(BaseModel):
    x: float = 0
    y: float = 0


class DesignImage(BaseModel):
    url: str
    publicId: str
    position: Position = Field(default_factory=Position)
    rotation: float = 0
    scale: float = 1


class Design(BaseModel):
    userId: str
    productId: str
    productType: GarmentType
    images: List[DesignImage] = Field(default_factory=list)
    preview: Optional[str] = None
    name: Optional[str] = None


class TrialCustomerInfo(BaseModel):
    email: str
    firstName: str
    lastName: str
    phone: Optional[str] = None
    street: str
    city: str
    zipCode: str
    country: str


class TrialRequest(BaseModel):
    userId: str
    customerInfo: TrialCustomerInfo
    productType: Literal["tshirt", "hoodie"]
    size: str
    status: TrialStatus = "pending"
    agreedToTerms: bool = True
    notes: Optional[str] = None
    deliveredAt: Optional[datetime] = None
    expectedReturnDate: Optional[datetime] = None
    returnedAt: Optional[datetime] = None


class RewardClaim(BaseModel):
    userId: str
    pointsUsed: int = Field(..., ge=0)
    rewardType: RewardType
    status: Literal["pending", "fulfilled", "cancelled"] = "pending"
    claimedAt: datetime = Field(default_factory=datetime.utcnow)
    fulfilledAt: Optional[datetime] = None
    notes: Optional[str] = None


class Subscriber(BaseModel):
    email: str
    name: Optional[str] = None
    status: Literal["active", "unsubscribed"] = "active"
    source: str = "website"
    subscribedAt: datetime = Field(default_factory=datetime.utcnow)
    unsubscribedAt: Optional[datetime] = None


# Request bodies


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    firstName: str = Field(..., min_length=2)
    lastName: str = Field(..., min_length=2)
    phone: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdate(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    phone: Optional[str] = None
    birthday: Optional[str] = None
    fragmentPoints: Optional[Any] = None


class ForgotPasswordRequest(BaseModel):
    email: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    token: str
    password: str = Field(..., min_length=6)


class AddressIn(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    zipCode: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    isDefault: Optional[bool] = None


class CartAdd(BaseModel):
    productId: Optional[str] = None
    quantity: Optional[int] = None
    size: Optional[str] = None
    color: Optional[str] = None


class CartUpdate(BaseModel):
    quantity: Optional[int] = None


class WishlistAdd(BaseModel):
    productId: Optional[str] = None


class OrderCreate(BaseModel):
    orderRef: Optional[str] = None
    customerInfo: Optional[CustomerInfo] = None
    items: List[OrderItem] = Field(default_factory=list)
    subtotal: Optional[float] = Field(None, ge=0)
    shipping: Optional[float] = Field(None, ge=0)
    total: Optional[float] = Field(None, ge=0)
    status: Optional[OrderStatus] = None
    paymentStatus: Optional[PaymentStatus] = None
    paymentMethod: Optional[str] = None
    paymentIntentId: Optional[str] = None
    userId: Optional[str] = None


class OrderUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    paymentStatus: Optional[PaymentStatus] = None
    trackingNumber: Optional[str] = None
    trackingUrl: Optional[str] = None


class CheckoutProduct(BaseModel):
    name: str = ""
    price: float = Field(..., ge=0)
    category: Optional[str] = None


class CheckoutItem(BaseModel):
    productId: Optional[str] = None
    product: CheckoutProduct
    quantity: int = Field(1, ge=1)


class PaymentIntentRequest(BaseModel):
    items: List[CheckoutItem] = Field(default_factory=list)
    customerInfo: Optional[Dict[str, Any]] = None


class VerifyPaymentRequest(BaseModel):
    paymentIntentId: Optional[str] = None


class RewardClaimRequest(BaseModel):
    rewardType: Optional[str] = None


class DesignIn(BaseModel):
    productId: Optional[str] = None
    productType: Optional[GarmentType] = None
    images: Optional[List[DesignImage]] = None
    preview: Optional[str] = None
    name: Optional[str] = None


class TrialRequestIn(BaseModel):
    productType: Optional[Literal["tshirt", "hoodie"]] = None
    size: Optional[str] = None


class SubscribeRequest(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    source: Optional[str] = None


class UnsubscribeRequest(BaseModel):
    email: Optional[str] = None


class BulkProductRequest(BaseModel):
    operation: Optional[str] = None
    productIds: Optional[List[str]] = None
    updates: Optional[Dict[str, Any]] = None
