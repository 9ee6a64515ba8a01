"""
Order DTOs (Pydantic v2).

Request DTOs never carry monetary amounts; any price a client sends is
ignored by the model configuration.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import ConfigDict, EmailStr, Field, model_validator

from application.dto import DTOBase
from application.dtos.shipping import ShippingQuoteDTO
from domain.catalog.entity import Address
from domain.order.entity import LineItem, Order, OrderStatus, VariantLineItem
from domain.order.pricing import PricingBreakdown
from domain.payment.entity import Refund


class AddressDTO(DTOBase):
    country: str = Field(..., min_length=2, max_length=2, description="ISO-3166 alpha-2")
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    line1: Optional[str] = None
    line2: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    def to_domain(self) -> Address:
        return Address(**self.model_dump())

    @classmethod
    def from_domain(cls, address: Optional[Address]) -> Optional["AddressDTO"]:
        if address is None:
            return None
        return cls(**address.to_dict())


class CartItemDTO(DTOBase):
    """One requested line; extra keys such as a client price are dropped."""
    product_id: str = Field(..., min_length=1)
    # Range checked by the cart validator so the error carries its own code
    quantity: int
    variant_id: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class CartValidateRequestDTO(DTOBase):
    items: list[CartItemDTO] = Field(..., min_length=1)


class LineItemDTO(DTOBase):
    kind: Literal["simple", "variant"]
    product_id: str
    name: str
    price: Decimal
    quantity: int
    line_total: Decimal
    original_price: Optional[Decimal] = None
    discount_percentage: Optional[Decimal] = None
    requires_deposit: bool = False
    variant_id: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None

    @classmethod
    def from_line(cls, item: LineItem) -> "LineItemDTO":
        extra = {}
        if isinstance(item, VariantLineItem):
            extra = {"variant_id": item.variant_id, "size": item.size, "color": item.color}
        return cls(
            kind=item.kind,
            product_id=item.product_id,
            name=item.name,
            price=item.price,
            quantity=item.quantity,
            line_total=item.line_total,
            original_price=item.original_price,
            discount_percentage=item.discount_percentage,
            requires_deposit=item.requires_deposit,
            **extra,
        )


class ValidatedCartDTO(DTOBase):
    seller_id: str
    product_type: str
    currency: str
    subtotal: Decimal
    items: list[LineItemDTO]


class OrderSummaryRequestDTO(DTOBase):
    items: list[CartItemDTO] = Field(..., min_length=1)
    destination: AddressDTO


class OrderSummaryDTO(DTOBase):
    currency: str
    subtotal: Decimal
    discount_total: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    full_total: Decimal
    deposit_amount: Decimal
    remaining_balance: Decimal
    payment_type: str
    amount_due_now: Decimal
    shipping: ShippingQuoteDTO
    items: list[LineItemDTO]

    @classmethod
    def build(cls, pricing: PricingBreakdown, shipping: ShippingQuoteDTO, items) -> "OrderSummaryDTO":
        return cls(
            currency=pricing.currency,
            subtotal=pricing.subtotal,
            discount_total=pricing.discount_total,
            shipping_cost=pricing.shipping_cost,
            tax_amount=pricing.tax_amount,
            full_total=pricing.full_total,
            deposit_amount=pricing.deposit_amount,
            remaining_balance=pricing.remaining_balance,
            payment_type=pricing.payment_type.value,
            amount_due_now=pricing.amount_due_now,
            shipping=shipping,
            items=[LineItemDTO.from_line(i) for i in items],
        )


class CustomerDTO(DTOBase):
    """Guest checkout needs only an email."""
    email: Optional[EmailStr] = None
    user_id: Optional[str] = None
    name: Optional[str] = None

    @model_validator(mode="after")
    def _require_identity(self):
        if not self.email and not self.user_id:
            raise ValueError("customer email or user_id is required")
        return self


class CreateOrderRequestDTO(DTOBase):
    customer: CustomerDTO
    items: list[CartItemDTO] = Field(..., min_length=1)
    shipping_address: AddressDTO
    billing_address: Optional[AddressDTO] = None
    payment_method: str = "card"


class OrderItemDTO(DTOBase):
    id: str
    product_id: str
    variant_id: Optional[str] = None
    name: str
    unit_price: Decimal
    quantity: int
    refunded_quantity: int
    refunded_amount: Decimal
    item_status: str


class OrderDTO(DTOBase):
    id: str
    seller_id: str
    customer_email: Optional[str] = None
    user_id: Optional[str] = None
    status: str
    payment_status: str
    payment_type: str
    currency: str
    subtotal: Decimal
    discount_total: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    total: Decimal
    deposit_amount: Decimal
    amount_paid: Decimal
    remaining_balance: Decimal
    refunded_amount: Decimal
    tracking_number: Optional[str] = None
    shipping_address: Optional[AddressDTO] = None
    line_items: list[LineItemDTO]
    items: list[OrderItemDTO]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, order: Order) -> "OrderDTO":
        return cls(
            id=order.id,
            seller_id=order.seller_id,
            customer_email=order.customer_email,
            user_id=order.user_id,
            status=order.status.value,
            payment_status=order.payment_status.value,
            payment_type=order.payment_type.value,
            currency=order.currency,
            subtotal=order.subtotal,
            discount_total=order.discount_total,
            shipping_cost=order.shipping_cost,
            tax_amount=order.tax_amount,
            total=order.total,
            deposit_amount=order.deposit_amount,
            amount_paid=order.amount_paid,
            remaining_balance=order.remaining_balance,
            refunded_amount=order.refunded_amount,
            tracking_number=order.tracking_number,
            shipping_address=AddressDTO.from_domain(order.shipping_address),
            line_items=[LineItemDTO.from_line(i) for i in order.line_items],
            items=[
                OrderItemDTO(
                    id=i.id,
                    product_id=i.product_id,
                    variant_id=i.variant_id,
                    name=i.name,
                    unit_price=i.unit_price,
                    quantity=i.quantity,
                    refunded_quantity=i.refunded_quantity,
                    refunded_amount=i.refunded_amount,
                    item_status=i.item_status.value,
                )
                for i in order.items
            ],
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class PaymentSessionDTO(DTOBase):
    """What the storefront needs to confirm a charge client-side."""
    intent_id: str
    client_secret: Optional[str] = None
    stage: str
    amount: Decimal
    currency: str
    status: str


class CheckoutDTO(DTOBase):
    order: OrderDTO
    payment: Optional[PaymentSessionDTO] = None
    # Set when the order was persisted but the processor call failed
    payment_error: Optional[str] = None


class UpdateOrderStatusDTO(DTOBase):
    status: OrderStatus


class BalancePaymentDTO(DTOBase):
    order_id: str
    amount: Decimal
    currency: str
    payment_link: str
    payment: PaymentSessionDTO


class RefundSelectionDTO(DTOBase):
    item_id: str
    quantity: int = Field(..., gt=0)


class RefundRequestDTO(DTOBase):
    items: Optional[list[RefundSelectionDTO]] = None
    full: bool = False
    reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def _one_mode(self):
        if self.full and self.items:
            raise ValueError("choose either item selections or a full refund")
        if not self.full and not self.items:
            raise ValueError("item selections are required unless full=true")
        return self


class RefundDTO(DTOBase):
    id: str
    order_id: str
    amount: Decimal
    currency: str
    status: str
    provider_refund_id: Optional[str] = None
    reason: Optional[str] = None
    items: dict[str, int] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, refund: Refund) -> "RefundDTO":
        return cls(
            id=refund.id,
            order_id=refund.order_id,
            amount=refund.amount,
            currency=refund.currency,
            status=refund.status.value,
            provider_refund_id=refund.provider_refund_id,
            reason=refund.reason,
            items=refund.items,
            created_at=refund.created_at,
        )


class RefundOutcomeDTO(DTOBase):
    order: OrderDTO
    refunds: list[RefundDTO]
    amount: Decimal
