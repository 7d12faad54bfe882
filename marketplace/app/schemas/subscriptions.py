"""API schemas for plans and subscription payments."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..payments import PaymentInstructions, PaymentMethod, PaymentProvider
from ..plans import PlanBillingType, PlanFeatures, SubscriptionPlan
from ..subscriptions import SubscriptionPayment, SubscriptionPaymentStatus


class PlanResponse(BaseModel):
    plan_id: str = Field(alias="planId")
    name: str
    billing_type: PlanBillingType = Field(alias="billingType")
    monthly_price_cents: Optional[int] = Field(alias="monthlyPriceCents", default=None)
    one_time_price_cents: Optional[int] = Field(alias="oneTimePriceCents", default=None)
    features: PlanFeatures
    tagline: Optional[str] = None
    highlight: bool = False

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_plan(cls, plan: SubscriptionPlan) -> "PlanResponse":
        return cls(
            plan_id=plan.plan_id,
            name=plan.name,
            billing_type=plan.billing_type,
            monthly_price_cents=plan.monthly_price_cents,
            one_time_price_cents=plan.one_time_price_cents,
            features=plan.features,
            tagline=plan.tagline,
            highlight=plan.highlight,
        )


class PlanListResponse(BaseModel):
    plans: list[PlanResponse]


class StartPaymentRequest(BaseModel):
    plan_name: str = Field(alias="planName", min_length=1)
    method: PaymentMethod

    model_config = ConfigDict(populate_by_name=True)


class SubmitPaymentRequest(BaseModel):
    reference: str = Field(min_length=1, max_length=500)
    proof_url: Optional[str] = Field(alias="proofUrl", default=None, max_length=2000)
    note: Optional[str] = Field(default=None, max_length=2000)

    model_config = ConfigDict(populate_by_name=True)


class SubscriptionPaymentResponse(BaseModel):
    payment_id: str = Field(alias="paymentId")
    user_id: str = Field(alias="userId")
    plan_id: str = Field(alias="planId")
    plan_name: str = Field(alias="planName")
    method: PaymentMethod
    provider: PaymentProvider
    provider_ref: Optional[str] = Field(alias="providerRef", default=None)
    price_cents: int = Field(alias="priceCents")
    fee_cents: int = Field(alias="feeCents")
    total_charge_cents: int = Field(alias="totalChargeCents")
    status: SubscriptionPaymentStatus
    reference: Optional[str] = None
    proof_url: Optional[str] = Field(alias="proofUrl", default=None)
    note: Optional[str] = None
    created_at: datetime = Field(alias="createdAt")
    submitted_at: Optional[datetime] = Field(alias="submittedAt", default=None)
    verified_at: Optional[datetime] = Field(alias="verifiedAt", default=None)
    verified_by: Optional[str] = Field(alias="verifiedBy", default=None)
    instructions: Optional[PaymentInstructions] = None

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_payment(
        cls,
        payment: SubscriptionPayment,
        instructions: Optional[PaymentInstructions] = None,
    ) -> "SubscriptionPaymentResponse":
        return cls(
            payment_id=payment.payment_id,
            user_id=payment.user_id,
            plan_id=payment.plan_id,
            plan_name=payment.plan_name,
            method=payment.method,
            provider=payment.provider,
            provider_ref=payment.provider_ref,
            price_cents=payment.price_cents,
            fee_cents=payment.fee_cents,
            total_charge_cents=payment.total_charge_cents,
            status=payment.status,
            reference=payment.reference,
            proof_url=payment.proof_url,
            note=payment.note,
            created_at=payment.created_at,
            submitted_at=payment.submitted_at,
            verified_at=payment.verified_at,
            verified_by=payment.verified_by,
            instructions=instructions,
        )


class SubscriptionPaymentListResponse(BaseModel):
    payments: list[SubscriptionPaymentResponse]
