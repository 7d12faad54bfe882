"""Subscription payment lifecycle: start, submit, and admin verification."""
from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, FrozenSet, Iterable, Optional, Protocol, Sequence
from uuid import uuid4

from ...config import ManualPaymentSettings
from ..audit import AuditEvent, AuditEventType, AuditLogger
from ..errors import InvalidInput, InvalidState, NotFound, Unauthorized
from ..fees.models import Tier
from ..parties import Party
from ..payments import (
    PaymentInstructions,
    PaymentMethod,
    build_instructions,
    missing_manual_details,
    parse_method,
    resolve_provider,
)
from ..plans import PlanBillingType, PlanCatalog, SubscriptionPlan, plan_price_cents
from .models import OPEN_PAYMENT_STATUSES, SubscriptionPayment, SubscriptionPaymentStatus

logger = logging.getLogger("subscriptions")

SUBSCRIPTION_METHODS: FrozenSet[PaymentMethod] = frozenset(
    {PaymentMethod.BTC, PaymentMethod.MOMO, PaymentMethod.WU, PaymentMethod.BANK}
)
PURCHASABLE_TIERS: FrozenSet[Tier] = frozenset({Tier.PRO, Tier.VIP})


class SubscriptionUnitOfWork(Protocol):
    """Operations available inside one subscription repository transaction."""

    def get_party(self, user_id: str) -> Optional[Party]:
        ...

    def set_user_tier(self, user_id: str, tier: Tier) -> None:
        ...

    def lock_user_plan(self, user_id: str, plan_id: str) -> None:
        """Serialize payment creation for one user and plan until the transaction ends."""

    def find_open_payment(self, user_id: str, plan_id: str) -> Optional[SubscriptionPayment]:
        ...

    def insert_payment(self, payment: SubscriptionPayment) -> SubscriptionPayment:
        ...

    def get_payment(self, payment_id: str, *, for_update: bool = False) -> Optional[SubscriptionPayment]:
        ...

    def update_payment(self, payment: SubscriptionPayment) -> SubscriptionPayment:
        """Persist status, submission, and verification fields; the charge is never rewritten."""

    def list_payments_for_user(self, user_id: str, limit: int) -> Sequence[SubscriptionPayment]:
        ...

    def list_payments_by_status(
        self, statuses: Iterable[SubscriptionPaymentStatus]
    ) -> Sequence[SubscriptionPayment]:
        ...


class SubscriptionPaymentRepository(Protocol):
    """Opens transactions against the subscription payment store."""

    def transaction(self) -> AbstractContextManager[SubscriptionUnitOfWork]:
        ...


@dataclass
class SubscriptionPaymentService:
    """Coordinates plan upgrade payments and tier activation."""

    repository: SubscriptionPaymentRepository
    catalog: PlanCatalog
    audit_logger: AuditLogger
    manual_payments: ManualPaymentSettings = field(default_factory=ManualPaymentSettings)
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(timezone.utc))

    def _now(self) -> datetime:
        return self.clock()

    def start_payment(self, user_id: str, plan_name: str, method: object) -> SubscriptionPayment:
        """Open a payment for a plan, reusing an open payment for the same plan."""

        plan = self._purchasable_plan(plan_name)
        tier = Tier(plan.name.upper())
        price_cents = plan_price_cents(plan)

        payment_method = parse_method(method)
        if payment_method not in SUBSCRIPTION_METHODS:
            raise InvalidInput(
                message="Unsupported payment method",
                detail={"method": payment_method.value},
            )
        missing = missing_manual_details(self.manual_payments, payment_method)
        if missing:
            raise InvalidInput(
                message=f"Payment method not configured: missing {', '.join(missing)}. Contact admin.",
                detail={"method": payment_method.value, "missing": ", ".join(missing)},
            )
        provider, provider_ref = resolve_provider(payment_method)

        with self.repository.transaction() as uow:
            party = uow.get_party(user_id)
            if party is None:
                raise NotFound(message="User not found", detail={"user_id": user_id})
            if party.is_admin:
                raise InvalidInput(message="Admin already has unlimited access.")
            if party.tier == tier:
                raise InvalidInput(message="You are already on this plan.")

            uow.lock_user_plan(user_id, plan.plan_id)
            existing = uow.find_open_payment(user_id, plan.plan_id)
            if existing is not None:
                logger.debug("Reusing open payment %s for user=%s plan=%s", existing.payment_id, user_id, plan.name)
                return existing

            now = self._now()
            payment = uow.insert_payment(
                SubscriptionPayment(
                    payment_id=f"sp_{uuid4().hex}",
                    user_id=user_id,
                    plan_id=plan.plan_id,
                    plan_name=plan.name.upper(),
                    method=payment_method,
                    provider=provider,
                    provider_ref=provider_ref,
                    price_cents=price_cents,
                    fee_cents=0,
                    total_charge_cents=price_cents,
                    status=SubscriptionPaymentStatus.INITIATED,
                    created_at=now,
                    updated_at=now,
                )
            )

        logger.info(
            "Subscription payment %s started user=%s plan=%s total=%s",
            payment.payment_id,
            user_id,
            payment.plan_name,
            payment.total_charge_cents,
        )
        self._audit(AuditEventType.SUBSCRIPTION_PAYMENT_STARTED, payment, actor_id=user_id)
        return payment

    def submit_payment(
        self,
        payment_id: str,
        reference: str,
        *,
        proof_url: Optional[str] = None,
        note: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> SubscriptionPayment:
        """Attach the payer's transfer reference and move the payment to SUBMITTED."""

        reference = (reference or "").strip()
        if not reference:
            raise InvalidInput(message="Payment reference is required")

        with self.repository.transaction() as uow:
            payment = self._require_payment(uow, payment_id, for_update=True)
            if user_id is not None and payment.user_id != user_id:
                raise Unauthorized(message="Not allowed")
            if payment.status != SubscriptionPaymentStatus.INITIATED:
                raise InvalidState.transition("subscription payment", payment.status, "submit")

            now = self._now()
            submitted = uow.update_payment(
                payment.model_copy(
                    update={
                        "status": SubscriptionPaymentStatus.SUBMITTED,
                        "reference": reference,
                        "proof_url": (proof_url or "").strip() or None,
                        "note": (note or "").strip() or None,
                        "submitted_at": now,
                        "updated_at": now,
                    }
                )
            )

        self._audit(AuditEventType.SUBSCRIPTION_PAYMENT_SUBMITTED, submitted, actor_id=user_id)
        return submitted

    def verify_payment(self, payment_id: str, admin_id: str) -> SubscriptionPayment:
        """Verify a payment and activate the plan tier for its user.

        Verifying an already verified payment returns it without touching the
        user's tier.
        """

        with self.repository.transaction() as uow:
            admin = uow.get_party(admin_id)
            if admin is None or not admin.is_admin:
                logger.warning("Rejected subscription verification by non-admin %s", admin_id)
                raise Unauthorized(message="Admin only")

            payment = self._require_payment(uow, payment_id, for_update=True)
            if payment.status == SubscriptionPaymentStatus.VERIFIED:
                logger.debug("Subscription payment %s already verified", payment_id)
                return payment
            if payment.status not in OPEN_PAYMENT_STATUSES:
                raise InvalidState.transition("subscription payment", payment.status, "verify")

            now = self._now()
            verified = uow.update_payment(
                payment.model_copy(
                    update={
                        "status": SubscriptionPaymentStatus.VERIFIED,
                        "verified_at": now,
                        "verified_by": admin_id,
                        "updated_at": now,
                    }
                )
            )
            uow.set_user_tier(payment.user_id, Tier(payment.plan_name))

        logger.info(
            "Subscription payment %s verified by %s; user %s now on %s",
            payment_id,
            admin_id,
            verified.user_id,
            verified.plan_name,
        )
        self._audit(
            AuditEventType.SUBSCRIPTION_PAYMENT_VERIFIED,
            verified,
            actor_id=admin_id,
            metadata={"tier": verified.plan_name},
        )
        return verified

    def get_payment(self, payment_id: str, *, user_id: Optional[str] = None) -> SubscriptionPayment:
        with self.repository.transaction() as uow:
            payment = self._require_payment(uow, payment_id)
        if user_id is not None and payment.user_id != user_id:
            raise Unauthorized(message="Not allowed")
        return payment

    def list_payments_for_user(self, user_id: str, limit: int = 20) -> Sequence[SubscriptionPayment]:
        with self.repository.transaction() as uow:
            return uow.list_payments_for_user(user_id, max(1, min(limit, 100)))

    def pending_payments(self, admin_id: str) -> Sequence[SubscriptionPayment]:
        """Payments awaiting admin verification, oldest first."""

        with self.repository.transaction() as uow:
            admin = uow.get_party(admin_id)
            if admin is None or not admin.is_admin:
                raise Unauthorized(message="Admin only")
            payments = uow.list_payments_by_status(OPEN_PAYMENT_STATUSES)
        return sorted(payments, key=lambda payment: payment.created_at)

    def instructions_for(self, payment: SubscriptionPayment) -> PaymentInstructions:
        return build_instructions(
            self.manual_payments,
            payment.method,
            payment.payment_id,
            payment.total_charge_cents,
        )

    def _purchasable_plan(self, plan_name: str) -> SubscriptionPlan:
        name = str(plan_name or "").strip().upper()
        if not name:
            raise InvalidInput(message="Missing planName")

        plan = self.catalog.get_plan(name)
        if plan is None:
            raise NotFound(message="Plan not available", detail={"plan": name})
        if not plan.is_active:
            raise InvalidInput(message="Plan not available", detail={"plan": name})
        if plan.billing_type == PlanBillingType.FREE or plan.name.upper() not in {t.value for t in PURCHASABLE_TIERS}:
            raise InvalidInput(message="This plan cannot be purchased.", detail={"plan": name})
        if plan_price_cents(plan) <= 0:
            raise InvalidInput(message="This plan is free or has no price set.", detail={"plan": name})
        return plan

    def _require_payment(
        self,
        uow: SubscriptionUnitOfWork,
        payment_id: str,
        *,
        for_update: bool = False,
    ) -> SubscriptionPayment:
        payment = uow.get_payment(payment_id, for_update=for_update)
        if payment is None:
            raise NotFound(message="Payment not found", detail={"payment_id": payment_id})
        return payment

    def _audit(
        self,
        event_type: AuditEventType,
        payment: SubscriptionPayment,
        *,
        actor_id: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        self.audit_logger.log(
            AuditEvent(
                event_type=event_type,
                subject_id=payment.payment_id,
                actor_id=actor_id,
                metadata={"status": payment.status.value, "plan": payment.plan_name, **(metadata or {})},
            )
        )


__all__ = [
    "PURCHASABLE_TIERS",
    "SUBSCRIPTION_METHODS",
    "SubscriptionPaymentRepository",
    "SubscriptionPaymentService",
    "SubscriptionUnitOfWork",
]
