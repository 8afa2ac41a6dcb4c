"""Billing models: catalog, credit ledger, provider payment events, subscriptions and invoices."""
import uuid

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q

from tenants.models import Tenant


class Currency(models.TextChoices):
    USD = "USD", "US Dollar"
    INR = "INR", "Indian Rupee"
    EUR = "EUR", "Euro"
    GBP = "GBP", "Pound Sterling"


class BillingInterval(models.TextChoices):
    ONE_TIME = "one_time", "One Time"
    MONTHLY = "monthly", "Monthly"
    YEARLY = "yearly", "Yearly"


class PaymentProvider(models.TextChoices):
    DODO = "dodo", "Dodo Payments"
    POLAR = "polar", "Polar"
    STRIPE = "stripe", "Stripe"


class BillingPlan(models.Model):
    """Subscription plan offered to tenants."""

    class PlanKey(models.TextChoices):
        STARTER = "starter", "Starter"
        PLUS = "plus", "Plus"
        BUSINESS = "business", "Business"
        ENTERPRISE = "enterprise", "Enterprise"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    key = models.CharField(max_length=32, choices=PlanKey.choices, unique=True)
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    base_price = models.PositiveBigIntegerField(
        default=0,
        help_text="List price in the smallest currency unit.",
    )
    currency = models.CharField(max_length=3, choices=Currency.choices, default=Currency.USD)
    billing_interval = models.CharField(
        max_length=16,
        choices=BillingInterval.choices,
        default=BillingInterval.MONTHLY,
    )
    is_active = models.BooleanField(default=True)
    is_custom = models.BooleanField(default=False, help_text="Negotiated plan not listed publicly.")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "billing_plans"
        verbose_name = "Billing plan"
        verbose_name_plural = "Billing plans"
        ordering = ["base_price", "key"]

    def __str__(self):
        return f"BillingPlan<{self.key}>"


class BillingPlanFeature(models.Model):
    """Metered feature limits attached to a plan. ``-1`` means unlimited."""

    UNLIMITED = -1

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    plan = models.ForeignKey(BillingPlan, on_delete=models.CASCADE, related_name="features")
    feature_key = models.CharField(max_length=100)
    included_units = models.BigIntegerField(
        validators=[MinValueValidator(-1)],
        help_text="Units included per period; -1 for unlimited.",
    )
    overage_price = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Price per unit above the included amount, in the smallest currency unit.",
    )
    workspace_count = models.PositiveIntegerField(default=1)
    guest_count = models.PositiveIntegerField(default=10)
    member_seat = models.IntegerField(
        default=100,
        validators=[MinValueValidator(-1)],
        help_text="Seat limit; -1 for unlimited.",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "billing_plan_features"
        verbose_name = "Billing plan feature"
        verbose_name_plural = "Billing plan features"
        ordering = ["plan", "feature_key"]
        constraints = [
            models.UniqueConstraint(fields=["plan", "feature_key"], name="billing_plan_feature_unique"),
            models.CheckConstraint(condition=Q(included_units__gte=-1), name="billing_plan_feature_units_gte"),
            models.CheckConstraint(condition=Q(member_seat__gte=-1), name="billing_plan_feature_seat_gte"),
        ]

    @property
    def is_unlimited(self) -> bool:
        return self.included_units == self.UNLIMITED

    def __str__(self):
        return f"BillingPlanFeature<{self.plan_id}:{self.feature_key}>"


class BillingPlanPrice(models.Model):
    """Provider price for a plan. At most one active row per plan."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    plan = models.ForeignKey(BillingPlan, on_delete=models.CASCADE, related_name="prices")
    provider = models.CharField(max_length=16, choices=PaymentProvider.choices, default=PaymentProvider.DODO)
    provider_price_id = models.CharField(max_length=255, blank=True)
    amount = models.PositiveBigIntegerField(help_text="Price in the smallest currency unit.")
    currency = models.CharField(max_length=3, choices=Currency.choices, default=Currency.USD)
    billing_interval = models.CharField(
        max_length=16,
        choices=BillingInterval.choices,
        default=BillingInterval.MONTHLY,
    )
    is_active = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "billing_plan_prices"
        verbose_name = "Billing plan price"
        verbose_name_plural = "Billing plan prices"
        ordering = ["plan", "-is_active", "-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["plan"],
                condition=Q(is_active=True),
                name="billing_plan_price_one_active",
            ),
        ]

    def __str__(self):
        return f"BillingPlanPrice<{self.plan_id}:{self.amount} {self.currency}>"


class ProviderProductMapping(models.Model):
    """Maps a payment provider product id to the internal plan it sells."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    provider = models.CharField(max_length=16, choices=PaymentProvider.choices, default=PaymentProvider.DODO)
    provider_product_id = models.CharField(max_length=255)
    plan = models.ForeignKey(BillingPlan, on_delete=models.CASCADE, related_name="product_mappings")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "billing_provider_product_mappings"
        verbose_name = "Provider product mapping"
        verbose_name_plural = "Provider product mappings"
        ordering = ["provider", "provider_product_id"]
        constraints = [
            models.UniqueConstraint(
                fields=["provider", "provider_product_id"],
                name="billing_product_mapping_unique",
            ),
        ]

    def __str__(self):
        return f"ProviderProductMapping<{self.provider}:{self.provider_product_id}>"


class BillingCustomer(models.Model):
    """Provider-side customer record for a tenant."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="billing_customers")
    provider = models.CharField(max_length=16, choices=PaymentProvider.choices, default=PaymentProvider.DODO)
    provider_customer_id = models.CharField(max_length=255)
    email = models.EmailField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "billing_customers"
        verbose_name = "Billing customer"
        verbose_name_plural = "Billing customers"
        constraints = [
            models.UniqueConstraint(
                fields=["provider", "provider_customer_id"],
                name="billing_customer_provider_unique",
            ),
        ]

    def __str__(self):
        return f"BillingCustomer<{self.provider}:{self.provider_customer_id}>"


class TenantCreditLedgerEntry(models.Model):
    """Immutable signed credit movement for a tenant."""

    class Source(models.TextChoices):
        BILLING = "billing", "Billing"
        ADMIN = "admin", "Admin"
        PROMO = "promo", "Promotion"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.PROTECT,
        related_name="credit_ledger_entries",
        help_text="Tenant whose balance this entry affects.",
    )
    delta = models.BigIntegerField(help_text="Signed amount; positive credits the tenant, negative debits it.")
    reason = models.CharField(max_length=255, help_text="Human-readable explanation of the movement.")
    source = models.CharField(max_length=16, choices=Source.choices)
    idempotency_key = models.CharField(
        max_length=255,
        help_text="Caller-supplied key; one entry per tenant and key.",
    )
    reference_type = models.CharField(max_length=50, blank=True, help_text="Kind of object referenced, e.g. payment.")
    reference_id = models.CharField(max_length=255, blank=True)
    expires_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Entry stops counting towards the balance after this time.",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "tenant_credit_ledger"
        verbose_name = "Tenant credit ledger entry"
        verbose_name_plural = "Tenant credit ledger entries"
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(condition=~Q(delta=0), name="tenant_credit_ledger_non_zero"),
            models.UniqueConstraint(
                fields=["tenant", "idempotency_key"],
                name="tenant_credit_ledger_idempotency",
            ),
        ]
        indexes = [
            models.Index(fields=["tenant", "expires_at"], name="credit_ledger_tenant_exp_idx"),
            models.Index(fields=["reference_type", "reference_id"], name="credit_ledger_reference_idx"),
        ]

    def clean(self):
        super().clean()
        if self.delta == 0:
            raise ValidationError("Delta must be non-zero.")

    def save(self, *args, **kwargs):
        if self.pk and TenantCreditLedgerEntry.objects.filter(pk=self.pk).exists():
            raise ValidationError("TenantCreditLedgerEntry records are immutable.")
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("TenantCreditLedgerEntry records are immutable.")

    def __str__(self):
        return f"TenantCreditLedgerEntry<{self.source}:{self.delta} for {self.tenant_id}>"


class BillingPaymentEvent(models.Model):
    """Raw provider webhook payload. ``provider_event_id`` keys the whole pipeline."""

    id = models.BigAutoField(primary_key=True)
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="payment_events",
        help_text="Tenant resolved from metadata; empty only for unrecognised event types.",
    )
    provider = models.CharField(max_length=16, choices=PaymentProvider.choices, default=PaymentProvider.DODO)
    provider_event_id = models.CharField(max_length=255, unique=True)
    event_type = models.CharField(max_length=100)
    payload = models.JSONField(help_text="Event body as delivered by the provider.")
    payload_hash = models.CharField(max_length=64, blank=True, help_text="SHA256 of the canonical payload.")
    processed = models.BooleanField(default=False, help_text="True once dispatch side effects committed.")
    rejected = models.BooleanField(
        default=False,
        help_text="Dispatch rejected the payload as invalid; the event is never retried.",
    )
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "billing_payment_events"
        verbose_name = "Billing payment event"
        verbose_name_plural = "Billing payment events"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["processed", "created_at"], name="payment_event_pending_idx"),
            models.Index(fields=["event_type"], name="payment_event_type_idx"),
        ]

    def __str__(self):
        return f"BillingPaymentEvent<{self.provider_event_id}:{self.event_type}>"


class BillingOneTimePayment(models.Model):
    """One-off payment (credit top-up, add-on) reported by the provider."""

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        SUCCEEDED = "succeeded", "Succeeded"
        FAILED = "failed", "Failed"

    class Reason(models.TextChoices):
        LIMITED_ACCESS = "limited_access", "Limited Access"
        TOPUP = "topup", "Credit Top-up"
        ADDON = "addon", "Add-on Purchase"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name="one_time_payments")
    provider = models.CharField(max_length=16, choices=PaymentProvider.choices, default=PaymentProvider.DODO)
    provider_payment_id = models.CharField(max_length=255, unique=True)
    amount = models.PositiveBigIntegerField(default=0, help_text="Amount in the smallest currency unit.")
    currency = models.CharField(max_length=3, choices=Currency.choices, default=Currency.USD)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    reason = models.CharField(max_length=32, choices=Reason.choices, default=Reason.TOPUP)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "billing_one_time_payments"
        verbose_name = "One-time payment"
        verbose_name_plural = "One-time payments"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["tenant", "status"], name="one_time_payment_status_idx"),
        ]

    def __str__(self):
        return f"BillingOneTimePayment<{self.provider_payment_id}:{self.status}>"


class TenantSubscription(models.Model):
    """Tenant subscription to a plan, driven by provider lifecycle events."""

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        TRIALING = "trialing", "Trialing"
        PAST_DUE = "past_due", "Past Due"
        CANCELED = "canceled", "Canceled"

    LIVE_STATUSES = (Status.ACTIVE, Status.TRIALING)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name="subscriptions")
    plan = models.ForeignKey(BillingPlan, on_delete=models.PROTECT, related_name="subscriptions")
    provider = models.CharField(max_length=16, choices=PaymentProvider.choices, default=PaymentProvider.DODO)
    provider_subscription_id = models.CharField(max_length=255, unique=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)
    current_period_start = models.DateTimeField()
    current_period_end = models.DateTimeField()
    subscription_seat = models.PositiveIntegerField(default=1)
    canceled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "billing_tenant_subscriptions"
        verbose_name = "Tenant subscription"
        verbose_name_plural = "Tenant subscriptions"
        ordering = ["-current_period_end"]
        constraints = [
            models.CheckConstraint(
                condition=Q(current_period_start__lt=F("current_period_end")),
                name="tenant_subscription_period_order",
            ),
            models.CheckConstraint(condition=Q(subscription_seat__gte=1), name="tenant_subscription_seat_min"),
        ]
        indexes = [
            models.Index(fields=["tenant", "status"], name="tenant_subscription_status_idx"),
        ]

    def __str__(self):
        return f"TenantSubscription<{self.provider_subscription_id}:{self.status}>"


class BillingInvoice(models.Model):
    """Provider invoice for a tenant billing period."""

    class Status(models.TextChoices):
        OPEN = "open", "Open"
        PAID = "paid", "Paid"
        FAILED = "failed", "Failed"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name="invoices")
    subscription = models.ForeignKey(
        TenantSubscription,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="invoices",
    )
    provider_invoice_id = models.CharField(max_length=255, unique=True)
    period_start = models.DateTimeField()
    period_end = models.DateTimeField()
    subscription_amount = models.BigIntegerField(default=0)
    usage_amount = models.BigIntegerField(default=0)
    proration_amount = models.BigIntegerField(default=0)
    refund_amount = models.BigIntegerField(default=0)
    total_amount = models.BigIntegerField(default=0, help_text="Amount due in the smallest currency unit.")
    currency = models.CharField(max_length=3, choices=Currency.choices, default=Currency.USD)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.OPEN)
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "billing_invoices"
        verbose_name = "Billing invoice"
        verbose_name_plural = "Billing invoices"
        ordering = ["-period_start", "-created_at"]
        indexes = [
            models.Index(fields=["tenant", "status"], name="billing_invoice_status_idx"),
        ]

    def __str__(self):
        return f"BillingInvoice<{self.provider_invoice_id}:{self.status}>"


class BillingAuditLog(models.Model):
    """Structured audit log for key billing lifecycle events."""

    id = models.BigAutoField(primary_key=True)
    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name="billing_audit_logs",
        help_text="Tenant associated with the event.",
    )
    event_type = models.CharField(max_length=100, help_text="Classification of the billing event.")
    reference = models.CharField(
        max_length=255,
        blank=True,
        help_text="Provider or internal object identifier tied to the event.",
    )
    actor = models.CharField(
        max_length=255,
        blank=True,
        help_text="Auth user or system actor responsible.",
    )
    details = models.JSONField(
        blank=True,
        null=True,
        help_text="Structured data describing the event.",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "billing_audit_log"
        verbose_name = "Billing audit log"
        verbose_name_plural = "Billing audit logs"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["tenant", "event_type"], name="billing_audit_tenant_idx"),
            models.Index(fields=["reference"], name="billing_audit_reference_idx"),
        ]

    def __str__(self):
        return f"BillingAuditLog<{self.tenant_id}:{self.event_type}>"
