"""Metered usage models: raw events, per-period aggregates and period-close overage fees."""
import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from billing.models import BillingPlan, Currency
from tenants.models import Tenant


class ImmutableModel(models.Model):
    """Rows are written once; updates and deletes raise ``ValidationError``."""

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if self.pk and type(self).objects.filter(pk=self.pk).exists():
            raise ValidationError(f"{self.__class__.__name__} records are immutable.")
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(f"{self.__class__.__name__} records are immutable.")


class UsageEvent(ImmutableModel):
    """A single metered usage report."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name="usage_events")
    feature_key = models.CharField(max_length=100)
    units = models.PositiveBigIntegerField(help_text="Units consumed; always positive.")
    idempotency_key = models.CharField(
        max_length=255,
        help_text="Caller-supplied key; one event per tenant, feature and key.",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "usage_events"
        verbose_name = "Usage event"
        verbose_name_plural = "Usage events"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "feature_key", "idempotency_key"],
                name="usage_event_idempotency",
            ),
            models.CheckConstraint(condition=Q(units__gt=0), name="usage_event_units_positive"),
        ]
        indexes = [
            models.Index(fields=["tenant", "feature_key", "created_at"], name="usage_event_tenant_feat_idx"),
        ]

    def clean(self):
        super().clean()
        if not self.units or self.units <= 0:
            raise ValidationError("Usage units must be positive.")

    def __str__(self):
        return f"UsageEvent<{self.tenant_id}:{self.feature_key}+{self.units}>"


class UsageAggregate(models.Model):
    """Running total of units per tenant, feature and month."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name="usage_aggregates")
    feature_key = models.CharField(max_length=100)
    period = models.DateField(help_text="First day of the calendar month (UTC).")
    units_used = models.BigIntegerField(default=0)
    plan = models.ForeignKey(
        BillingPlan,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Plan of the tenant's subscription when usage was last recorded in this period.",
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "usage_aggregates"
        verbose_name = "Usage aggregate"
        verbose_name_plural = "Usage aggregates"
        ordering = ["-period", "feature_key"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "feature_key", "period"],
                name="usage_aggregate_unique",
            ),
            models.CheckConstraint(condition=Q(units_used__gte=0), name="usage_aggregate_units_gte"),
        ]
        indexes = [
            models.Index(fields=["period"], name="usage_aggregate_period_idx"),
        ]

    def __str__(self):
        return f"UsageAggregate<{self.tenant_id}:{self.feature_key}@{self.period}={self.units_used}>"


class UsageOverageFee(ImmutableModel):
    """Fee for units above the plan allowance, written once at period close."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name="usage_overage_fees")
    period = models.DateField()
    feature_key = models.CharField(max_length=100)
    units_used = models.BigIntegerField()
    included_units = models.BigIntegerField()
    unit_price = models.PositiveBigIntegerField(help_text="Price per overage unit in the smallest currency unit.")
    total_amount = models.PositiveBigIntegerField()
    currency = models.CharField(max_length=3, choices=Currency.choices, default=Currency.USD)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "usage_overage_fees"
        verbose_name = "Usage overage fee"
        verbose_name_plural = "Usage overage fees"
        ordering = ["-period", "feature_key"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant", "period", "feature_key"],
                name="usage_overage_fee_unique",
            ),
        ]

    @property
    def overage_units(self) -> int:
        return max(self.units_used - self.included_units, 0)

    def __str__(self):
        return f"UsageOverageFee<{self.tenant_id}:{self.feature_key}@{self.period}={self.total_amount}>"
