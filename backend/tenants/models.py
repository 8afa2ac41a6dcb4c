import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


class Tenant(models.Model):
    """
    Tenant model - isolation boundary for billing, usage and membership

    Every ledger entry, usage record, subscription and invoice belongs to
    exactly one tenant.
    """

    class BillingState(models.TextChoices):
        TRIAL = "trial", "Trial"
        ACTIVE = "active", "Active"
        PAST_DUE = "past_due", "Past Due"
        CANCELED = "canceled", "Canceled"

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        SUSPENDED = "suspended", "Suspended"

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for the tenant; sent to providers as tenant_uuid"
    )
    name = models.CharField(max_length=200, help_text="Tenant display name")
    slug = models.SlugField(max_length=100, unique=True)
    billing_state = models.CharField(
        max_length=20,
        choices=BillingState.choices,
        default=BillingState.TRIAL,
        help_text="Coarse billing lifecycle state for the tenant"
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'tenants'
        verbose_name = 'Tenant'
        verbose_name_plural = 'Tenants'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} ({self.slug})"


class TenantMember(models.Model):
    """
    TenantMember model - user membership and IAM role inside a tenant
    """

    class MemberType(models.TextChoices):
        OWNER = "owner", "Owner"
        MEMBER = "member", "Member"
        GUEST = "guest", "Guest"

    tenant = models.ForeignKey(
        Tenant,
        on_delete=models.CASCADE,
        related_name='members',
        help_text="The tenant this membership belongs to"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='tenant_memberships',
        help_text="The user who is a member of the tenant"
    )
    role = models.ForeignKey(
        'iam.IamRole',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='tenant_members',
        help_text="Tenant-scoped IAM role determining permissions"
    )
    member_type = models.CharField(max_length=20, choices=MemberType.choices, default=MemberType.MEMBER)
    is_active = models.BooleanField(default=True, help_text="Whether this membership is currently active")
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'tenant_members'
        verbose_name = 'Tenant Member'
        verbose_name_plural = 'Tenant Members'
        ordering = ['-joined_at']
        constraints = [
            models.UniqueConstraint(fields=['tenant', 'user'], name='tenant_member_unique'),
        ]
        indexes = [
            models.Index(fields=['user', 'is_active'], name='tenant_member_user_idx'),
        ]

    def __str__(self):
        return f"{self.user_id} - {self.tenant_id} ({self.member_type})"

    def clean(self):
        if self.role_id and self.role.scope != 'tenant':
            raise ValidationError("Tenant members can only hold tenant-scoped roles.")
