import uuid

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


CURRENCY_CHOICES = [("USD", "US Dollar"), ("INR", "Indian Rupee"), ("EUR", "Euro"), ("GBP", "Pound Sterling")]
INTERVAL_CHOICES = [("one_time", "One Time"), ("monthly", "Monthly"), ("yearly", "Yearly")]
PROVIDER_CHOICES = [("dodo", "Dodo Payments"), ("polar", "Polar"), ("stripe", "Stripe")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("tenants", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="BillingPlan",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("key", models.CharField(choices=[("starter", "Starter"), ("plus", "Plus"), ("business", "Business"), ("enterprise", "Enterprise")], max_length=32, unique=True)),
                ("name", models.CharField(max_length=100)),
                ("description", models.TextField(blank=True)),
                ("base_price", models.PositiveBigIntegerField(default=0, help_text="List price in the smallest currency unit.")),
                ("currency", models.CharField(choices=CURRENCY_CHOICES, default="USD", max_length=3)),
                ("billing_interval", models.CharField(choices=INTERVAL_CHOICES, default="monthly", max_length=16)),
                ("is_active", models.BooleanField(default=True)),
                ("is_custom", models.BooleanField(default=False, help_text="Negotiated plan not listed publicly.")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "billing_plans",
                "ordering": ["base_price", "key"],
                "verbose_name": "Billing plan",
                "verbose_name_plural": "Billing plans",
            },
        ),
        migrations.CreateModel(
            name="BillingPlanFeature",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("feature_key", models.CharField(max_length=100)),
                ("included_units", models.BigIntegerField(help_text="Units included per period; -1 for unlimited.", validators=[django.core.validators.MinValueValidator(-1)])),
                ("overage_price", models.PositiveBigIntegerField(blank=True, help_text="Price per unit above the included amount, in the smallest currency unit.", null=True)),
                ("workspace_count", models.PositiveIntegerField(default=1)),
                ("guest_count", models.PositiveIntegerField(default=10)),
                ("member_seat", models.IntegerField(default=100, help_text="Seat limit; -1 for unlimited.", validators=[django.core.validators.MinValueValidator(-1)])),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("plan", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="features", to="billing.billingplan")),
            ],
            options={
                "db_table": "billing_plan_features",
                "ordering": ["plan", "feature_key"],
                "verbose_name": "Billing plan feature",
                "verbose_name_plural": "Billing plan features",
                "constraints": [
                    models.UniqueConstraint(fields=("plan", "feature_key"), name="billing_plan_feature_unique"),
                    models.CheckConstraint(condition=models.Q(included_units__gte=-1), name="billing_plan_feature_units_gte"),
                    models.CheckConstraint(condition=models.Q(member_seat__gte=-1), name="billing_plan_feature_seat_gte"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BillingPlanPrice",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("provider", models.CharField(choices=PROVIDER_CHOICES, default="dodo", max_length=16)),
                ("provider_price_id", models.CharField(blank=True, max_length=255)),
                ("amount", models.PositiveBigIntegerField(help_text="Price in the smallest currency unit.")),
                ("currency", models.CharField(choices=CURRENCY_CHOICES, default="USD", max_length=3)),
                ("billing_interval", models.CharField(choices=INTERVAL_CHOICES, default="monthly", max_length=16)),
                ("is_active", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("plan", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="prices", to="billing.billingplan")),
            ],
            options={
                "db_table": "billing_plan_prices",
                "ordering": ["plan", "-is_active", "-created_at"],
                "verbose_name": "Billing plan price",
                "verbose_name_plural": "Billing plan prices",
                "constraints": [
                    models.UniqueConstraint(condition=models.Q(is_active=True), fields=("plan",), name="billing_plan_price_one_active"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProviderProductMapping",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("provider", models.CharField(choices=PROVIDER_CHOICES, default="dodo", max_length=16)),
                ("provider_product_id", models.CharField(max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("plan", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="product_mappings", to="billing.billingplan")),
            ],
            options={
                "db_table": "billing_provider_product_mappings",
                "ordering": ["provider", "provider_product_id"],
                "verbose_name": "Provider product mapping",
                "verbose_name_plural": "Provider product mappings",
                "constraints": [
                    models.UniqueConstraint(fields=("provider", "provider_product_id"), name="billing_product_mapping_unique"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BillingCustomer",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("provider", models.CharField(choices=PROVIDER_CHOICES, default="dodo", max_length=16)),
                ("provider_customer_id", models.CharField(max_length=255)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="billing_customers", to="tenants.tenant")),
            ],
            options={
                "db_table": "billing_customers",
                "verbose_name": "Billing customer",
                "verbose_name_plural": "Billing customers",
                "constraints": [
                    models.UniqueConstraint(fields=("provider", "provider_customer_id"), name="billing_customer_provider_unique"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TenantCreditLedgerEntry",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("delta", models.BigIntegerField(help_text="Signed amount; positive credits the tenant, negative debits it.")),
                ("reason", models.CharField(help_text="Human-readable explanation of the movement.", max_length=255)),
                ("source", models.CharField(choices=[("billing", "Billing"), ("admin", "Admin"), ("promo", "Promotion")], max_length=16)),
                ("idempotency_key", models.CharField(help_text="Caller-supplied key; one entry per tenant and key.", max_length=255)),
                ("reference_type", models.CharField(blank=True, help_text="Kind of object referenced, e.g. payment.", max_length=50)),
                ("reference_id", models.CharField(blank=True, max_length=255)),
                ("expires_at", models.DateTimeField(blank=True, help_text="Entry stops counting towards the balance after this time.", null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("tenant", models.ForeignKey(help_text="Tenant whose balance this entry affects.", on_delete=django.db.models.deletion.PROTECT, related_name="credit_ledger_entries", to="tenants.tenant")),
            ],
            options={
                "db_table": "tenant_credit_ledger",
                "ordering": ["-created_at"],
                "verbose_name": "Tenant credit ledger entry",
                "verbose_name_plural": "Tenant credit ledger entries",
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("delta", 0), _negated=True), name="tenant_credit_ledger_non_zero"),
                    models.UniqueConstraint(fields=("tenant", "idempotency_key"), name="tenant_credit_ledger_idempotency"),
                ],
                "indexes": [
                    models.Index(fields=["tenant", "expires_at"], name="credit_ledger_tenant_exp_idx"),
                    models.Index(fields=["reference_type", "reference_id"], name="credit_ledger_reference_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BillingPaymentEvent",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("provider", models.CharField(choices=PROVIDER_CHOICES, default="dodo", max_length=16)),
                ("provider_event_id", models.CharField(max_length=255, unique=True)),
                ("event_type", models.CharField(max_length=100)),
                ("payload", models.JSONField(help_text="Event body as delivered by the provider.")),
                ("payload_hash", models.CharField(blank=True, help_text="SHA256 of the canonical payload.", max_length=64)),
                ("processed", models.BooleanField(default=False, help_text="True once dispatch side effects committed.")),
                ("attempts", models.PositiveIntegerField(default=0)),
                ("last_error", models.TextField(blank=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("tenant", models.ForeignKey(blank=True, help_text="Tenant resolved from metadata; empty only for unrecognised event types.", null=True, on_delete=django.db.models.deletion.PROTECT, related_name="payment_events", to="tenants.tenant")),
            ],
            options={
                "db_table": "billing_payment_events",
                "ordering": ["-created_at"],
                "verbose_name": "Billing payment event",
                "verbose_name_plural": "Billing payment events",
                "indexes": [
                    models.Index(fields=["processed", "created_at"], name="payment_event_pending_idx"),
                    models.Index(fields=["event_type"], name="payment_event_type_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BillingOneTimePayment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("provider", models.CharField(choices=PROVIDER_CHOICES, default="dodo", max_length=16)),
                ("provider_payment_id", models.CharField(max_length=255, unique=True)),
                ("amount", models.PositiveBigIntegerField(default=0, help_text="Amount in the smallest currency unit.")),
                ("currency", models.CharField(choices=CURRENCY_CHOICES, default="USD", max_length=3)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("succeeded", "Succeeded"), ("failed", "Failed")], default="pending", max_length=16)),
                ("reason", models.CharField(choices=[("limited_access", "Limited Access"), ("topup", "Credit Top-up"), ("addon", "Add-on Purchase")], default="topup", max_length=32)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="one_time_payments", to="tenants.tenant")),
            ],
            options={
                "db_table": "billing_one_time_payments",
                "ordering": ["-created_at"],
                "verbose_name": "One-time payment",
                "verbose_name_plural": "One-time payments",
                "indexes": [
                    models.Index(fields=["tenant", "status"], name="one_time_payment_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TenantSubscription",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("provider", models.CharField(choices=PROVIDER_CHOICES, default="dodo", max_length=16)),
                ("provider_subscription_id", models.CharField(max_length=255, unique=True)),
                ("status", models.CharField(choices=[("active", "Active"), ("trialing", "Trialing"), ("past_due", "Past Due"), ("canceled", "Canceled")], default="active", max_length=16)),
                ("current_period_start", models.DateTimeField()),
                ("current_period_end", models.DateTimeField()),
                ("subscription_seat", models.PositiveIntegerField(default=1)),
                ("canceled_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("plan", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="subscriptions", to="billing.billingplan")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="subscriptions", to="tenants.tenant")),
            ],
            options={
                "db_table": "billing_tenant_subscriptions",
                "ordering": ["-current_period_end"],
                "verbose_name": "Tenant subscription",
                "verbose_name_plural": "Tenant subscriptions",
                "constraints": [
                    models.CheckConstraint(condition=models.Q(current_period_start__lt=models.F("current_period_end")), name="tenant_subscription_period_order"),
                    models.CheckConstraint(condition=models.Q(subscription_seat__gte=1), name="tenant_subscription_seat_min"),
                ],
                "indexes": [
                    models.Index(fields=["tenant", "status"], name="tenant_subscription_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BillingInvoice",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("provider_invoice_id", models.CharField(max_length=255, unique=True)),
                ("period_start", models.DateTimeField()),
                ("period_end", models.DateTimeField()),
                ("subscription_amount", models.BigIntegerField(default=0)),
                ("usage_amount", models.BigIntegerField(default=0)),
                ("proration_amount", models.BigIntegerField(default=0)),
                ("refund_amount", models.BigIntegerField(default=0)),
                ("total_amount", models.BigIntegerField(default=0, help_text="Amount due in the smallest currency unit.")),
                ("currency", models.CharField(choices=CURRENCY_CHOICES, default="USD", max_length=3)),
                ("status", models.CharField(choices=[("open", "Open"), ("paid", "Paid"), ("failed", "Failed")], default="open", max_length=16)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("subscription", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="invoices", to="billing.tenantsubscription")),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="invoices", to="tenants.tenant")),
            ],
            options={
                "db_table": "billing_invoices",
                "ordering": ["-period_start", "-created_at"],
                "verbose_name": "Billing invoice",
                "verbose_name_plural": "Billing invoices",
                "indexes": [
                    models.Index(fields=["tenant", "status"], name="billing_invoice_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="BillingAuditLog",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("event_type", models.CharField(help_text="Classification of the billing event.", max_length=100)),
                ("reference", models.CharField(blank=True, help_text="Provider or internal object identifier tied to the event.", max_length=255)),
                ("actor", models.CharField(blank=True, help_text="Auth user or system actor responsible.", max_length=255)),
                ("details", models.JSONField(blank=True, help_text="Structured data describing the event.", null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("tenant", models.ForeignKey(help_text="Tenant associated with the event.", on_delete=django.db.models.deletion.CASCADE, related_name="billing_audit_logs", to="tenants.tenant")),
            ],
            options={
                "db_table": "billing_audit_log",
                "ordering": ["-created_at"],
                "verbose_name": "Billing audit log",
                "verbose_name_plural": "Billing audit logs",
                "indexes": [
                    models.Index(fields=["tenant", "event_type"], name="billing_audit_tenant_idx"),
                    models.Index(fields=["reference"], name="billing_audit_reference_idx"),
                ],
            },
        ),
    ]
