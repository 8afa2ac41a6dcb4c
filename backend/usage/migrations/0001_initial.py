import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("tenants", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="UsageEvent",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("feature_key", models.CharField(max_length=100)),
                ("units", models.PositiveBigIntegerField(help_text="Units consumed; always positive.")),
                ("idempotency_key", models.CharField(help_text="Caller-supplied key; one event per tenant, feature and key.", max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="usage_events", to="tenants.tenant")),
            ],
            options={
                "verbose_name": "Usage event",
                "verbose_name_plural": "Usage events",
                "db_table": "usage_events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["tenant", "feature_key", "created_at"], name="usage_event_tenant_feat_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("tenant", "feature_key", "idempotency_key"), name="usage_event_idempotency"),
                    models.CheckConstraint(condition=models.Q(("units__gt", 0)), name="usage_event_units_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="UsageAggregate",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("feature_key", models.CharField(max_length=100)),
                ("period", models.DateField(help_text="First day of the calendar month (UTC).")),
                ("units_used", models.BigIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="usage_aggregates", to="tenants.tenant")),
            ],
            options={
                "verbose_name": "Usage aggregate",
                "verbose_name_plural": "Usage aggregates",
                "db_table": "usage_aggregates",
                "ordering": ["-period", "feature_key"],
                "indexes": [
                    models.Index(fields=["period"], name="usage_aggregate_period_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("tenant", "feature_key", "period"), name="usage_aggregate_unique"),
                    models.CheckConstraint(condition=models.Q(("units_used__gte", 0)), name="usage_aggregate_units_gte"),
                ],
            },
        ),
        migrations.CreateModel(
            name="UsageOverageFee",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("period", models.DateField()),
                ("feature_key", models.CharField(max_length=100)),
                ("units_used", models.BigIntegerField()),
                ("included_units", models.BigIntegerField()),
                ("unit_price", models.PositiveBigIntegerField(help_text="Price per overage unit in the smallest currency unit.")),
                ("total_amount", models.PositiveBigIntegerField()),
                ("currency", models.CharField(choices=[("USD", "US Dollar"), ("INR", "Indian Rupee"), ("EUR", "Euro"), ("GBP", "Pound Sterling")], default="USD", max_length=3)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("tenant", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="usage_overage_fees", to="tenants.tenant")),
            ],
            options={
                "verbose_name": "Usage overage fee",
                "verbose_name_plural": "Usage overage fees",
                "db_table": "usage_overage_fees",
                "ordering": ["-period", "feature_key"],
                "constraints": [
                    models.UniqueConstraint(fields=("tenant", "period", "feature_key"), name="usage_overage_fee_unique"),
                ],
            },
        ),
    ]
