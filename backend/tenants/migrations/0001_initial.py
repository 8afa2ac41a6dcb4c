import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("iam", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Tenant",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, help_text="Unique identifier for the tenant; sent to providers as tenant_uuid", primary_key=True, serialize=False)),
                ("name", models.CharField(help_text="Tenant display name", max_length=200)),
                ("slug", models.SlugField(max_length=100, unique=True)),
                ("billing_state", models.CharField(choices=[("trial", "Trial"), ("active", "Active"), ("past_due", "Past Due"), ("canceled", "Canceled")], default="trial", help_text="Coarse billing lifecycle state for the tenant", max_length=20)),
                ("status", models.CharField(choices=[("active", "Active"), ("suspended", "Suspended")], default="active", max_length=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "tenants",
                "ordering": ["-created_at"],
                "verbose_name": "Tenant",
                "verbose_name_plural": "Tenants",
            },
        ),
        migrations.CreateModel(
            name="TenantMember",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("member_type", models.CharField(choices=[("owner", "Owner"), ("member", "Member"), ("guest", "Guest")], default="member", max_length=20)),
                ("is_active", models.BooleanField(default=True, help_text="Whether this membership is currently active")),
                ("joined_at", models.DateTimeField(auto_now_add=True)),
                ("role", models.ForeignKey(blank=True, help_text="Tenant-scoped IAM role determining permissions", null=True, on_delete=django.db.models.deletion.PROTECT, related_name="tenant_members", to="iam.iamrole")),
                ("tenant", models.ForeignKey(help_text="The tenant this membership belongs to", on_delete=django.db.models.deletion.CASCADE, related_name="members", to="tenants.tenant")),
                ("user", models.ForeignKey(help_text="The user who is a member of the tenant", on_delete=django.db.models.deletion.CASCADE, related_name="tenant_memberships", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "tenant_members",
                "ordering": ["-joined_at"],
                "verbose_name": "Tenant Member",
                "verbose_name_plural": "Tenant Members",
                "constraints": [
                    models.UniqueConstraint(fields=("tenant", "user"), name="tenant_member_unique"),
                ],
                "indexes": [
                    models.Index(fields=["user", "is_active"], name="tenant_member_user_idx"),
                ],
            },
        ),
    ]
