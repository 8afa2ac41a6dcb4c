import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="IamPermission",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("key", models.CharField(max_length=150, unique=True)),
                ("resource", models.CharField(blank=True, max_length=100)),
                ("action", models.CharField(blank=True, max_length=100)),
                ("description", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "iam_permissions",
                "ordering": ["key"],
                "verbose_name": "IAM permission",
                "verbose_name_plural": "IAM permissions",
            },
        ),
        migrations.CreateModel(
            name="IamRole",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("key", models.CharField(help_text="Stable identifier, e.g. tenant_owner.", max_length=100, unique=True)),
                ("display_name", models.CharField(blank=True, max_length=150)),
                ("description", models.TextField(blank=True)),
                ("scope", models.CharField(choices=[("platform", "Platform"), ("tenant", "Tenant")], default="tenant", max_length=20)),
                ("is_system", models.BooleanField(default=False, help_text="System roles cannot be edited from the API.")),
                ("is_break_glass", models.BooleanField(default=False, help_text="Emergency access role; assignments should be audited.")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "iam_roles",
                "ordering": ["key"],
                "verbose_name": "IAM role",
                "verbose_name_plural": "IAM roles",
            },
        ),
        migrations.CreateModel(
            name="IamRolePermission",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("permission", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="role_permissions", to="iam.iampermission")),
                ("role", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="role_permissions", to="iam.iamrole")),
            ],
            options={
                "db_table": "iam_role_permissions",
                "verbose_name": "IAM role permission",
                "verbose_name_plural": "IAM role permissions",
                "constraints": [
                    models.UniqueConstraint(fields=("role", "permission"), name="iam_role_permission_unique"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PlatformRoleAssignment",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("role", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="platform_assignments", to="iam.iamrole")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="platform_role_assignments", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "iam_platform_role_assignments",
                "verbose_name": "Platform role assignment",
                "verbose_name_plural": "Platform role assignments",
                "constraints": [
                    models.UniqueConstraint(fields=("user", "role"), name="iam_platform_assignment_unique"),
                ],
            },
        ),
    ]
