import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("billing", "0001_initial"),
        ("usage", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="usageaggregate",
            name="plan",
            field=models.ForeignKey(
                blank=True,
                help_text="Plan of the tenant's subscription when usage was last recorded in this period.",
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="+",
                to="billing.billingplan",
            ),
        ),
    ]
