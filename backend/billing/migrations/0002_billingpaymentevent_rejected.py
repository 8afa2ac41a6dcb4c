from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("billing", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="billingpaymentevent",
            name="rejected",
            field=models.BooleanField(
                default=False,
                help_text="Dispatch rejected the payload as invalid; the event is never retried.",
            ),
        ),
    ]
