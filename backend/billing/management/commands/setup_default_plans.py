"""
Create default billing plan catalog data

This command creates the standard Starter, Plus, Business and Enterprise plans,
their metered features, and provider product mappings configured in
BILLING_PRODUCT_IDS
"""

from django.conf import settings
from django.core.management.base import BaseCommand
from django.db import transaction

from billing.models import BillingPlan, BillingPlanFeature, ProviderProductMapping

UNLIMITED = BillingPlanFeature.UNLIMITED

PLANS = [
    {
        'key': BillingPlan.PlanKey.STARTER,
        'name': 'Starter',
        'description': 'Starter plan - small teams getting started',
        'base_price': 0,
        'features': {
            'api_calls': {'included_units': 1000, 'overage_price': None, 'workspace_count': 1, 'member_seat': 5},
        },
    },
    {
        'key': BillingPlan.PlanKey.PLUS,
        'name': 'Plus',
        'description': 'Plus plan - growing teams with metered overage',
        'base_price': 2900,
        'features': {
            'api_calls': {'included_units': 20000, 'overage_price': 2, 'workspace_count': 3, 'member_seat': 25},
        },
    },
    {
        'key': BillingPlan.PlanKey.BUSINESS,
        'name': 'Business',
        'description': 'Business plan - larger organisations',
        'base_price': 9900,
        'features': {
            'api_calls': {'included_units': 100000, 'overage_price': 1, 'workspace_count': 10, 'member_seat': 100},
        },
    },
    {
        'key': BillingPlan.PlanKey.ENTERPRISE,
        'name': 'Enterprise',
        'description': 'Enterprise plan - unlimited usage',
        'base_price': 49900,
        'features': {
            'api_calls': {
                'included_units': UNLIMITED,
                'overage_price': None,
                'workspace_count': 100,
                'member_seat': UNLIMITED,
            },
        },
    },
]


class Command(BaseCommand):

    help = 'Create default billing plans, plan features and provider product mappings'

    def add_arguments(self, parser):
        parser.add_argument(
            '--update',
            action='store_true',
            help='Update existing plans and features'
        )

    def handle(self, *args, **options):
        update_existing = options['update']
        product_ids = getattr(settings, 'BILLING_PRODUCT_IDS', {}) or {}
        provider = getattr(settings, 'BILLING_PAYMENT_PROVIDER', 'dodo')

        created_count = 0
        updated_count = 0
        mapped_count = 0

        with transaction.atomic():
            for plan_data in PLANS:
                plan_fields = {k: v for k, v in plan_data.items() if k not in ('key', 'features')}
                plan, created = BillingPlan.objects.get_or_create(key=plan_data['key'], defaults=plan_fields)

                if created:
                    created_count += 1
                    self.stdout.write(self.style.SUCCESS(f'Created plan: {plan.key}'))
                elif update_existing:
                    for field, value in plan_fields.items():
                        setattr(plan, field, value)
                    plan.save()
                    updated_count += 1
                    self.stdout.write(self.style.SUCCESS(f'Updated plan: {plan.key}'))
                else:
                    self.stdout.write(
                        self.style.WARNING(f'Plan already exists: {plan.key} (use --update to update)')
                    )

                for feature_key, limits in plan_data['features'].items():
                    if created or update_existing:
                        BillingPlanFeature.objects.update_or_create(
                            plan=plan,
                            feature_key=feature_key,
                            defaults=limits,
                        )

                product_id = product_ids.get(plan.key)
                if product_id:
                    _, mapped = ProviderProductMapping.objects.update_or_create(
                        provider=provider,
                        provider_product_id=product_id,
                        defaults={'plan': plan},
                    )
                    mapped_count += int(mapped)
                elif plan.base_price > 0:
                    self.stdout.write(self.style.WARNING(f'No provider product configured for plan {plan.key}'))

        self.stdout.write(
            f'Plan setup completed: created={created_count} updated={updated_count} '
            f'mappings_created={mapped_count} total={BillingPlan.objects.count()}'
        )
