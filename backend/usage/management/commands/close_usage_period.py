"""
Close a usage period and create overage fees

Defaults to the previous calendar month when --period is omitted
"""
import uuid

from django.core.management.base import BaseCommand, CommandError

from billing.services.periods import parse_period, previous_period
from tenants.models import Tenant
from usage.services.overage import close_usage_period


class Command(BaseCommand):

    help = 'Create overage fees for usage above plan allowances in a billing period'

    def add_arguments(self, parser):
        parser.add_argument(
            '--period',
            help='Period to close as YYYY-MM (default: previous month)'
        )
        parser.add_argument(
            '--tenant',
            dest='tenant_id',
            help='Close the period for a single tenant UUID'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Compute fees without storing them'
        )

    def handle(self, *args, **options):
        try:
            period = parse_period(options['period']) if options.get('period') else previous_period()
        except ValueError as exc:
            raise CommandError(str(exc))

        tenant_id = options.get('tenant_id')
        if tenant_id:
            try:
                tenant_id = uuid.UUID(tenant_id)
            except ValueError:
                raise CommandError(f'Invalid tenant UUID: {tenant_id}')
        if tenant_id and not Tenant.objects.filter(id=tenant_id).exists():
            raise CommandError(f'Tenant {tenant_id} does not exist')

        dry_run = options['dry_run']
        summary = close_usage_period(period=period, tenant_id=tenant_id, dry_run=dry_run)

        for fee in summary.fees:
            self.stdout.write(
                f'  {fee.tenant_id} {fee.feature_key}: {fee.units_used - fee.included_units} units '
                f'x {fee.unit_price} = {fee.total_amount} {fee.currency}'
            )

        label = 'Dry run' if dry_run else 'Period close'
        self.stdout.write(
            self.style.SUCCESS(
                f'{label} {period:%Y-%m}: examined={summary.examined} '
                f'created={summary.created} skipped={summary.skipped}'
            )
        )
