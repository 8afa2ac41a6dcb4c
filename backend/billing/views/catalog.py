"""Billing catalog administration: plans, plan features, prices and provider product mappings."""
from __future__ import annotations

import logging

from django.db import IntegrityError, transaction
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.viewsets import ModelViewSet

from billing.filters import BillingPlanFeatureFilter, BillingPlanPriceFilter, ProviderProductMappingFilter
from billing.models import BillingPlan, BillingPlanFeature, BillingPlanPrice, ProviderProductMapping
from billing.pagination import BoundedPageNumberPagination
from billing.serializers import (
    BillingPlanFeatureSerializer,
    BillingPlanPriceSerializer,
    BillingPlanSerializer,
    ProviderProductMappingSerializer,
)
from billing.services.catalog import activate_price
from iam.permissions import PLATFORM_PLAN_MANAGE, PlatformPermissionForWrites

logger = logging.getLogger(__name__)


class CatalogViewSet(ModelViewSet):
    permission_classes = [PlatformPermissionForWrites]
    platform_permission = PLATFORM_PLAN_MANAGE
    pagination_class = BoundedPageNumberPagination

    def perform_create(self, serializer):
        try:
            with transaction.atomic():
                instance = serializer.save()
        except IntegrityError as exc:
            raise ValidationError({"non_field_errors": ["Record conflicts with an existing catalog entry."]}) from exc
        logger.info("Catalog %s %s created by user %s", instance.__class__.__name__, instance.pk, self.request.user.pk)

    def perform_update(self, serializer):
        try:
            with transaction.atomic():
                instance = serializer.save()
        except IntegrityError as exc:
            raise ValidationError({"non_field_errors": ["Record conflicts with an existing catalog entry."]}) from exc
        logger.info("Catalog %s %s updated by user %s", instance.__class__.__name__, instance.pk, self.request.user.pk)


class BillingPlanViewSet(CatalogViewSet):
    queryset = BillingPlan.objects.all()
    serializer_class = BillingPlanSerializer
    filterset_fields = ("key", "is_active", "is_custom", "billing_interval")
    ordering_fields = ("base_price", "key", "created_at")
    ordering = ("base_price", "key")


class BillingPlanFeatureViewSet(CatalogViewSet):
    queryset = BillingPlanFeature.objects.select_related("plan")
    serializer_class = BillingPlanFeatureSerializer
    filterset_class = BillingPlanFeatureFilter
    ordering_fields = ("feature_key", "included_units", "created_at")
    ordering = ("plan__base_price", "feature_key")


class BillingPlanPriceViewSet(CatalogViewSet):
    queryset = BillingPlanPrice.objects.select_related("plan")
    serializer_class = BillingPlanPriceSerializer
    filterset_class = BillingPlanPriceFilter
    ordering_fields = ("amount", "created_at")
    ordering = ("plan__base_price", "-is_active", "-created_at")

    def perform_create(self, serializer):
        activate = serializer.validated_data.pop("is_active", False)
        super().perform_create(serializer)
        if activate:
            activate_price(serializer.instance)

    def perform_update(self, serializer):
        activate = serializer.validated_data.pop("is_active", None)
        super().perform_update(serializer)
        if activate:
            activate_price(serializer.instance)
        elif activate is False and serializer.instance.is_active:
            serializer.instance.is_active = False
            serializer.instance.save(update_fields=["is_active", "updated_at"])

    @action(detail=True, methods=["post"])
    def activate(self, request, pk=None):
        price = activate_price(self.get_object())
        return Response(self.get_serializer(price).data, status=status.HTTP_200_OK)


class ProviderProductMappingViewSet(CatalogViewSet):
    queryset = ProviderProductMapping.objects.select_related("plan")
    serializer_class = ProviderProductMappingSerializer
    filterset_class = ProviderProductMappingFilter
    ordering_fields = ("provider_product_id", "created_at")
    ordering = ("provider", "provider_product_id")
