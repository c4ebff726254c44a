import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.core.cache import cache
from django.db.models import Count, ProtectedError
from django.shortcuts import get_object_or_404

from lpg_backend.core.cache_utils import (
    tenant_cache_key, invalidate_tenant_cache, PRODUCTS_LIST_PREFIX, PRODUCTS_LIST_CACHE_TTL,
)
from lpg_backend.core.permissions import IsTenantUser, is_manager_or_admin
from lpg_backend.core.utils import create_audit_log, model_snapshot, parse_bool
from .filters import ProductFilter
from .models import Company, CylinderSize, Product
from .serializers import CompanySerializer, CylinderSizeSerializer, ProductSerializer

logger = logging.getLogger(__name__)

PRODUCT_AUDIT_FIELDS = ['name', 'size', 'company', 'current_price', 'full_cylinder_price',
                        'empty_cylinder_price', 'low_stock_threshold', 'is_active']


def _forbidden():
    return Response({'error': 'Manager or admin access required.'}, status=status.HTTP_403_FORBIDDEN)


def _product_list_changed(tenant_id):
    invalidate_tenant_cache(PRODUCTS_LIST_PREFIX, tenant_id)


# Company views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def company_list_create(request):
    """List the tenant's companies or create a new company"""
    tenant = request.user.tenant
    if request.method == 'GET':
        companies = Company.objects.filter(tenant=tenant).annotate(product_count=Count('products'))
        if parse_bool(request.query_params.get('active_only')):
            companies = companies.filter(is_active=True)
        serializer = CompanySerializer(companies, many=True)
        return Response(serializer.data)
    else:
        if not is_manager_or_admin(request.user):
            return _forbidden()
        serializer = CompanySerializer(data=request.data, context={'request': request})
        if serializer.is_valid():
            company = serializer.save(tenant=tenant)
            _product_list_changed(tenant.id)
            create_audit_log(request=request, action='CREATE', model_name='Company', object_id=company.id,
                             object_name=company.name, changes={'new': model_snapshot(company, fields=['name', 'code'])})
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsTenantUser])
def company_detail(request, pk):
    """Retrieve, update or delete a company"""
    company = get_object_or_404(Company, pk=pk, tenant=request.user.tenant)

    if request.method == 'GET':
        serializer = CompanySerializer(company)
        return Response(serializer.data)

    if not is_manager_or_admin(request.user):
        return _forbidden()

    if request.method in ('PUT', 'PATCH'):
        serializer = CompanySerializer(company, data=request.data, partial=request.method == 'PATCH',
                                       context={'request': request})
        if serializer.is_valid():
            serializer.save()
            _product_list_changed(company.tenant_id)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if company.products.exists():
            return Response(
                {'error': 'Cannot delete a company that has products. Deactivate it instead.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        company_id, company_name = company.id, company.name
        company.delete()
        _product_list_changed(request.user.tenant_id)
        create_audit_log(request=request, action='DELETE', model_name='Company', object_id=company_id,
                         object_name=company_name)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Cylinder size views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def cylinder_size_list_create(request):
    """List the tenant's cylinder sizes or create a new one"""
    tenant = request.user.tenant
    if request.method == 'GET':
        sizes = CylinderSize.objects.filter(tenant=tenant)
        if parse_bool(request.query_params.get('active_only')):
            sizes = sizes.filter(is_active=True)
        serializer = CylinderSizeSerializer(sizes, many=True)
        return Response(serializer.data)
    else:
        if not is_manager_or_admin(request.user):
            return _forbidden()
        serializer = CylinderSizeSerializer(data=request.data, context={'request': request})
        if serializer.is_valid():
            serializer.save(tenant=tenant)
            _product_list_changed(tenant.id)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsTenantUser])
def cylinder_size_detail(request, pk):
    """Retrieve, update or delete a cylinder size"""
    cylinder_size = get_object_or_404(CylinderSize, pk=pk, tenant=request.user.tenant)

    if request.method == 'GET':
        serializer = CylinderSizeSerializer(cylinder_size)
        return Response(serializer.data)

    if not is_manager_or_admin(request.user):
        return _forbidden()

    if request.method in ('PUT', 'PATCH'):
        serializer = CylinderSizeSerializer(cylinder_size, data=request.data, partial=request.method == 'PATCH',
                                            context={'request': request})
        if serializer.is_valid():
            serializer.save()
            _product_list_changed(cylinder_size.tenant_id)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        cylinder_size.delete()
        _product_list_changed(request.user.tenant_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Product views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def product_list_create(request):
    """List the tenant's products (cached when unfiltered) or create a new product"""
    tenant = request.user.tenant
    if request.method == 'GET':
        unfiltered = not request.query_params
        cache_key = tenant_cache_key(PRODUCTS_LIST_PREFIX, tenant.id)
        if unfiltered:
            cached = cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Cache HIT for product list of tenant {tenant.id}")
                return Response(cached)

        queryset = Product.objects.filter(tenant=tenant).select_related('company', 'cylinder_size')
        filterset = ProductFilter(request.query_params, queryset=queryset)
        serializer = ProductSerializer(filterset.qs, many=True)
        data = serializer.data

        if unfiltered:
            cache.set(cache_key, data, PRODUCTS_LIST_CACHE_TTL)
        return Response(data)
    else:
        if not is_manager_or_admin(request.user):
            return _forbidden()
        serializer = ProductSerializer(data=request.data, context={'request': request})
        if serializer.is_valid():
            product = serializer.save(tenant=tenant)
            _product_list_changed(tenant.id)
            create_audit_log(request=request, action='CREATE', model_name='Product', object_id=product.id,
                             object_name=str(product),
                             changes={'new': model_snapshot(product, fields=PRODUCT_AUDIT_FIELDS)})
            return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsTenantUser])
def product_detail(request, pk):
    """Retrieve, update or delete a product"""
    product = get_object_or_404(Product.objects.select_related('company', 'cylinder_size'),
                                pk=pk, tenant=request.user.tenant)

    if request.method == 'GET':
        serializer = ProductSerializer(product)
        return Response(serializer.data)

    if not is_manager_or_admin(request.user):
        return _forbidden()

    if request.method in ('PUT', 'PATCH'):
        old = model_snapshot(product, fields=PRODUCT_AUDIT_FIELDS)
        serializer = ProductSerializer(product, data=request.data, partial=request.method == 'PATCH',
                                       context={'request': request})
        if serializer.is_valid():
            serializer.save()
            _product_list_changed(product.tenant_id)
            new = model_snapshot(product, fields=PRODUCT_AUDIT_FIELDS)
            changes = {k: {'old': old.get(k), 'new': new.get(k)} for k in old if old.get(k) != new.get(k)}
            if changes:
                create_audit_log(request=request, action='UPDATE', model_name='Product', object_id=product.id,
                                 object_name=str(product), changes=changes)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if product.sales.exists():
            return Response(
                {'error': 'Cannot delete a product that has sales. Deactivate it instead.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        product_id, product_name = product.id, str(product)
        try:
            product.delete()
        except ProtectedError:
            return Response(
                {'error': 'Cannot delete a product that has shipments. Deactivate it instead.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        _product_list_changed(request.user.tenant_id)
        create_audit_log(request=request, action='DELETE', model_name='Product', object_id=product_id,
                         object_name=product_name)
        return Response(status=status.HTTP_204_NO_CONTENT)
