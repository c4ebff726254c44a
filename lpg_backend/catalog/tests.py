"""
Test suite for the catalog module
Tests: companies, cylinder sizes, products, tenant isolation, product list cache
"""
from decimal import Decimal
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from lpg_backend.catalog.models import Product, CylinderSize
from lpg_backend.core.cache_utils import tenant_cache_key, PRODUCTS_LIST_PREFIX
from lpg_backend.core.models import User
from lpg_backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class CompanyTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.tenant = self.user.tenant
        self.client = AuthenticatedAPIClient().authenticate_user(self.user)

    def test_create_company(self):
        response = self.client.post('/api/v1/companies/', {'name': '  Bashundhara '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Bashundhara')

    def test_duplicate_company_name_in_tenant(self):
        TestDataFactory.create_company(self.tenant, name='Omera')
        response = self.client.post('/api/v1/companies/', {'name': 'Omera'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_same_name_allowed_in_other_tenant(self):
        other_tenant = TestDataFactory.create_tenant()
        TestDataFactory.create_company(other_tenant, name='Omera')
        response = self.client.post('/api/v1/companies/', {'name': 'Omera'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_cannot_delete_company_with_products(self):
        company = TestDataFactory.create_company(self.tenant)
        TestDataFactory.create_product(self.tenant, company=company)
        response = self.client.delete(f'/api/v1/companies/{company.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_driver_cannot_create_company(self):
        driver_user = TestDataFactory.create_user(tenant=self.tenant, role=User.ROLE_DRIVER)
        client = AuthenticatedAPIClient().authenticate_user(driver_user)
        response = client.post('/api/v1/companies/', {'name': 'Jamuna'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class CylinderSizeTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient().authenticate_user(self.user)

    def test_size_is_uppercased(self):
        response = self.client.post('/api/v1/cylinder-sizes/', {'size': '35kg'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(CylinderSize.objects.filter(tenant=self.user.tenant, size='35KG').exists())

    def test_duplicate_size(self):
        TestDataFactory.create_cylinder_size(self.user.tenant, '12KG')
        response = self.client.post('/api/v1/cylinder-sizes/', {'size': '12kg'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ProductTests(TestCase):

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.tenant = self.user.tenant
        self.client = AuthenticatedAPIClient().authenticate_user(self.user)
        self.company = TestDataFactory.create_company(self.tenant, name='Bashundhara')

    def test_create_product_takes_size_label(self):
        size = TestDataFactory.create_cylinder_size(self.tenant, '12KG')
        response = self.client.post('/api/v1/products/', {
            'company': self.company.id,
            'cylinder_size': size.id,
            'name': 'Bashundhara LPG',
            'current_price': '1450.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['size'], '12KG')
        self.assertEqual(response.data['company_name'], 'Bashundhara')

    def test_product_requires_a_size(self):
        response = self.client.post('/api/v1/products/', {
            'company': self.company.id, 'name': 'No size',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('size', response.data)

    def test_negative_price_rejected(self):
        response = self.client.post('/api/v1/products/', {
            'company': self.company.id, 'name': 'Cheap', 'size': '12KG', 'current_price': '-1',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_company_of_other_tenant_rejected(self):
        foreign_company = TestDataFactory.create_company(TestDataFactory.create_tenant())
        response = self.client.post('/api/v1/products/', {
            'company': foreign_company.id, 'name': 'Foreign', 'size': '12KG',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('company', response.data)

    def test_product_list_is_cached_and_invalidated(self):
        TestDataFactory.create_product(self.tenant, company=self.company, name='First')
        response = self.client.get('/api/v1/products/')
        self.assertEqual(len(response.data), 1)
        self.assertIsNotNone(cache.get(tenant_cache_key(PRODUCTS_LIST_PREFIX, self.tenant.id)))

        self.client.post('/api/v1/products/', {
            'company': self.company.id, 'name': 'Second', 'size': '35KG', 'current_price': '3000',
        }, format='json')
        response = self.client.get('/api/v1/products/')
        self.assertEqual(len(response.data), 2)

    def test_products_of_other_tenants_are_hidden(self):
        TestDataFactory.create_product(TestDataFactory.create_tenant())
        response = self.client.get('/api/v1/products/')
        self.assertEqual(len(response.data), 0)

    def test_update_product_price(self):
        product = TestDataFactory.create_product(self.tenant, company=self.company)
        response = self.client.patch(f'/api/v1/products/{product.id}/', {'current_price': '1500.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product.refresh_from_db()
        self.assertEqual(product.current_price, Decimal('1500.00'))

    def test_cannot_delete_product_with_sales(self):
        product = TestDataFactory.create_product(self.tenant, company=self.company)
        driver = TestDataFactory.create_driver(self.tenant)
        TestDataFactory.create_sale(self.tenant, driver, product)
        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Product.objects.filter(pk=product.pk).exists())
