"""
Test suite for drivers, areas and customers
"""
from django.test import TestCase
from rest_framework import status
from lpg_backend.core.models import User
from lpg_backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from lpg_backend.parties.models import Driver, Area, Customer


class DriverTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.tenant = self.user.tenant
        self.client = AuthenticatedAPIClient().authenticate_user(self.user)

    def test_create_driver(self):
        response = self.client.post('/api/v1/drivers/', {
            'name': ' Karim ', 'phone': '01711000000', 'driver_type': 'RETAIL', 'route': 'Mirpur',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['name'], 'Karim')
        self.assertTrue(response.data['is_active'])

    def test_duplicate_phone_in_tenant(self):
        TestDataFactory.create_driver(self.tenant, phone='01711000000')
        response = self.client.post('/api/v1/drivers/', {
            'name': 'Another', 'phone': '01711000000',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_short_name_rejected(self):
        response = self.client.post('/api/v1/drivers/', {'name': 'K', 'phone': '01711000001'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('name', response.data)

    def test_leaving_before_joining_rejected(self):
        response = self.client.post('/api/v1/drivers/', {
            'name': 'Karim', 'phone': '01711000002',
            'joining_date': '2024-05-10', 'leaving_date': '2024-05-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('leaving_date', response.data)

    def test_list_filters_by_status(self):
        TestDataFactory.create_driver(self.tenant, name='Active One')
        TestDataFactory.create_driver(self.tenant, name='Gone', status=Driver.STATUS_INACTIVE)
        response = self.client.get('/api/v1/drivers/?status=ACTIVE')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['name'], 'Active One')

    def test_detail_includes_metrics(self):
        driver = TestDataFactory.create_driver(self.tenant)
        product = TestDataFactory.create_product(self.tenant)
        TestDataFactory.create_sale(self.tenant, driver, product, quantity=2)
        response = self.client.get(f'/api/v1/drivers/{driver.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['metrics']['month_sales_count'], 1)

    def test_delete_driver_without_sales(self):
        driver = TestDataFactory.create_driver(self.tenant)
        response = self.client.delete(f'/api/v1/drivers/{driver.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Driver.objects.filter(pk=driver.pk).exists())

    def test_delete_driver_with_sales_deactivates(self):
        driver = TestDataFactory.create_driver(self.tenant)
        TestDataFactory.create_sale(self.tenant, driver, TestDataFactory.create_product(self.tenant))
        response = self.client.delete(f'/api/v1/drivers/{driver.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        driver.refresh_from_db()
        self.assertEqual(driver.status, Driver.STATUS_INACTIVE)
        self.assertIsNotNone(driver.leaving_date)

    def test_driver_role_cannot_create_driver(self):
        driver_user = TestDataFactory.create_user(tenant=self.tenant, role=User.ROLE_DRIVER)
        client = AuthenticatedAPIClient().authenticate_user(driver_user)
        response = client.post('/api/v1/drivers/', {'name': 'Karim', 'phone': '01711000003'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_other_tenant_driver_not_found(self):
        other = TestDataFactory.create_driver(TestDataFactory.create_tenant())
        response = self.client.get(f'/api/v1/drivers/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class AreaAndCustomerTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.tenant = self.user.tenant
        self.client = AuthenticatedAPIClient().authenticate_user(self.user)
        self.area = TestDataFactory.create_area(self.tenant, name='Mirpur')

    def test_area_list_with_customers(self):
        TestDataFactory.create_customer(self.tenant, area=self.area, name='Rahima')
        response = self.client.get('/api/v1/areas/?include_customers=true')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['customer_count'], 1)
        self.assertEqual(response.data[0]['customers'][0]['name'], 'Rahima')

    def test_cannot_delete_area_with_customers(self):
        TestDataFactory.create_customer(self.tenant, area=self.area)
        response = self.client.delete(f'/api/v1/areas/{self.area.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(Area.objects.filter(pk=self.area.pk).exists())

    def test_create_customer(self):
        driver = TestDataFactory.create_driver(self.tenant)
        response = self.client.post('/api/v1/customers/', {
            'area': self.area.id, 'driver': driver.id, 'name': 'Rahima', 'phone': '01811223344',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['area_name'], 'Mirpur')
        self.assertEqual(response.data['driver_name'], driver.name)

    def test_invalid_bangladesh_phone(self):
        response = self.client.post('/api/v1/customers/', {
            'area': self.area.id, 'name': 'Rahima', 'phone': '12345',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('phone', response.data)

    def test_area_of_other_tenant_rejected(self):
        foreign_area = TestDataFactory.create_area(TestDataFactory.create_tenant())
        response = self.client.post('/api/v1/customers/', {
            'area': foreign_area.id, 'name': 'Rahima',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('area', response.data)

    def test_inactive_customers_hidden_by_default(self):
        TestDataFactory.create_customer(self.tenant, area=self.area, name='Active')
        gone = TestDataFactory.create_customer(self.tenant, area=self.area, name='Gone')
        gone.is_active = False
        gone.save()
        response = self.client.get('/api/v1/customers/')
        self.assertEqual([c['name'] for c in response.data], ['Active'])
        response = self.client.get('/api/v1/customers/?active_only=false')
        self.assertEqual(len(response.data), 2)

    def test_driver_role_cannot_delete_customer(self):
        customer = TestDataFactory.create_customer(self.tenant, area=self.area)
        driver_user = TestDataFactory.create_user(tenant=self.tenant, role=User.ROLE_DRIVER)
        client = AuthenticatedAPIClient().authenticate_user(driver_user)
        response = client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(Customer.objects.filter(pk=customer.pk).exists())
