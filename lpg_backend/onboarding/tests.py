"""
Test suite for the onboarding module
Tests: opening catalog, drivers, inventory baselines and receivable balances
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from lpg_backend.catalog.models import Company, Product
from lpg_backend.core.models import User
from lpg_backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from lpg_backend.inventory.models import InventoryRecord, EmptyCylinderRecord, DriverCylinderSizeBaseline
from lpg_backend.inventory.services import current_inventory_levels
from lpg_backend.parties.models import Driver
from lpg_backend.receivables.models import ReceivableRecord, CustomerReceivable


def onboarding_payload():
    return {
        'company_names': ['Bashundhara', 'Omera'],
        'cylinder_sizes': [{'size': '12kg'}, {'size': '35KG', 'description': 'Commercial'}],
        'products': [
            {'name': 'Bashundhara 12KG', 'company_index': 0, 'size_index': 0, 'current_price': '1250.00'},
            {'name': 'Omera 35KG', 'company_index': 1, 'size_index': 1, 'current_price': '3600.00',
             'low_stock_threshold': 5},
        ],
        'drivers': [
            {'name': 'Karim', 'phone': '01711111111'},
            {'name': 'Truck One', 'phone': '01722222222', 'driver_type': 'SHIPMENT'},
        ],
        'inventory': [
            {'product_index': 0, 'full_cylinders': 40},
            {'product_index': 1, 'full_cylinders': 8},
        ],
        'empty_cylinders': [{'size_index': 0, 'quantity': 12}],
        'receivables': [
            {
                'driver_index': 0,
                'cash_receivables': '1500.00',
                'cylinder_receivables': 3,
                'cylinders_by_size': [{'size_index': 0, 'quantity': 3}],
            },
        ],
    }


class OnboardingTests(TestCase):

    def setUp(self):
        self.admin = TestDataFactory.create_user()
        self.tenant = self.admin.tenant
        self.client = AuthenticatedAPIClient().authenticate_user(self.admin)

    def test_status_before_onboarding(self):
        response = self.client.get('/api/v1/onboarding/status/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['onboarding_completed'])

    def test_complete_creates_starting_data(self):
        response = self.client.post('/api/v1/onboarding/complete/', onboarding_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        summary = response.data['summary']
        self.assertEqual(summary['products'], 2)
        self.assertEqual(summary['drivers'], 2)
        self.assertEqual(summary['receivable_records'], 1)

        self.assertEqual(Company.objects.filter(tenant=self.tenant).count(), 2)
        product = Product.objects.get(tenant=self.tenant, name='Bashundhara 12KG')
        self.assertEqual(product.size_label, '12KG')

        baseline = InventoryRecord.objects.get(tenant=self.tenant, product=product)
        self.assertTrue(baseline.is_onboarding_baseline)
        self.assertEqual(baseline.full_cylinders, 40)
        self.assertEqual(baseline.empty_cylinders, 12)
        self.assertEqual(baseline.empty_cylinder_receivables, 3)

        levels = {level['product_name']: level for level in current_inventory_levels(self.tenant)}
        self.assertEqual(levels['Bashundhara 12KG']['full_cylinders'], 40)
        self.assertEqual(levels['Omera 35KG']['full_cylinders'], 8)

        karim = Driver.objects.get(tenant=self.tenant, phone='01711111111')
        record = ReceivableRecord.objects.get(tenant=self.tenant, driver=karim)
        self.assertEqual(record.total_cash_receivables, Decimal('1500.00'))
        self.assertEqual(record.onboarding_cylinder_receivables, 3)

        self.assertTrue(EmptyCylinderRecord.objects.filter(tenant=self.tenant, cylinder_size='12KG',
                                                           quantity=12).exists())
        self.assertEqual(DriverCylinderSizeBaseline.objects.get(driver=karim).baseline_quantity, 3)
        opening = CustomerReceivable.objects.get(tenant=self.tenant, driver=karim)
        self.assertEqual(opening.customer_name, CustomerReceivable.ONBOARDING_CUSTOMER_NAME)

        self.admin.refresh_from_db()
        self.assertTrue(self.admin.onboarding_completed)

    def test_second_call_rejected(self):
        self.client.post('/api/v1/onboarding/complete/', onboarding_payload(), format='json')
        response = self.client.post('/api/v1/onboarding/complete/', onboarding_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_bad_index_rolls_everything_back(self):
        payload = onboarding_payload()
        payload['inventory'].append({'product_index': 7, 'full_cylinders': 1})
        response = self.client.post('/api/v1/onboarding/complete/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('product index', response.data['details'])
        self.assertFalse(Company.objects.filter(tenant=self.tenant).exists())
        self.admin.refresh_from_db()
        self.assertFalse(self.admin.onboarding_completed)

    def test_invalid_payload(self):
        payload = onboarding_payload()
        payload['drivers'][0]['name'] = 'K'
        response = self.client.post('/api/v1/onboarding/complete/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('drivers', response.data)

    def test_invalid_driver_phone(self):
        payload = onboarding_payload()
        payload['drivers'][1]['phone'] = 'call-me-maybe'
        response = self.client.post('/api/v1/onboarding/complete/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('phone', response.data['drivers'][1])
        self.assertFalse(Driver.objects.filter(tenant=self.tenant).exists())

    def test_manager_cannot_onboard(self):
        manager = TestDataFactory.create_user(tenant=self.tenant, role=User.ROLE_MANAGER)
        client = AuthenticatedAPIClient().authenticate_user(manager)
        response = client.post('/api/v1/onboarding/complete/', onboarding_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
