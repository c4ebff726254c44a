"""
Test suite for the inventory module
Tests: stock levels, shipments and their movements, alerts, daily balances, empty cylinders
"""
from datetime import timedelta
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from lpg_backend.core.models import User
from lpg_backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from lpg_backend.inventory.models import Shipment, InventoryMovement, InventoryRecord, EmptyCylinderRecord, DriverCylinderSizeBaseline
from lpg_backend.inventory.services import current_inventory_levels
from lpg_backend.sales.models import Sale


class InventoryTestMixin:

    def setUp(self):
        self.admin = TestDataFactory.create_user()
        self.tenant = self.admin.tenant
        self.client = AuthenticatedAPIClient().authenticate_user(self.admin)
        self.product = TestDataFactory.create_product(self.tenant, size='12KG', low_stock_threshold=10)
        self.driver = TestDataFactory.create_driver(self.tenant)


class InventoryLevelTests(InventoryTestMixin, TestCase):

    def test_levels_combine_baseline_shipments_and_sales(self):
        TestDataFactory.create_baseline(self.tenant, self.product, full_cylinders=30, empty_cylinders=4)
        TestDataFactory.create_shipment(self.tenant, self.product, quantity=10)
        TestDataFactory.create_shipment(self.tenant, self.product, quantity=5, status=Shipment.STATUS_PENDING)
        TestDataFactory.create_shipment(self.tenant, self.product, shipment_type=Shipment.OUTGOING_FULL, quantity=2)
        TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=3)

        response = self.client.get('/api/v1/inventory/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        level = response.data['products'][0]
        self.assertEqual(level['full_cylinders'], 35)
        self.assertEqual(level['empty_cylinders'], 7)
        self.assertFalse(level['is_low_stock'])

    def test_refill_purchase_swaps_empties_for_fulls(self):
        TestDataFactory.create_baseline(self.tenant, self.product, full_cylinders=0, empty_cylinders=10)
        TestDataFactory.create_shipment(self.tenant, self.product, quantity=6, notes='REFILL: plant run')
        level = current_inventory_levels(self.tenant)[0]
        self.assertEqual(level['full_cylinders'], 6)
        self.assertEqual(level['empty_cylinders'], 4)

    def test_levels_never_negative(self):
        TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=3)
        level = current_inventory_levels(self.tenant)[0]
        self.assertEqual(level['full_cylinders'], 0)

    def test_other_tenant_stock_ignored(self):
        other = TestDataFactory.create_tenant()
        TestDataFactory.create_baseline(other, TestDataFactory.create_product(other), full_cylinders=99)
        response = self.client.get('/api/v1/inventory/')
        self.assertEqual(len(response.data['products']), 1)
        self.assertEqual(response.data['totals']['full_cylinders'], 0)


class InventoryAlertTests(InventoryTestMixin, TestCase):

    def test_alerts_flag_low_and_critical(self):
        TestDataFactory.create_baseline(self.tenant, self.product, full_cylinders=5)
        empty_product = TestDataFactory.create_product(self.tenant, name='Empty stock')
        healthy = TestDataFactory.create_product(self.tenant, name='Healthy')
        TestDataFactory.create_baseline(self.tenant, healthy, full_cylinders=40)

        response = self.client.get('/api/v1/inventory/alerts/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['critical_count'], 1)
        self.assertEqual(response.data['alerts'][0]['product_id'], empty_product.id)
        self.assertEqual(response.data['alerts'][0]['severity'], 'CRITICAL')

    def test_threshold_is_inclusive(self):
        TestDataFactory.create_baseline(self.tenant, self.product, full_cylinders=10)
        self.assertTrue(current_inventory_levels(self.tenant)[0]['is_low_stock'])


class ShipmentTests(InventoryTestMixin, TestCase):

    def test_completed_shipment_records_movement(self):
        response = self.client.post('/api/v1/shipments/', {
            'product': self.product.id,
            'shipment_type': Shipment.INCOMING_FULL,
            'status': Shipment.STATUS_COMPLETED,
            'quantity': 20,
            'unit_cost': '900.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total_cost'], '18000.00')
        self.assertTrue(response.data['movement_recorded'])
        movement = InventoryMovement.objects.get(reference=f"shipment:{response.data['id']}")
        self.assertEqual(movement.quantity, 20)

    def test_pending_shipment_records_movement_on_completion(self):
        shipment = TestDataFactory.create_shipment(self.tenant, self.product, quantity=8,
                                                   status=Shipment.STATUS_PENDING)
        response = self.client.patch(f'/api/v1/shipments/{shipment.id}/',
                                     {'status': Shipment.STATUS_COMPLETED}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(InventoryMovement.objects.filter(reference=f'shipment:{shipment.id}').count(), 1)

        # saving again must not double count
        self.client.patch(f'/api/v1/shipments/{shipment.id}/', {'notes': 'checked'}, format='json')
        self.assertEqual(InventoryMovement.objects.filter(reference=f'shipment:{shipment.id}').count(), 1)

    def test_completed_shipment_is_locked(self):
        shipment = TestDataFactory.create_shipment(self.tenant, self.product, quantity=8)
        response = self.client.patch(f'/api/v1/shipments/{shipment.id}/', {'quantity': 9}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('quantity', response.data)

        response = self.client.patch(f'/api/v1/shipments/{shipment.id}/',
                                     {'status': Shipment.STATUS_CANCELLED}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        earlier = (timezone.localdate() - timedelta(days=2)).isoformat()
        response = self.client.patch(f'/api/v1/shipments/{shipment.id}/', {'shipment_date': earlier},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('shipment_date', response.data)

    def test_completed_shipment_cannot_become_refill_purchase(self):
        TestDataFactory.create_baseline(self.tenant, self.product, full_cylinders=0, empty_cylinders=10)
        shipment = TestDataFactory.create_shipment(self.tenant, self.product, quantity=6, notes='plant run')

        response = self.client.patch(f'/api/v1/shipments/{shipment.id}/', {'notes': 'REFILL: plant run'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('notes', response.data)
        self.assertEqual(current_inventory_levels(self.tenant)[0]['empty_cylinders'], 10)

        response = self.client.patch(f'/api/v1/shipments/{shipment.id}/', {'notes': 'plant run, invoice 44'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_completed_refill_purchase_keeps_marker(self):
        shipment = TestDataFactory.create_shipment(self.tenant, self.product, quantity=6, notes='REFILL: plant run')
        response = self.client.patch(f'/api/v1/shipments/{shipment.id}/', {'notes': 'plant run'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_delete_completed_shipment(self):
        shipment = TestDataFactory.create_shipment(self.tenant, self.product)
        response = self.client.delete(f'/api/v1/shipments/{shipment.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_pending_shipment(self):
        shipment = TestDataFactory.create_shipment(self.tenant, self.product, status=Shipment.STATUS_PENDING)
        response = self.client.delete(f'/api/v1/shipments/{shipment.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_driver_cannot_create_shipments(self):
        driver_user = TestDataFactory.create_user(tenant=self.tenant, role=User.ROLE_DRIVER)
        client = AuthenticatedAPIClient().authenticate_user(driver_user)
        response = client.post('/api/v1/shipments/', {
            'product': self.product.id, 'shipment_type': Shipment.INCOMING_FULL, 'quantity': 5,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_foreign_product_rejected(self):
        foreign = TestDataFactory.create_product(TestDataFactory.create_tenant())
        response = self.client.post('/api/v1/shipments/', {
            'product': foreign.id, 'shipment_type': Shipment.INCOMING_FULL, 'quantity': 5,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('product', response.data)


class DailyInventoryTests(InventoryTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.today = timezone.localdate()
        TestDataFactory.create_baseline(self.tenant, self.product, full_cylinders=20, empty_cylinders=5,
                                        date=self.today - timedelta(days=1))

    def test_daily_balance_chains_from_previous_record(self):
        TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=3)
        TestDataFactory.create_sale(self.tenant, self.driver, self.product,
                                    sale_type=Sale.SALE_TYPE_PACKAGE, quantity=1)
        TestDataFactory.create_shipment(self.tenant, self.product, quantity=10)

        response = self.client.get('/api/v1/inventory/daily/', {'date': self.today.isoformat()})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        row = response.data['products'][0]
        self.assertEqual(row['previous_full'], 20)
        self.assertEqual(row['full_cylinders'], 26)
        self.assertEqual(row['empty_cylinders'], 8)
        self.assertFalse(row['persisted'])

    def test_persist_upserts_record(self):
        response = self.client.get('/api/v1/inventory/daily/', {'persist': 'true'})
        self.assertTrue(response.data['products'][0]['persisted'])
        self.assertTrue(InventoryRecord.objects.filter(tenant=self.tenant, date=self.today,
                                                       is_onboarding_baseline=False).exists())

    def test_persist_never_overwrites_baseline(self):
        yesterday = (self.today - timedelta(days=1)).isoformat()
        response = self.client.get('/api/v1/inventory/daily/', {'date': yesterday, 'persist': 'true'})
        self.assertFalse(response.data['products'][0]['persisted'])
        baseline = InventoryRecord.objects.get(tenant=self.tenant, is_onboarding_baseline=True)
        self.assertEqual(baseline.full_cylinders, 20)

    def test_driver_cannot_persist(self):
        driver_user = TestDataFactory.create_user(tenant=self.tenant, role=User.ROLE_DRIVER)
        client = AuthenticatedAPIClient().authenticate_user(driver_user)
        response = client.get('/api/v1/inventory/daily/', {'persist': 'true'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class EmptyCylinderTests(InventoryTestMixin, TestCase):

    def test_empty_cylinders_start_from_driver_baselines(self):
        DriverCylinderSizeBaseline.objects.create(tenant=self.tenant, driver=self.driver,
                                                  cylinder_size='12KG', baseline_quantity=4)
        TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=2)

        response = self.client.get('/api/v1/inventory/empty-cylinders/', {'persist': 'true'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        row = next(r for r in response.data['sizes'] if r['size'] == '12KG')
        self.assertEqual(row['yesterday_empty'], 4)
        self.assertEqual(row['refill_sales'], 2)
        self.assertEqual(row['empty_cylinders'], 6)
        self.assertEqual(row['formula'], '4 + 2 + 0 = 6')
        record = EmptyCylinderRecord.objects.get(tenant=self.tenant, cylinder_size='12KG')
        self.assertEqual(record.quantity, 6)

    def test_previous_day_record_takes_precedence_over_baselines(self):
        today = timezone.localdate()
        EmptyCylinderRecord.objects.create(tenant=self.tenant, date=today - timedelta(days=1),
                                           cylinder_size='12KG', quantity=11)
        DriverCylinderSizeBaseline.objects.create(tenant=self.tenant, driver=self.driver,
                                                  cylinder_size='12KG', baseline_quantity=4)
        response = self.client.get('/api/v1/inventory/empty-cylinders/')
        row = next(r for r in response.data['sizes'] if r['size'] == '12KG')
        self.assertEqual(row['yesterday_empty'], 11)
