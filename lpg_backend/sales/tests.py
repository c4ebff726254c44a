"""
Test suite for the sales module
Tests: sale creation side effects, business validation, today-only edits, bulk delete, summaries
"""
from datetime import timedelta
from decimal import Decimal
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from lpg_backend.core.models import User
from lpg_backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from lpg_backend.inventory.models import InventoryMovement
from lpg_backend.inventory.services import available_full_cylinders
from lpg_backend.parties.models import Driver
from lpg_backend.receivables.models import ReceivableRecord
from lpg_backend.sales.models import Sale
from lpg_backend.sales.services import business_validation_errors


class SaleTestMixin:

    def setUp(self):
        self.admin = TestDataFactory.create_user()
        self.tenant = self.admin.tenant
        self.client = AuthenticatedAPIClient().authenticate_user(self.admin)
        self.product = TestDataFactory.create_product(self.tenant, price=Decimal('1200.00'))
        TestDataFactory.create_baseline(self.tenant, self.product, full_cylinders=50)
        self.driver = TestDataFactory.create_driver(self.tenant, name='Karim')

    def sale_payload(self, **overrides):
        payload = {
            'driver': self.driver.id,
            'product': self.product.id,
            'sale_type': Sale.SALE_TYPE_REFILL,
            'quantity': 2,
            'unit_price': '1200.00',
            'cash_deposited': '2400.00',
            'cylinders_deposited': 2,
            'payment_type': Sale.PAYMENT_CASH,
        }
        payload.update(overrides)
        return payload


class SaleCreateTests(SaleTestMixin, TestCase):
    """POST /sales/"""

    def test_create_sale_records_movement_and_receivables(self):
        response = self.client.post('/api/v1/sales/', self.sale_payload(
            cash_deposited='1000.00', cylinders_deposited=1, payment_type=Sale.PAYMENT_PARTIAL,
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['net_value']), Decimal('2400.00'))
        self.assertTrue(response.data['is_on_credit'])
        self.assertTrue(response.data['is_cylinder_credit'])

        sale = Sale.objects.get(pk=response.data['id'])
        movement = InventoryMovement.objects.get(tenant=self.tenant, reference=str(sale.id))
        self.assertEqual(movement.quantity, -2)
        self.assertEqual(available_full_cylinders(self.tenant, self.product), 48)

        record = ReceivableRecord.objects.get(tenant=self.tenant, driver=self.driver, date=sale.sale_date)
        self.assertEqual(record.cash_receivables_change, Decimal('1400.00'))
        self.assertEqual(record.cylinder_receivables_change, 1)
        self.assertEqual(record.total_cash_receivables, Decimal('1400.00'))
        self.assertEqual(record.total_cylinder_receivables, 1)

    def test_receivables_carry_from_previous_record(self):
        yesterday = timezone.localdate() - timedelta(days=1)
        TestDataFactory.create_receivable_record(self.tenant, self.driver, date=yesterday,
                                                 cash=Decimal('500.00'), cylinders=3)
        response = self.client.post('/api/v1/sales/', self.sale_payload(
            cash_deposited='2000.00', payment_type=Sale.PAYMENT_PARTIAL,
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        record = ReceivableRecord.objects.get(tenant=self.tenant, driver=self.driver, date=timezone.localdate())
        self.assertEqual(record.total_cash_receivables, Decimal('900.00'))
        self.assertEqual(record.total_cylinder_receivables, 3)

    def test_insufficient_inventory(self):
        response = self.client.post('/api/v1/sales/', self.sale_payload(
            quantity=60, cash_deposited='72000.00', cylinders_deposited=60,
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Insufficient inventory')
        self.assertEqual(response.data['available'], 50)
        self.assertEqual(response.data['requested'], 60)
        self.assertFalse(Sale.objects.filter(tenant=self.tenant).exists())

    def test_package_sale_cannot_take_cylinders(self):
        response = self.client.post('/api/v1/sales/', self.sale_payload(
            sale_type=Sale.SALE_TYPE_PACKAGE, cylinders_deposited=1,
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Business validation failed')
        self.assertIn('Package sales cannot have cylinders deposited', response.data['details'])

    def test_cash_cannot_exceed_net_value(self):
        response = self.client.post('/api/v1/sales/', self.sale_payload(cash_deposited='3000.00'),
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Cash deposited cannot exceed net value', response.data['details'])

    def test_cash_sale_cannot_be_on_credit(self):
        response = self.client.post('/api/v1/sales/', self.sale_payload(cash_deposited='100.00'),
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Cash sales cannot be on credit', response.data['details'])

    def test_quantity_bounds(self):
        response = self.client.post('/api/v1/sales/', self.sale_payload(quantity=0), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('quantity', response.data)

    def test_inactive_driver_rejected(self):
        self.driver.status = Driver.STATUS_INACTIVE
        self.driver.save()
        response = self.client.post('/api/v1/sales/', self.sale_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Driver is not active')

    def test_driver_from_other_tenant_rejected(self):
        foreign_driver = TestDataFactory.create_driver(TestDataFactory.create_tenant())
        response = self.client.post('/api/v1/sales/', self.sale_payload(driver=foreign_driver.id),
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('driver', response.data)

    def test_driver_role_can_record_sales(self):
        driver_user = TestDataFactory.create_user(tenant=self.tenant, role=User.ROLE_DRIVER)
        client = AuthenticatedAPIClient().authenticate_user(driver_user)
        response = client.post('/api/v1/sales/', self.sale_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)


class SaleBusinessRuleTests(SaleTestMixin, TestCase):

    def test_refill_requires_cylinders(self):
        sale = Sale(tenant=self.tenant, driver=self.driver, product=self.product,
                    sale_type=Sale.SALE_TYPE_REFILL, quantity=1, unit_price=Decimal('1200.00'),
                    cash_deposited=Decimal('1200.00'), cylinders_deposited=0)
        sale.recompute_totals()
        self.assertEqual(business_validation_errors(sale), ['Refill sales require cylinders to be deposited'])

    def test_discount_cannot_exceed_total(self):
        sale = Sale(tenant=self.tenant, driver=self.driver, product=self.product,
                    sale_type=Sale.SALE_TYPE_PACKAGE, quantity=1, unit_price=Decimal('1200.00'),
                    discount=Decimal('1500.00'), payment_type=Sale.PAYMENT_CREDIT,
                    cash_deposited=Decimal('0'), cylinders_deposited=0)
        sale.recompute_totals()
        self.assertIn('Discount cannot exceed total value', business_validation_errors(sale))


class SaleDetailTests(SaleTestMixin, TestCase):
    """Edits and deletes are limited to today's sales"""

    def test_edit_todays_sale_updates_receivables(self):
        response = self.client.post('/api/v1/sales/', self.sale_payload(), format='json')
        sale_id = response.data['id']

        response = self.client.patch(f'/api/v1/sales/{sale_id}/', {
            'cash_deposited': '2000.00', 'payment_type': Sale.PAYMENT_PARTIAL,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        record = ReceivableRecord.objects.get(tenant=self.tenant, driver=self.driver, date=timezone.localdate())
        self.assertEqual(record.total_cash_receivables, Decimal('400.00'))

    def test_cannot_edit_past_sale(self):
        sale = TestDataFactory.create_sale(self.tenant, self.driver, self.product,
                                           sale_date=timezone.localdate() - timedelta(days=1))
        response = self.client.patch(f'/api/v1/sales/{sale.id}/', {'quantity': 3}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], "Can only edit today's sales")

    def test_cannot_delete_past_sale(self):
        sale = TestDataFactory.create_sale(self.tenant, self.driver, self.product,
                                           sale_date=timezone.localdate() - timedelta(days=1))
        response = self.client.delete(f'/api/v1/sales/{sale.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_removes_movement(self):
        response = self.client.post('/api/v1/sales/', self.sale_payload(), format='json')
        sale_id = response.data['id']
        response = self.client.delete(f'/api/v1/sales/{sale_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(InventoryMovement.objects.filter(reference=str(sale_id)).exists())
        self.assertEqual(available_full_cylinders(self.tenant, self.product), 50)

    def test_manager_cannot_delete(self):
        sale = TestDataFactory.create_sale(self.tenant, self.driver, self.product)
        manager = TestDataFactory.create_user(tenant=self.tenant, role=User.ROLE_MANAGER)
        client = AuthenticatedAPIClient().authenticate_user(manager)
        response = client.delete(f'/api/v1/sales/{sale.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_other_tenant_sale_not_found(self):
        other_tenant = TestDataFactory.create_tenant()
        other_sale = TestDataFactory.create_sale(
            other_tenant, TestDataFactory.create_driver(other_tenant),
            TestDataFactory.create_product(other_tenant),
        )
        response = self.client.get(f'/api/v1/sales/{other_sale.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class SaleBulkDeleteTests(SaleTestMixin, TestCase):

    def test_bulk_delete(self):
        first = TestDataFactory.create_sale(self.tenant, self.driver, self.product)
        second = TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=2)
        response = self.client.post('/api/v1/sales/bulk-delete/', {
            'sales_ids': [first.id, second.id],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['deleted_count'], 2)
        self.assertEqual(response.data['affected_drivers'], [self.driver.id])
        self.assertFalse(Sale.objects.filter(tenant=self.tenant).exists())

    def test_bulk_delete_reports_missing_ids(self):
        sale = TestDataFactory.create_sale(self.tenant, self.driver, self.product)
        response = self.client.post('/api/v1/sales/bulk-delete/', {
            'sales_ids': [sale.id, 999999],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['missing_ids'], [999999])
        self.assertTrue(Sale.objects.filter(pk=sale.id).exists())

    def test_bulk_delete_requires_ids(self):
        response = self.client.post('/api/v1/sales/bulk-delete/', {'sales_ids': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class SaleSummaryTests(SaleTestMixin, TestCase):

    def test_daily_summary_per_driver(self):
        other = TestDataFactory.create_driver(self.tenant, name='Abdul')
        TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=2)
        TestDataFactory.create_sale(self.tenant, self.driver, self.product,
                                    sale_type=Sale.SALE_TYPE_PACKAGE, quantity=1)
        TestDataFactory.create_sale(self.tenant, other, self.product, quantity=3)

        response = self.client.get('/api/v1/sales/daily-summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        drivers = response.data['drivers']
        self.assertEqual([d['driver_name'] for d in drivers], ['Abdul', 'Karim'])
        karim = drivers[1]
        self.assertEqual(karim['package_quantity'], 1)
        self.assertEqual(karim['refill_quantity'], 2)
        self.assertEqual(response.data['totals']['total_quantity'], 6)

    def test_list_includes_summary_and_filters(self):
        TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=2)
        TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=1,
                                    sale_date=timezone.localdate() - timedelta(days=3))
        response = self.client.get('/api/v1/sales/', {'date_from': timezone.localdate().isoformat()})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['summary']['total_quantity'], 2)
