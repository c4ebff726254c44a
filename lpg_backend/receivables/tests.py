"""
Test suite for the receivables module
Tests: running totals, recalculation, customer receivables, collections, validation, size breakdown
"""
from datetime import timedelta
from io import StringIO
from decimal import Decimal
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from lpg_backend.core.models import User
from lpg_backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from lpg_backend.messaging.models import SentMessage
from lpg_backend.parties.models import Driver
from lpg_backend.receivables.models import ReceivableRecord, CustomerReceivable
from lpg_backend.receivables.services import (
    apply_collection, percentage, recalculate_driver, recalculate_driver_cascade, receivables_by_driver_size,
)
from lpg_backend.sales.models import Sale


class ReceivableTestMixin:

    def setUp(self):
        self.admin = TestDataFactory.create_user()
        self.tenant = self.admin.tenant
        self.client = AuthenticatedAPIClient().authenticate_user(self.admin)
        self.product = TestDataFactory.create_product(self.tenant, size='12KG', price=Decimal('1200.00'))
        self.driver = TestDataFactory.create_driver(self.tenant, name='Karim')
        self.today = timezone.localdate()


class ReceivableCalculationTests(ReceivableTestMixin, TestCase):

    def test_helpers(self):
        self.assertEqual(apply_collection(Decimal('100'), Decimal('150')), Decimal('0'))
        self.assertEqual(apply_collection(5, 2), 3)
        self.assertEqual(percentage(50, 200), 25.0)
        self.assertEqual(percentage(0, 0), 100.0)

    def test_day_without_sales_or_record_is_skipped(self):
        record, old_cash, old_cylinders = recalculate_driver(self.tenant, self.driver, self.today)
        self.assertIsNone(record)
        self.assertEqual(old_cash, Decimal('0.00'))
        self.assertFalse(ReceivableRecord.objects.exists())

    def test_cascade_chains_totals_and_keeps_onboarding_balance(self):
        day1 = self.today - timedelta(days=2)
        day2 = self.today - timedelta(days=1)
        TestDataFactory.create_receivable_record(self.tenant, self.driver, date=day1,
                                                 cash=Decimal('500.00'), cylinders=2, onboarding=True)
        TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=1,
                                    cash_deposited=Decimal('1000.00'), sale_date=day2)
        TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=3,
                                    cylinders_deposited=1, sale_date=self.today)

        results = recalculate_driver_cascade(self.tenant, self.driver, day1)
        self.assertEqual(len(results), 3)

        first = ReceivableRecord.objects.get(driver=self.driver, date=day1)
        self.assertEqual(first.total_cash_receivables, Decimal('500.00'))
        self.assertEqual(first.total_cylinder_receivables, 2)

        second = ReceivableRecord.objects.get(driver=self.driver, date=day2)
        self.assertEqual(second.cash_receivables_change, Decimal('200.00'))
        self.assertEqual(second.total_cash_receivables, Decimal('700.00'))

        third = ReceivableRecord.objects.get(driver=self.driver, date=self.today)
        self.assertEqual(third.cylinder_receivables_change, 2)
        self.assertEqual(third.total_cash_receivables, Decimal('700.00'))
        self.assertEqual(third.total_cylinder_receivables, 4)

    def test_discount_reduces_cash_change(self):
        TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=1,
                                    discount=Decimal('100.00'), cash_deposited=Decimal('1000.00'))
        record, _, _ = recalculate_driver(self.tenant, self.driver, self.today)
        # 1200 - 1000 - 100
        self.assertEqual(record.cash_receivables_change, Decimal('100.00'))


class ReceivableEndpointTests(ReceivableTestMixin, TestCase):

    def test_summary_lists_active_drivers(self):
        TestDataFactory.create_receivable_record(self.tenant, self.driver, cash=Decimal('300.00'), cylinders=1)
        TestDataFactory.create_driver(self.tenant, name='Abdul')
        TestDataFactory.create_driver(self.tenant, name='Gone', status=Driver.STATUS_INACTIVE)

        response = self.client.get('/api/v1/receivables/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([d['driver_name'] for d in response.data['drivers']], ['Abdul', 'Karim'])
        self.assertEqual(response.data['totals']['total_cash_receivables'], 300.0)
        self.assertEqual(response.data['totals']['drivers_with_dues'], 1)

    def test_driver_history(self):
        TestDataFactory.create_receivable_record(self.tenant, self.driver, date=self.today - timedelta(days=1),
                                                 cash=Decimal('100.00'))
        TestDataFactory.create_receivable_record(self.tenant, self.driver, cash=Decimal('250.00'))
        response = self.client.get(f'/api/v1/receivables/drivers/{self.driver.id}/', {'days': 7})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['records']), 2)
        self.assertEqual(response.data['current_cash_receivables'], Decimal('250.00'))

    def test_recalculate_endpoint(self):
        TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=2,
                                    cash_deposited=Decimal('2000.00'))
        response = self.client.post('/api/v1/receivables/recalculate/', {
            'driver_id': self.driver.id, 'cascade': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['records']), 1)
        record = ReceivableRecord.objects.get(driver=self.driver, date=self.today)
        self.assertEqual(record.total_cash_receivables, Decimal('400.00'))

    def test_driver_role_cannot_recalculate(self):
        driver_user = TestDataFactory.create_user(tenant=self.tenant, role=User.ROLE_DRIVER)
        client = AuthenticatedAPIClient().authenticate_user(driver_user)
        response = client.post('/api/v1/receivables/recalculate/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class CustomerReceivableTests(ReceivableTestMixin, TestCase):

    def test_create_uses_customer_name(self):
        customer = TestDataFactory.create_customer(self.tenant, driver=self.driver, name='Rahima Store')
        response = self.client.post('/api/v1/receivables/customers/', {
            'driver': self.driver.id,
            'customer': customer.id,
            'receivable_type': CustomerReceivable.TYPE_CASH,
            'amount': '750.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['customer_name'], 'Rahima Store')

    def test_shipment_driver_rejected(self):
        shipment_driver = TestDataFactory.create_driver(self.tenant, driver_type=Driver.TYPE_SHIPMENT)
        response = self.client.post('/api/v1/receivables/customers/', {
            'driver': shipment_driver.id,
            'customer_name': 'Walk-in',
            'receivable_type': CustomerReceivable.TYPE_CASH,
            'amount': '100.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('driver', response.data)

    def test_cylinder_receivable_needs_quantity(self):
        response = self.client.post('/api/v1/receivables/customers/', {
            'driver': self.driver.id,
            'customer_name': 'Walk-in',
            'receivable_type': CustomerReceivable.TYPE_CYLINDER,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('quantity', response.data)

    def test_list_groups_by_driver(self):
        TestDataFactory.create_customer_receivable(self.tenant, self.driver, amount=Decimal('300.00'))
        TestDataFactory.create_customer_receivable(self.tenant, self.driver, amount=Decimal('200.00'))
        TestDataFactory.create_customer_receivable(self.tenant, self.driver,
                                                   receivable_type=CustomerReceivable.TYPE_CYLINDER,
                                                   quantity=3, size='12KG')
        TestDataFactory.create_customer_receivable(self.tenant, self.driver, amount=Decimal('999.00'),
                                                   status=CustomerReceivable.STATUS_PAID)

        response = self.client.get('/api/v1/receivables/customers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        entry = response.data['drivers'][0]
        self.assertEqual(entry['total_cash'], Decimal('500.00'))
        self.assertEqual(entry['total_cylinders'], 3)
        self.assertEqual(len(entry['receivables']), 4)


@override_settings(MESSAGING_SEND_IMMEDIATELY=False)
class CollectionTests(ReceivableTestMixin, TestCase):
    """Cash payments and cylinder returns flow into the driver's sales"""

    def setUp(self):
        super().setUp()
        self.customer = TestDataFactory.create_customer(self.tenant, driver=self.driver, name='Rahima Store')

    def test_cash_payment_lands_on_todays_sale(self):
        sale = TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=1,
                                           cash_deposited=Decimal('200.00'))
        recalculate_driver(self.tenant, self.driver, self.today)
        receivable = TestDataFactory.create_customer_receivable(self.tenant, self.driver, customer=self.customer,
                                                                amount=Decimal('1000.00'))

        response = self.client.post('/api/v1/receivables/payments/', {
            'customer_receivable_id': receivable.id, 'amount': '400.00', 'payment_method': 'cash',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['sale_id'], sale.id)
        self.assertEqual(response.data['driver_receivables']['old_cash'], Decimal('1000.00'))
        self.assertEqual(response.data['driver_receivables']['new_cash'], Decimal('600.00'))

        receivable.refresh_from_db()
        self.assertEqual(receivable.amount, Decimal('600.00'))
        self.assertEqual(receivable.status, CustomerReceivable.STATUS_CURRENT)
        self.assertIn('Payment received', receivable.notes)

        # the confirmation is queued, not sent
        message = SentMessage.objects.get(tenant=self.tenant)
        self.assertEqual(message.status, SentMessage.STATUS_PENDING)
        self.assertEqual(message.trigger, 'PAYMENT_RECEIVED')

    def test_full_payment_without_sale_creates_deposit_row(self):
        receivable = TestDataFactory.create_customer_receivable(self.tenant, self.driver, customer=self.customer,
                                                                amount=Decimal('300.00'))
        response = self.client.post('/api/v1/receivables/payments/', {
            'customer_receivable_id': receivable.id, 'amount': '300.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        sale = Sale.objects.get(pk=response.data['sale_id'])
        self.assertEqual(sale.quantity, 0)
        self.assertEqual(sale.cash_deposited, Decimal('300.00'))
        receivable.refresh_from_db()
        self.assertEqual(receivable.status, CustomerReceivable.STATUS_PAID)

    def test_payment_cannot_exceed_outstanding(self):
        receivable = TestDataFactory.create_customer_receivable(self.tenant, self.driver, customer=self.customer,
                                                                amount=Decimal('100.00'))
        response = self.client.post('/api/v1/receivables/payments/', {
            'customer_receivable_id': receivable.id, 'amount': '150.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('exceeds outstanding', response.data['error'])

    def test_payment_on_cylinder_receivable_rejected(self):
        receivable = TestDataFactory.create_customer_receivable(
            self.tenant, self.driver, customer=self.customer,
            receivable_type=CustomerReceivable.TYPE_CYLINDER, quantity=2, size='12KG')
        response = self.client.post('/api/v1/receivables/payments/', {
            'customer_receivable_id': receivable.id, 'amount': '50.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cylinder_return(self):
        sale = TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=3,
                                           cylinders_deposited=1)
        receivable = TestDataFactory.create_customer_receivable(
            self.tenant, self.driver, customer=self.customer,
            receivable_type=CustomerReceivable.TYPE_CYLINDER, quantity=2, size='12KG')

        response = self.client.post('/api/v1/receivables/cylinder-returns/', {
            'customer_receivable_id': receivable.id, 'quantity': 2,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        sale.refresh_from_db()
        self.assertEqual(sale.cylinders_deposited, 3)
        receivable.refresh_from_db()
        self.assertEqual(receivable.quantity, 0)
        self.assertEqual(receivable.status, CustomerReceivable.STATUS_PAID)
        self.assertEqual(response.data['driver_receivables']['new_cylinders'], 0)

    def test_cylinder_return_of_other_size_books_deposit_sale(self):
        large = TestDataFactory.create_product(self.tenant, size='35KG', name='Omera 35KG',
                                               price=Decimal('3600.00'))
        sale = TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=3,
                                           cylinders_deposited=1)
        receivable = TestDataFactory.create_customer_receivable(
            self.tenant, self.driver, customer=self.customer,
            receivable_type=CustomerReceivable.TYPE_CYLINDER, quantity=2, size='35KG')

        response = self.client.post('/api/v1/receivables/cylinder-returns/', {
            'customer_receivable_id': receivable.id, 'quantity': 2,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        sale.refresh_from_db()
        self.assertEqual(sale.cylinders_deposited, 1)
        deposit = Sale.objects.exclude(pk=sale.pk).get(tenant=self.tenant, driver=self.driver)
        self.assertEqual(deposit.product, large)
        self.assertEqual(deposit.sale_type, Sale.SALE_TYPE_REFILL)
        self.assertEqual(deposit.quantity, 0)
        self.assertEqual(deposit.cylinders_deposited, 2)
        self.assertEqual(response.data['driver_receivables']['new_cylinders'], 0)

    def test_other_tenant_receivable_not_found(self):
        other_tenant = TestDataFactory.create_tenant()
        other_driver = TestDataFactory.create_driver(other_tenant)
        receivable = TestDataFactory.create_customer_receivable(other_tenant, other_driver, amount=Decimal('50.00'))
        response = self.client.post('/api/v1/receivables/payments/', {
            'customer_receivable_id': receivable.id, 'amount': '10.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ReceivableValidationTests(ReceivableTestMixin, TestCase):

    def test_matching_totals_are_valid(self):
        TestDataFactory.create_receivable_record(self.tenant, self.driver, cash=Decimal('700.00'), cylinders=2)
        TestDataFactory.create_customer_receivable(self.tenant, self.driver, amount=Decimal('700.00'))
        TestDataFactory.create_customer_receivable(self.tenant, self.driver,
                                                   receivable_type=CustomerReceivable.TYPE_CYLINDER,
                                                   quantity=2, size='12KG')
        response = self.client.get('/api/v1/receivables/validation/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_valid'])

    def test_mismatch_reported(self):
        TestDataFactory.create_receivable_record(self.tenant, self.driver, cash=Decimal('700.00'))
        TestDataFactory.create_customer_receivable(self.tenant, self.driver, amount=Decimal('500.00'))
        response = self.client.get('/api/v1/receivables/validation/')
        self.assertFalse(response.data['is_valid'])
        self.assertEqual(len(response.data['validation_errors']), 1)
        self.assertFalse(response.data['drivers'][0]['cash_matches'])


class ReceivablesBySizeTests(ReceivableTestMixin, TestCase):

    def test_split_follows_returned_sizes(self):
        large = TestDataFactory.create_product(self.tenant, size='35KG')
        TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=3,
                                    sale_date=self.today - timedelta(days=1))
        TestDataFactory.create_sale(self.tenant, self.driver, large, quantity=2,
                                    sale_date=self.today - timedelta(days=1))
        TestDataFactory.create_receivable_record(self.tenant, self.driver, cylinders=10)

        data = receivables_by_driver_size(self.tenant)
        sizes = {row['size']: row['quantity'] for row in data['drivers'][0]['sizes']}
        self.assertEqual(sizes, {'12KG': 6, '35KG': 4})
        self.assertEqual(data['total_cylinder_receivables'], 10)

    def test_unknown_size_without_returns(self):
        TestDataFactory.create_receivable_record(self.tenant, self.driver, cylinders=5)
        response = self.client.get('/api/v1/receivables/by-driver-size/')
        self.assertEqual(response.data['drivers'][0]['sizes'], [{'size': 'Unknown', 'quantity': 5}])


class RecalculateCommandTests(ReceivableTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=1,
                                    cash_deposited=Decimal('1000.00'), sale_date=self.today - timedelta(days=1))

    def test_rebuilds_records(self):
        out = StringIO()
        call_command('recalculate_receivables', '--tenant', str(self.tenant.id), '--days', '3', stdout=out)
        record = ReceivableRecord.objects.get(driver=self.driver, date=self.today - timedelta(days=1))
        self.assertEqual(record.total_cash_receivables, Decimal('200.00'))
        self.assertIn('1 records changed', out.getvalue())

    def test_dry_run_saves_nothing(self):
        call_command('recalculate_receivables', '--tenant', str(self.tenant.id), '--dry-run', stdout=StringIO())
        self.assertFalse(ReceivableRecord.objects.exists())


@override_settings(MESSAGING_SEND_IMMEDIATELY=False)
class ReceivableChangeHistoryTests(ReceivableTestMixin, TestCase):
    """Audit trail of customer receivables, filterable by driver"""

    def setUp(self):
        super().setUp()
        self.customer = TestDataFactory.create_customer(self.tenant, driver=self.driver, name='Rahima Store')
        self.other_driver = TestDataFactory.create_driver(self.tenant, name='Sohel')

    def _create(self, driver, amount):
        response = self.client.post('/api/v1/receivables/customers/', {
            'driver': driver.id,
            'customer_name': 'Walk-in',
            'receivable_type': CustomerReceivable.TYPE_CASH,
            'amount': amount,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        return response.data['id']

    def test_changes_classified_newest_first(self):
        receivable_id = self._create(self.driver, '1000.00')
        response = self.client.post('/api/v1/receivables/payments/', {
            'customer_receivable_id': receivable_id, 'amount': '400.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.patch(f'/api/v1/receivables/customers/{receivable_id}/',
                                     {'status': CustomerReceivable.STATUS_PAID}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get('/api/v1/receivables/changes/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 3)
        changes = response.data['results']
        self.assertEqual([c['change_type'] for c in changes], ['PAID', 'PAYMENT', 'CREATE'])
        payment = changes[1]
        self.assertEqual(payment['amount'], 400.0)
        self.assertEqual(payment['driver_name'], 'Karim')
        self.assertEqual(payment['user_name'], self.admin.name)
        self.assertEqual(changes[2]['amount'], 1000.0)

    def test_cylinder_return_reported_as_return(self):
        receivable = TestDataFactory.create_customer_receivable(
            self.tenant, self.driver, customer=self.customer,
            receivable_type=CustomerReceivable.TYPE_CYLINDER, quantity=2, size='12KG')
        response = self.client.post('/api/v1/receivables/cylinder-returns/', {
            'customer_receivable_id': receivable.id, 'quantity': 1,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        change = self.client.get('/api/v1/receivables/changes/').data['results'][0]
        self.assertEqual(change['change_type'], 'RETURN')
        self.assertEqual(change['quantity'], 1)
        self.assertEqual(change['customer_name'], 'Rahima Store')

    def test_filter_by_driver_and_paginate(self):
        self._create(self.driver, '100.00')
        self._create(self.driver, '200.00')
        deleted_id = self._create(self.other_driver, '300.00')
        response = self.client.delete(f'/api/v1/receivables/customers/{deleted_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

        response = self.client.get('/api/v1/receivables/changes/', {'driver': self.other_driver.id})
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['results'][0]['change_type'], 'DELETE')
        self.assertEqual(response.data['results'][0]['amount'], 300.0)

        response = self.client.get('/api/v1/receivables/changes/', {'driver': self.driver.id, 'limit': 1})
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['total_pages'], 2)
        self.assertEqual(len(response.data['results']), 1)

    def test_invalid_driver_filter(self):
        response = self.client.get('/api/v1/receivables/changes/', {'driver': 'karim'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
