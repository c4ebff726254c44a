"""
Test suite for the reports module
Tests: dashboard caching, daily sales, driver performance, financial summary, report permissions
"""
from datetime import timedelta
from decimal import Decimal
from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from lpg_backend.core.cache_utils import tenant_cache_key, DASHBOARD_PREFIX
from lpg_backend.core.models import User
from lpg_backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from lpg_backend.inventory.models import Shipment
from lpg_backend.receivables.services import recalculate_driver
from lpg_backend.sales.models import Sale


class ReportTestMixin:

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_user()
        self.tenant = self.admin.tenant
        self.client = AuthenticatedAPIClient().authenticate_user(self.admin)
        self.product = TestDataFactory.create_product(self.tenant, price=Decimal('1000.00'))
        self.today = timezone.localdate()


class DashboardTests(ReportTestMixin, TestCase):

    def test_dashboard_figures(self):
        TestDataFactory.create_baseline(self.tenant, self.product, full_cylinders=5)
        driver = TestDataFactory.create_driver(self.tenant)
        TestDataFactory.create_sale(self.tenant, driver, self.product, quantity=2)
        TestDataFactory.create_receivable_record(self.tenant, driver, cash=Decimal('800.00'), cylinders=1)
        category = TestDataFactory.create_expense_category(self.tenant)
        TestDataFactory.create_expense(self.tenant, category, amount=Decimal('75.00'))

        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['today_sales']['quantity'], 2)
        self.assertEqual(response.data['today_sales']['net_value'], 2000.0)
        self.assertEqual(response.data['receivables']['total_cash_receivables'], 800.0)
        self.assertEqual(response.data['active_drivers'], 1)
        self.assertEqual(response.data['low_stock_products'], 1)
        self.assertEqual(response.data['expenses']['pending_count'], 1)

    def test_dashboard_is_cached_until_a_write(self):
        self.client.get('/api/v1/reports/dashboard/')
        key = tenant_cache_key(DASHBOARD_PREFIX, self.tenant.id)
        self.assertIsNotNone(cache.get(key))

        category = TestDataFactory.create_expense_category(self.tenant)
        self.client.post('/api/v1/expenses/', {
            'category': category.id, 'amount': '20.00', 'description': 'Tea', 'expense_date': self.today.isoformat(),
        }, format='json')
        self.assertIsNone(cache.get(key))

    def test_driver_cannot_view_reports(self):
        driver_user = TestDataFactory.create_user(tenant=self.tenant, role=User.ROLE_DRIVER)
        client = AuthenticatedAPIClient().authenticate_user(driver_user)
        response = client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_manager_can_view_reports(self):
        manager = TestDataFactory.create_user(tenant=self.tenant, role=User.ROLE_MANAGER)
        client = AuthenticatedAPIClient().authenticate_user(manager)
        response = client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class DailySalesReportTests(ReportTestMixin, TestCase):

    def test_days_newest_first_with_receivables(self):
        driver = TestDataFactory.create_driver(self.tenant, name='Karim')
        yesterday = self.today - timedelta(days=1)
        TestDataFactory.create_sale(self.tenant, driver, self.product, quantity=2,
                                    cash_deposited=Decimal('1500.00'), sale_date=yesterday)
        TestDataFactory.create_sale(self.tenant, driver, self.product, sale_type=Sale.SALE_TYPE_PACKAGE,
                                    quantity=1)
        recalculate_driver(self.tenant, driver, yesterday)

        response = self.client.get('/api/v1/reports/daily-sales/', {
            'date_from': yesterday.isoformat(), 'date_to': self.today.isoformat(),
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        days = response.data['days']
        self.assertEqual([d['date'] for d in days], [self.today.isoformat(), yesterday.isoformat()])
        self.assertEqual(days[0]['drivers'][0]['package_quantity'], 1)
        self.assertIsNone(days[0]['drivers'][0]['total_cash_receivables'])
        self.assertEqual(days[1]['drivers'][0]['cash_receivables_change'], 500.0)
        self.assertEqual(days[1]['totals']['refill_quantity'], 2)

    def test_inverted_range_rejected(self):
        response = self.client.get('/api/v1/reports/daily-sales/', {
            'date_from': '2024-05-10', 'date_to': '2024-05-01',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_closed_range_served_from_cache(self):
        driver = TestDataFactory.create_driver(self.tenant)
        past = self.today - timedelta(days=5)
        TestDataFactory.create_sale(self.tenant, driver, self.product, sale_date=past)
        params = {'date_from': past.isoformat(), 'date_to': (past + timedelta(days=1)).isoformat()}

        first = self.client.get('/api/v1/reports/daily-sales/', params)
        # Direct ORM writes skip the view-level invalidation
        TestDataFactory.create_sale(self.tenant, driver, self.product, sale_date=past)
        second = self.client.get('/api/v1/reports/daily-sales/', params)
        self.assertEqual(first.data, second.data)

    def test_backdated_sale_refreshes_closed_range(self):
        TestDataFactory.create_baseline(self.tenant, self.product, full_cylinders=20)
        driver = TestDataFactory.create_driver(self.tenant)
        past = self.today - timedelta(days=5)
        params = {'date_from': past.isoformat(), 'date_to': (past + timedelta(days=1)).isoformat()}

        before = self.client.get('/api/v1/reports/daily-sales/', params)
        self.assertEqual(before.data['days'], [])

        response = self.client.post('/api/v1/sales/', {
            'driver': driver.id, 'product': self.product.id, 'sale_type': Sale.SALE_TYPE_REFILL,
            'quantity': 3, 'unit_price': '1000.00', 'cash_deposited': '3000.00',
            'cylinders_deposited': 3, 'payment_type': Sale.PAYMENT_CASH, 'sale_date': past.isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        after = self.client.get('/api/v1/reports/daily-sales/', params)
        self.assertEqual(after.data['days'][0]['date'], past.isoformat())
        self.assertEqual(after.data['days'][0]['totals']['refill_quantity'], 3)

    def test_bulk_delete_refreshes_closed_range(self):
        driver = TestDataFactory.create_driver(self.tenant)
        past = self.today - timedelta(days=3)
        sale = TestDataFactory.create_sale(self.tenant, driver, self.product, sale_date=past)
        params = {'date_from': past.isoformat(), 'date_to': past.isoformat()}
        self.assertEqual(len(self.client.get('/api/v1/reports/daily-sales/', params).data['days']), 1)

        response = self.client.post('/api/v1/sales/bulk-delete/', {
            'sales_ids': [sale.id], 'date': past.isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get('/api/v1/reports/daily-sales/', params).data['days'], [])


class DriverPerformanceReportTests(ReportTestMixin, TestCase):

    def test_sorted_by_collection_efficiency(self):
        good = TestDataFactory.create_driver(self.tenant, name='Good')
        poor = TestDataFactory.create_driver(self.tenant, name='Poor')
        TestDataFactory.create_sale(self.tenant, good, self.product, quantity=2)
        TestDataFactory.create_sale(self.tenant, poor, self.product, quantity=2,
                                    cash_deposited=Decimal('500.00'), cylinders_deposited=1)

        response = self.client.get('/api/v1/reports/driver-performance/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        drivers = response.data['drivers']
        self.assertEqual([d['driver_name'] for d in drivers], ['Good', 'Poor'])
        self.assertEqual(drivers[0]['collection_efficiency'], 100.0)
        self.assertEqual(drivers[1]['cash_collection_percentage'], 25.0)
        self.assertEqual(drivers[1]['cylinder_return_percentage'], 50.0)


class FinancialSummaryReportTests(ReportTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.driver = TestDataFactory.create_driver(self.tenant, name='Karim')
        self.fuel = TestDataFactory.create_expense_category(self.tenant, name='Fuel')

    def _book_period(self, day):
        TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=2, sale_date=day)
        TestDataFactory.create_sale(self.tenant, self.driver, self.product, sale_type=Sale.SALE_TYPE_PACKAGE,
                                    quantity=1, cash_deposited=Decimal('400.00'), sale_date=day)
        TestDataFactory.create_shipment(self.tenant, self.product, quantity=3, unit_cost=Decimal('600.00'),
                                        total_cost=Decimal('1800.00'), shipment_date=day)
        TestDataFactory.create_expense(self.tenant, self.fuel, amount=Decimal('300.00'), is_approved=True,
                                       expense_date=day)

    def test_income_statement(self):
        self._book_period(self.today)
        # pending purchases and unapproved expenses stay out
        TestDataFactory.create_shipment(self.tenant, self.product, quantity=5, status=Shipment.STATUS_PENDING,
                                        total_cost=Decimal('5000.00'))
        TestDataFactory.create_shipment(self.tenant, self.product, quantity=2)
        TestDataFactory.create_expense(self.tenant, self.fuel, amount=Decimal('999.00'))

        response = self.client.get('/api/v1/reports/financial-summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['comparison'])
        current = response.data['current']
        self.assertEqual(current['revenue']['total'], 3000.0)
        self.assertEqual(current['revenue']['cash_collected'], 2400.0)
        self.assertEqual(current['revenue']['by_type'][Sale.SALE_TYPE_REFILL]['quantity'], 2)
        self.assertEqual(current['revenue']['by_driver'][0]['driver_name'], 'Karim')
        self.assertEqual(current['cost_of_goods_sold']['total'], 1800.0)
        self.assertEqual(current['cost_of_goods_sold']['uncosted_purchases'], 1)
        self.assertEqual(current['gross_profit'], 1200.0)
        self.assertEqual(current['operating_expenses']['total'], 300.0)
        self.assertEqual(current['operating_expenses']['by_category'][0]['category_name'], 'Fuel')
        self.assertEqual(current['net_income'], 900.0)
        self.assertEqual(current['margins'], {'gross_margin': 40.0, 'net_margin': 30.0})

    def test_comparison_period(self):
        self._book_period(self.today)
        last_month = self.today - timedelta(days=40)
        TestDataFactory.create_sale(self.tenant, self.driver, self.product, quantity=1, sale_date=last_month)

        response = self.client.get('/api/v1/reports/financial-summary/', {
            'date_from': (self.today - timedelta(days=7)).isoformat(),
            'date_to': self.today.isoformat(),
            'compare_from': (last_month - timedelta(days=1)).isoformat(),
            'compare_to': (last_month + timedelta(days=1)).isoformat(),
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        comparison = response.data['comparison']
        self.assertEqual(comparison['net_income'], 1000.0)
        self.assertEqual(comparison['net_income_change'], -100.0)

    def test_empty_period_has_zero_margins(self):
        response = self.client.get('/api/v1/reports/financial-summary/')
        self.assertEqual(response.data['current']['net_income'], 0.0)
        self.assertEqual(response.data['current']['margins']['net_margin'], 0.0)

    def test_compare_dates_must_be_paired(self):
        response = self.client.get('/api/v1/reports/financial-summary/',
                                   {'compare_from': self.today.isoformat()})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_driver_cannot_view_financial_summary(self):
        driver_user = TestDataFactory.create_user(tenant=self.tenant, role=User.ROLE_DRIVER)
        client = AuthenticatedAPIClient().authenticate_user(driver_user)
        response = client.get('/api/v1/reports/financial-summary/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
