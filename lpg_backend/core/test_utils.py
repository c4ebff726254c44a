"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from lpg_backend.core.models import Tenant
from lpg_backend.catalog.models import Company, CylinderSize, Product
from lpg_backend.parties.models import Driver, Area, Customer
from lpg_backend.sales.models import Sale
from lpg_backend.inventory.models import Shipment, InventoryRecord
from lpg_backend.receivables.models import ReceivableRecord, CustomerReceivable
from lpg_backend.expenses.models import ExpenseCategory, Expense
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def random_phone():
        return f'017{random.randint(10000000, 99999999)}'

    @staticmethod
    def create_tenant(name=None, approval_status=Tenant.APPROVAL_APPROVED, is_active=True):
        """Create an approved, active tenant unless told otherwise"""
        if not name:
            name = f'Distributor_{TestDataFactory.random_string(6)}'
        return Tenant.objects.create(
            name=name,
            contact_email=f'{name.lower()}@test.com',
            approval_status=approval_status,
            is_active=is_active,
        )

    @staticmethod
    def create_user(tenant=None, role=User.ROLE_ADMIN, email=None, password='testpass123', **extra):
        """Create a test user; super admins get no tenant"""
        if not email:
            email = f'user_{TestDataFactory.random_string(6).lower()}@test.com'
        if role == User.ROLE_SUPER_ADMIN:
            tenant = None
        elif tenant is None:
            tenant = TestDataFactory.create_tenant()
        return User.objects.create_user(
            username=email,
            email=email,
            password=password,
            tenant=tenant,
            role=role,
            name=extra.pop('name', email.split('@')[0]),
            **extra
        )

    @staticmethod
    def create_company(tenant, name=None):
        if not name:
            name = f'Company_{TestDataFactory.random_string(6)}'
        return Company.objects.create(tenant=tenant, name=name)

    @staticmethod
    def create_cylinder_size(tenant, size='12KG'):
        size_obj, _ = CylinderSize.objects.get_or_create(tenant=tenant, size=size)
        return size_obj

    @staticmethod
    def create_product(tenant, company=None, size='12KG', name=None, price=None, low_stock_threshold=10):
        """Create a product linked to a cylinder size of the same label"""
        if not company:
            company = TestDataFactory.create_company(tenant)
        if not name:
            name = f'LPG_{TestDataFactory.random_string(6)}'
        if price is None:
            price = Decimal('1200.00')
        return Product.objects.create(
            tenant=tenant,
            company=company,
            cylinder_size=TestDataFactory.create_cylinder_size(tenant, size),
            name=name,
            size=size,
            current_price=price,
            full_cylinder_price=price,
            low_stock_threshold=low_stock_threshold,
        )

    @staticmethod
    def create_driver(tenant, name=None, phone=None, driver_type=Driver.TYPE_RETAIL, status=Driver.STATUS_ACTIVE):
        if not name:
            name = f'Driver {TestDataFactory.random_string(5)}'
        return Driver.objects.create(
            tenant=tenant,
            name=name,
            phone=phone or TestDataFactory.random_phone(),
            driver_type=driver_type,
            status=status,
            joining_date=timezone.localdate(),
        )

    @staticmethod
    def create_area(tenant, name=None):
        if not name:
            name = f'Area_{TestDataFactory.random_string(6)}'
        return Area.objects.create(tenant=tenant, name=name)

    @staticmethod
    def create_customer(tenant, area=None, driver=None, name=None, phone=None):
        if not area:
            area = TestDataFactory.create_area(tenant)
        if not name:
            name = f'Customer_{TestDataFactory.random_string(6)}'
        return Customer.objects.create(
            tenant=tenant,
            area=area,
            driver=driver,
            name=name,
            phone=phone or TestDataFactory.random_phone(),
        )

    @staticmethod
    def create_sale(tenant, driver, product, user=None, sale_type=Sale.SALE_TYPE_REFILL, quantity=1,
                    unit_price=None, discount=Decimal('0.00'), cash_deposited=None, cylinders_deposited=None,
                    sale_date=None):
        """
        Create a sale row directly (no inventory or receivable side effects).
        Cash defaults to the net value and cylinders to the quantity for refills.
        """
        if unit_price is None:
            unit_price = product.current_price
        sale = Sale(
            tenant=tenant,
            user=user,
            driver=driver,
            product=product,
            sale_type=sale_type,
            quantity=quantity,
            unit_price=unit_price,
            discount=discount,
            sale_date=sale_date or timezone.localdate(),
        )
        sale.cylinders_deposited = 0
        sale.cash_deposited = Decimal('0.00')
        sale.recompute_totals()
        sale.cash_deposited = sale.net_value if cash_deposited is None else cash_deposited
        if cylinders_deposited is None:
            cylinders_deposited = quantity if sale_type == Sale.SALE_TYPE_REFILL else 0
        sale.cylinders_deposited = cylinders_deposited
        sale.recompute_totals()
        sale.save()
        return sale

    @staticmethod
    def create_shipment(tenant, product, shipment_type=Shipment.INCOMING_FULL, quantity=10,
                        status=Shipment.STATUS_COMPLETED, user=None, notes='', **extra):
        return Shipment.objects.create(
            tenant=tenant,
            product=product,
            shipment_type=shipment_type,
            quantity=quantity,
            status=status,
            created_by=user,
            notes=notes,
            **extra
        )

    @staticmethod
    def create_baseline(tenant, product, full_cylinders=0, empty_cylinders=0, date=None):
        """Onboarding inventory baseline for a product"""
        return InventoryRecord.objects.create(
            tenant=tenant,
            product=product,
            date=date or timezone.localdate(),
            cylinder_size=product.size_label,
            full_cylinders=full_cylinders,
            empty_cylinders=empty_cylinders,
            total_cylinders=full_cylinders + empty_cylinders,
            is_onboarding_baseline=True,
        )

    @staticmethod
    def create_receivable_record(tenant, driver, date=None, cash=Decimal('0.00'), cylinders=0, onboarding=False):
        return ReceivableRecord.objects.create(
            tenant=tenant,
            driver=driver,
            date=date or timezone.localdate(),
            total_cash_receivables=cash,
            total_cylinder_receivables=cylinders,
            onboarding_cash_receivables=cash if onboarding else Decimal('0.00'),
            onboarding_cylinder_receivables=cylinders if onboarding else 0,
        )

    @staticmethod
    def create_customer_receivable(tenant, driver, customer=None, receivable_type=CustomerReceivable.TYPE_CASH,
                                   amount=Decimal('0.00'), quantity=0, size='', **extra):
        return CustomerReceivable.objects.create(
            tenant=tenant,
            driver=driver,
            customer=customer,
            customer_name=customer.name if customer else 'Walk-in',
            receivable_type=receivable_type,
            amount=amount,
            quantity=quantity,
            size=size,
            **extra
        )

    @staticmethod
    def create_expense_category(tenant, name=None, budget=None):
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return ExpenseCategory.objects.create(tenant=tenant, name=name, budget=budget)

    @staticmethod
    def create_expense(tenant, category, user=None, amount=Decimal('100.00'), is_approved=False, expense_date=None):
        return Expense.objects.create(
            tenant=tenant,
            category=category,
            user=user,
            amount=amount,
            description=f'Expense {TestDataFactory.random_string(5)}',
            expense_date=expense_date or timezone.localdate(),
            is_approved=is_approved,
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
