"""
Test suite for the expenses module
Tests: categories, approval workflow, driver visibility, budget context
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from lpg_backend.core.models import User
from lpg_backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from lpg_backend.expenses.models import Expense, ExpenseCategory, ExpenseParentCategory
from lpg_backend.expenses.services import budget_context


class ExpenseTestMixin:

    def setUp(self):
        self.admin = TestDataFactory.create_user()
        self.tenant = self.admin.tenant
        self.client = AuthenticatedAPIClient().authenticate_user(self.admin)
        self.category = TestDataFactory.create_expense_category(self.tenant, name='Fuel', budget=Decimal('1000.00'))

    def client_for(self, role):
        user = TestDataFactory.create_user(tenant=self.tenant, role=role)
        return user, AuthenticatedAPIClient().authenticate_user(user)


class ExpenseCategoryTests(ExpenseTestMixin, TestCase):

    def test_create_category_under_parent(self):
        parent = ExpenseParentCategory.objects.create(tenant=self.tenant, name='Vehicle')
        response = self.client.post('/api/v1/expense-categories/', {
            'name': 'Tyres', 'parent': parent.id, 'budget': '5000.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['parent_name'], 'Vehicle')

    def test_duplicate_category_name(self):
        response = self.client.post('/api/v1/expense-categories/', {'name': 'Fuel'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_negative_budget(self):
        response = self.client.post('/api/v1/expense-categories/', {'name': 'Rent', 'budget': '-1'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('budget', response.data)

    def test_list_reports_spending(self):
        TestDataFactory.create_expense(self.tenant, self.category, amount=Decimal('300.00'), is_approved=True)
        TestDataFactory.create_expense(self.tenant, self.category, amount=Decimal('50.00'))
        response = self.client.get('/api/v1/expense-categories/')
        row = response.data[0]
        self.assertEqual(row['expense_count'], 2)
        self.assertEqual(row['total_spent'], '300.00')

    def test_cannot_delete_category_with_expenses(self):
        TestDataFactory.create_expense(self.tenant, self.category)
        response = self.client.delete(f'/api/v1/expense-categories/{self.category.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(ExpenseCategory.objects.filter(pk=self.category.id).exists())

    def test_driver_cannot_create_category(self):
        _, client = self.client_for(User.ROLE_DRIVER)
        response = client.post('/api/v1/expense-categories/', {'name': 'Tea'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ExpenseWorkflowTests(ExpenseTestMixin, TestCase):

    def expense_payload(self, **overrides):
        payload = {
            'category': self.category.id,
            'amount': '250.00',
            'description': 'Diesel for delivery van',
            'expense_date': '2024-06-01',
        }
        payload.update(overrides)
        return payload

    def test_admin_expense_auto_approved(self):
        response = self.client.post('/api/v1/expenses/', self.expense_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['is_approved'])
        self.assertEqual(response.data['approved_by'], self.admin.id)

    def test_manager_expense_auto_approved(self):
        _, client = self.client_for(User.ROLE_MANAGER)
        response = client.post('/api/v1/expenses/', self.expense_payload(), format='json')
        self.assertTrue(response.data['is_approved'])

    def test_driver_expense_pending(self):
        driver_user, client = self.client_for(User.ROLE_DRIVER)
        response = client.post('/api/v1/expenses/', self.expense_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data['is_approved'])
        self.assertEqual(response.data['user'], driver_user.id)

    def test_driver_sees_only_own_expenses(self):
        driver_user, client = self.client_for(User.ROLE_DRIVER)
        own = TestDataFactory.create_expense(self.tenant, self.category, user=driver_user)
        other = TestDataFactory.create_expense(self.tenant, self.category, user=self.admin)

        response = client.get('/api/v1/expenses/')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['id'], own.id)
        self.assertEqual(client.get(f'/api/v1/expenses/{other.id}/').status_code, status.HTTP_404_NOT_FOUND)

    def test_list_summary(self):
        TestDataFactory.create_expense(self.tenant, self.category, amount=Decimal('100.00'), is_approved=True)
        TestDataFactory.create_expense(self.tenant, self.category, amount=Decimal('40.00'))
        response = self.client.get('/api/v1/expenses/')
        summary = response.data['summary']
        self.assertEqual(summary['pending_count'], 1)
        self.assertEqual(summary['approved_amount'], Decimal('100.00'))

    def test_approve_pending_expense(self):
        expense = TestDataFactory.create_expense(self.tenant, self.category)
        manager, client = self.client_for(User.ROLE_MANAGER)
        response = client.patch(f'/api/v1/expenses/{expense.id}/approval/',
                                {'action': 'approve', 'notes': 'receipt checked'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        expense.refresh_from_db()
        self.assertTrue(expense.is_approved)
        self.assertEqual(expense.approved_by, manager)
        self.assertIn('receipt checked', expense.notes)

    def test_approve_twice_rejected(self):
        expense = TestDataFactory.create_expense(self.tenant, self.category, is_approved=True)
        response = self.client.patch(f'/api/v1/expenses/{expense.id}/approval/', {'action': 'approve'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reject_deletes_expense(self):
        expense = TestDataFactory.create_expense(self.tenant, self.category)
        response = self.client.patch(f'/api/v1/expenses/{expense.id}/approval/', {'action': 'reject'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Expense.objects.filter(pk=expense.id).exists())

    def test_driver_cannot_approve(self):
        expense = TestDataFactory.create_expense(self.tenant, self.category)
        _, client = self.client_for(User.ROLE_DRIVER)
        response = client.patch(f'/api/v1/expenses/{expense.id}/approval/', {'action': 'approve'},
                                format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_only_admin_edits(self):
        expense = TestDataFactory.create_expense(self.tenant, self.category)
        _, client = self.client_for(User.ROLE_MANAGER)
        response = client.patch(f'/api/v1/expenses/{expense.id}/', {'amount': '10.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class BudgetContextTests(ExpenseTestMixin, TestCase):

    def test_projection_against_monthly_budget(self):
        TestDataFactory.create_expense(self.tenant, self.category, amount=Decimal('600.00'), is_approved=True)
        expense = TestDataFactory.create_expense(self.tenant, self.category, amount=Decimal('500.00'))

        context = budget_context(expense)
        self.assertEqual(context['current_spending'], Decimal('600.00'))
        self.assertEqual(context['projected_spending'], Decimal('1100.00'))
        self.assertEqual(context['remaining_budget'], Decimal('0.00'))
        self.assertTrue(context['is_over_budget'])
        self.assertEqual(context['budget_utilization'], Decimal('110.00'))

    def test_no_budget_gives_empty_context(self):
        category = TestDataFactory.create_expense_category(self.tenant, name='Misc')
        expense = TestDataFactory.create_expense(self.tenant, category)
        self.assertIsNone(budget_context(expense)['budget'])

    def test_detail_includes_budget_context(self):
        expense = TestDataFactory.create_expense(self.tenant, self.category, amount=Decimal('250.00'))
        response = self.client.get(f'/api/v1/expenses/{expense.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['budget_context']['is_over_budget'])
