"""
Test suite for super admin tenant management
Tests: listing, approval workflow, subscriptions, tenant users
"""
from django.test import TestCase
from rest_framework import status
from lpg_backend.core.models import Tenant, User, AuditLog
from lpg_backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class TenantAdministrationTests(TestCase):

    def setUp(self):
        self.super_admin = TestDataFactory.create_user(role=User.ROLE_SUPER_ADMIN, email='root@test.com')
        self.client = AuthenticatedAPIClient().authenticate_user(self.super_admin)
        self.pending = TestDataFactory.create_tenant(name='Pending Gas', approval_status=Tenant.APPROVAL_PENDING,
                                                     is_active=False)
        self.approved = TestDataFactory.create_tenant(name='Approved Gas')

    def test_list_puts_pending_first(self):
        response = self.client.get('/api/v1/super-admin/tenants/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['results'][0]['id'], self.pending.id)

    def test_list_filters_by_status(self):
        response = self.client.get('/api/v1/super-admin/tenants/?status=approved')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['name'], 'Approved Gas')

    def test_list_includes_user_count(self):
        TestDataFactory.create_user(tenant=self.approved)
        response = self.client.get('/api/v1/super-admin/tenants/?search=Approved')
        self.assertEqual(response.data['results'][0]['user_count'], 1)

    def test_approve(self):
        response = self.client.post(f'/api/v1/super-admin/tenants/{self.pending.id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.pending.refresh_from_db()
        self.assertEqual(self.pending.approval_status, Tenant.APPROVAL_APPROVED)
        self.assertTrue(self.pending.is_active)
        self.assertEqual(self.pending.approved_by, 'root@test.com')
        self.assertTrue(AuditLog.objects.filter(action='APPROVE', tenant=self.pending).exists())

    def test_approve_twice_fails(self):
        response = self.client.post(f'/api/v1/super-admin/tenants/{self.approved.id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reject_uses_default_reason(self):
        response = self.client.post(f'/api/v1/super-admin/tenants/{self.pending.id}/reject/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.pending.refresh_from_db()
        self.assertEqual(self.pending.approval_status, Tenant.APPROVAL_REJECTED)
        self.assertEqual(self.pending.rejection_reason, 'Rejected by super admin')

    def test_reject_only_pending(self):
        response = self.client.post(f'/api/v1/super-admin/tenants/{self.approved.id}/reject/',
                                    {'reason': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_suspend_approved_tenant(self):
        response = self.client.post(f'/api/v1/super-admin/tenants/{self.approved.id}/suspend/',
                                    {'reason': 'Unpaid'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.approved.refresh_from_db()
        self.assertEqual(self.approved.approval_status, Tenant.APPROVAL_SUSPENDED)
        self.assertFalse(self.approved.is_active)

    def test_suspend_pending_fails(self):
        response = self.client.post(f'/api/v1/super-admin/tenants/{self.pending.id}/suspend/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_subscription(self):
        response = self.client.patch(f'/api/v1/super-admin/tenants/{self.approved.id}/subscription/', {
            'subscription_plan': 'PROFESSIONAL', 'subscription_status': 'ACTIVE',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.approved.refresh_from_db()
        self.assertEqual(self.approved.subscription_plan, 'PROFESSIONAL')
        self.assertTrue(AuditLog.objects.filter(action='SUBSCRIPTION_CHANGE').exists())

    def test_invalid_subscription_plan(self):
        response = self.client.patch(f'/api/v1/super-admin/tenants/{self.approved.id}/subscription/', {
            'subscription_plan': 'GOLD', 'subscription_status': 'ACTIVE',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_tenant_users(self):
        TestDataFactory.create_user(tenant=self.approved, role=User.ROLE_MANAGER)
        response = self.client.get(f'/api/v1/super-admin/tenants/{self.approved.id}/users/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['users']), 1)

    def test_tenant_admin_is_refused(self):
        admin = TestDataFactory.create_user(tenant=self.approved)
        client = AuthenticatedAPIClient().authenticate_user(admin)
        response = client.get('/api/v1/super-admin/tenants/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
