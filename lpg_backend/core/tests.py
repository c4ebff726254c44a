"""
Test suite for the core module
Tests: registration, login gating, current user, tenant users, settings, audit logs
"""
from io import StringIO
from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from lpg_backend.core.models import Tenant, User, AuditLog
from lpg_backend.core.cache_utils import tenant_cache_key, invalidate_tenant_cache, DASHBOARD_PREFIX
from lpg_backend.core.permissions import has_role_permission, CREATE_SALE, DELETE_SALE, APPROVE_EXPENSES
from lpg_backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from lpg_backend.core.utils import parse_date, parse_bool, create_audit_log


class AuthTests(TestCase):
    """Registration and login"""

    def setUp(self):
        self.client = APIClient()

    def test_register_creates_pending_tenant(self):
        response = self.client.post('/api/v1/auth/register/', {
            'name': 'Rahim Uddin',
            'email': 'Rahim@Example.com',
            'password': 'secret123',
            'company': 'Rahim Gas',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(email='rahim@example.com')
        self.assertEqual(user.role, User.ROLE_ADMIN)
        self.assertEqual(user.tenant.approval_status, Tenant.APPROVAL_PENDING)
        self.assertFalse(user.tenant.is_active)

    def test_register_duplicate_email(self):
        TestDataFactory.create_user(email='taken@test.com')
        response = self.client.post('/api/v1/auth/register/', {
            'name': 'Someone',
            'email': 'taken@test.com',
            'password': 'secret123',
            'company': 'Other Gas',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_login_approved_tenant(self):
        user = TestDataFactory.create_user(email='admin@test.com')
        response = self.client.post('/api/v1/auth/login/', {
            'email': 'admin@test.com', 'password': 'testpass123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertEqual(response.data['user']['email'], user.email)
        user.refresh_from_db()
        self.assertIsNotNone(user.last_login_at)

    def test_login_refused_for_pending_tenant(self):
        tenant = TestDataFactory.create_tenant(approval_status=Tenant.APPROVAL_PENDING, is_active=False)
        TestDataFactory.create_user(tenant=tenant, email='pending@test.com')
        response = self.client.post('/api/v1/auth/login/', {
            'email': 'pending@test.com', 'password': 'testpass123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_super_admin_login_without_tenant(self):
        TestDataFactory.create_user(role=User.ROLE_SUPER_ADMIN, email='root@test.com')
        response = self.client.post('/api/v1/auth/login/', {
            'email': 'root@test.com', 'password': 'testpass123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_refresh_issues_new_access_token(self):
        user = TestDataFactory.create_user()
        refresh = str(RefreshToken.for_user(user))
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_refresh_for_deleted_user_is_invalid_token(self):
        user = TestDataFactory.create_user()
        refresh = str(RefreshToken.for_user(user))
        user.delete()
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['code'], 'token_not_valid')

    def test_refresh_for_deactivated_user_is_refused(self):
        user = TestDataFactory.create_user()
        refresh = str(RefreshToken.for_user(user))
        user.is_active = False
        user.save(update_fields=['is_active'])
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_with_garbage_token(self):
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': 'not-a-token'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class UserMeTests(TestCase):

    def test_me_reports_onboarding_and_permissions(self):
        user = TestDataFactory.create_user()
        client = AuthenticatedAPIClient().authenticate_user(user)
        response = client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['needs_onboarding'])
        self.assertTrue(response.data['is_admin'])
        self.assertIn(DELETE_SALE, response.data['permissions'])
        self.assertEqual(response.data['tenant']['id'], user.tenant_id)

    def test_me_requires_authentication(self):
        response = APIClient().get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class UserManagementTests(TestCase):
    """Tenant scoped user CRUD"""

    def setUp(self):
        self.admin = TestDataFactory.create_user()
        self.tenant = self.admin.tenant
        self.client = AuthenticatedAPIClient().authenticate_user(self.admin)

    def test_create_user_in_own_tenant(self):
        response = self.client.post('/api/v1/users/', {
            'email': 'manager@test.com',
            'name': 'Manager',
            'role': User.ROLE_MANAGER,
            'password': 'Str0ng-pass-99',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        created = User.objects.get(email='manager@test.com')
        self.assertEqual(created.tenant, self.tenant)
        self.assertTrue(AuditLog.objects.filter(model_name='User', action='CREATE').exists())

    def test_cannot_create_super_admin(self):
        response = self.client.post('/api/v1/users/', {
            'email': 'sa@test.com',
            'role': User.ROLE_SUPER_ADMIN,
            'password': 'Str0ng-pass-99',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_manager_cannot_manage_users(self):
        manager = TestDataFactory.create_user(tenant=self.tenant, role=User.ROLE_MANAGER)
        client = AuthenticatedAPIClient().authenticate_user(manager)
        response = client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_users_of_other_tenants_are_invisible(self):
        other = TestDataFactory.create_user()
        response = self.client.get(f'/api/v1/users/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_cannot_delete_self(self):
        response = self.client.delete(f'/api/v1/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_password_change_is_validated(self):
        member = TestDataFactory.create_user(tenant=self.tenant, role=User.ROLE_MANAGER)
        response = self.client.patch(f'/api/v1/users/{member.id}/', {'password': 'short'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)
        member.refresh_from_db()
        self.assertTrue(member.check_password('testpass123'))

        response = self.client.patch(f'/api/v1/users/{member.id}/', {'password': 'Str0ng-pass-99'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn('password', response.data)
        member.refresh_from_db()
        self.assertTrue(member.check_password('Str0ng-pass-99'))


class TenantSettingsTests(TestCase):

    def setUp(self):
        self.admin = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient().authenticate_user(self.admin)

    def test_settings_are_merged(self):
        response = self.client.patch('/api/v1/settings/', {'language': 'en'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['settings']['language'], 'en')
        self.assertEqual(response.data['settings']['currency'], 'BDT')

    def test_driver_cannot_change_settings(self):
        driver_user = TestDataFactory.create_user(tenant=self.admin.tenant, role=User.ROLE_DRIVER)
        client = AuthenticatedAPIClient().authenticate_user(driver_user)
        response = client.patch('/api/v1/settings/', {'language': 'en'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AuditLogTests(TestCase):

    def setUp(self):
        self.admin = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient().authenticate_user(self.admin)

    def test_audit_log_list_is_tenant_scoped(self):
        create_audit_log(user=self.admin, action='CREATE', model_name='Driver', object_id=1, object_name='Karim')
        other = TestDataFactory.create_user()
        create_audit_log(user=other, action='CREATE', model_name='Driver', object_id=2, object_name='Other')

        response = self.client.get('/api/v1/audit-logs/?model_name=Driver')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['object_name'], 'Karim')

    def test_audit_log_skipped_without_required_fields(self):
        self.assertIsNone(create_audit_log(user=self.admin, action='CREATE', model_name='Driver'))


class UtilsTests(TestCase):

    def test_parse_date(self):
        self.assertEqual(str(parse_date('2024-03-05')), '2024-03-05')
        self.assertEqual(str(parse_date('2024-03-05T10:00:00Z')), '2024-03-05')
        self.assertIsNone(parse_date('not-a-date'))
        self.assertEqual(parse_date('', default='fallback'), 'fallback')

    def test_parse_bool(self):
        self.assertTrue(parse_bool('true'))
        self.assertTrue(parse_bool('1'))
        self.assertFalse(parse_bool('no'))
        self.assertTrue(parse_bool(None, default=True))

    def test_role_permissions(self):
        driver_user = TestDataFactory.create_user(role=User.ROLE_DRIVER)
        manager = TestDataFactory.create_user(role=User.ROLE_MANAGER)
        self.assertTrue(has_role_permission(driver_user, CREATE_SALE))
        self.assertFalse(has_role_permission(driver_user, APPROVE_EXPENSES))
        self.assertTrue(has_role_permission(manager, APPROVE_EXPENSES))
        self.assertFalse(has_role_permission(manager, DELETE_SALE))


class CacheUtilsTests(TestCase):

    def setUp(self):
        cache.clear()

    def test_invalidate_tenant_cache_only_touches_that_tenant(self):
        cache.set(tenant_cache_key(DASHBOARD_PREFIX, 1), {'a': 1})
        cache.set(tenant_cache_key(DASHBOARD_PREFIX, 2), {'b': 2})
        invalidate_tenant_cache(DASHBOARD_PREFIX, 1)
        self.assertIsNone(cache.get(tenant_cache_key(DASHBOARD_PREFIX, 1)))
        self.assertEqual(cache.get(tenant_cache_key(DASHBOARD_PREFIX, 2)), {'b': 2})


class CreateSuperAdminCommandTests(TestCase):

    def test_creates_super_admin(self):
        out = StringIO()
        call_command('create_super_admin', '--email', 'Root@Test.com', '--password', 'secret123', stdout=out)
        user = User.objects.get(email='root@test.com')
        self.assertEqual(user.role, User.ROLE_SUPER_ADMIN)
        self.assertIsNone(user.tenant)
        self.assertTrue(user.check_password('secret123'))
        self.assertIn('Created', out.getvalue())

    def test_refuses_tenant_user(self):
        TestDataFactory.create_user(email='admin@test.com')
        with self.assertRaises(CommandError):
            call_command('create_super_admin', '--email', 'admin@test.com', '--password', 'x', stdout=StringIO())
