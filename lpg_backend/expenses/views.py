import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Count, ProtectedError
from django.shortcuts import get_object_or_404
from django.utils import timezone

from lpg_backend.core.models import User
from lpg_backend.core.permissions import (
    IsTenantUser, has_role_permission, is_admin_user, is_manager_or_admin, APPROVE_EXPENSES,
)
from lpg_backend.core.utils import create_audit_log, model_snapshot, paginate, parse_bool
from lpg_backend.sales.services import reports_changed
from .filters import ExpenseFilter
from .models import ExpenseParentCategory, ExpenseCategory, Expense
from .serializers import (
    ExpenseParentCategorySerializer, ExpenseCategorySerializer, ExpenseSerializer, ExpenseApprovalSerializer,
)
from .services import category_spending, budget_context, expense_summary

logger = logging.getLogger(__name__)

EXPENSE_AUDIT_FIELDS = ['category', 'amount', 'description', 'particulars', 'expense_date', 'notes',
                        'is_approved', 'approved_by']


def _forbidden(message='Manager or admin access required.'):
    return Response({'error': message}, status=status.HTTP_403_FORBIDDEN)


# Parent category views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def parent_category_list_create(request):
    tenant = request.user.tenant
    if request.method == 'GET':
        parents = ExpenseParentCategory.objects.filter(tenant=tenant).annotate(category_count=Count('categories'))
        if parse_bool(request.query_params.get('active_only')):
            parents = parents.filter(is_active=True)
        return Response(ExpenseParentCategorySerializer(parents, many=True).data)
    else:
        if not is_manager_or_admin(request.user):
            return _forbidden()
        serializer = ExpenseParentCategorySerializer(data=request.data, context={'request': request})
        if serializer.is_valid():
            serializer.save(tenant=tenant)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsTenantUser])
def parent_category_detail(request, pk):
    parent = get_object_or_404(ExpenseParentCategory, pk=pk, tenant=request.user.tenant)

    if request.method == 'GET':
        return Response(ExpenseParentCategorySerializer(parent).data)

    if not is_manager_or_admin(request.user):
        return _forbidden()

    if request.method in ('PUT', 'PATCH'):
        serializer = ExpenseParentCategorySerializer(parent, data=request.data, partial=request.method == 'PATCH',
                                                     context={'request': request})
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        parent.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Category views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def category_list_create(request):
    """List categories with their spending or create one"""
    tenant = request.user.tenant
    if request.method == 'GET':
        categories = ExpenseCategory.objects.filter(tenant=tenant).select_related('parent')
        if parse_bool(request.query_params.get('active_only')):
            categories = categories.filter(is_active=True)
        parent = request.query_params.get('parent')
        if parent:
            categories = categories.filter(parent_id=parent)
        serializer = ExpenseCategorySerializer(category_spending(categories), many=True)
        return Response(serializer.data)
    else:
        if not is_manager_or_admin(request.user):
            return _forbidden()
        serializer = ExpenseCategorySerializer(data=request.data, context={'request': request})
        if serializer.is_valid():
            category = serializer.save(tenant=tenant)
            create_audit_log(request=request, action='CREATE', model_name='ExpenseCategory', object_id=category.id,
                             object_name=category.name)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsTenantUser])
def category_detail(request, pk):
    tenant = request.user.tenant
    category = get_object_or_404(
        category_spending(ExpenseCategory.objects.filter(tenant=tenant).select_related('parent')), pk=pk)

    if request.method == 'GET':
        return Response(ExpenseCategorySerializer(category).data)

    if not is_manager_or_admin(request.user):
        return _forbidden()

    if request.method in ('PUT', 'PATCH'):
        serializer = ExpenseCategorySerializer(category, data=request.data, partial=request.method == 'PATCH',
                                               context={'request': request})
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if category.expenses.exists():
            return Response({'error': 'Cannot delete a category that has expenses'},
                            status=status.HTTP_400_BAD_REQUEST)
        category_id, category_name = category.id, category.name
        try:
            category.delete()
        except ProtectedError:
            return Response({'error': 'Cannot delete a category that has expenses'},
                            status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='DELETE', model_name='ExpenseCategory', object_id=category_id,
                         object_name=category_name)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Expense views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def expense_list_create(request):
    """
    GET: paginated expenses with a pending/approved summary. Drivers only see their own.
    POST: record an expense; admin and manager expenses are approved straight away.
    """
    tenant = request.user.tenant
    if request.method == 'GET':
        queryset = Expense.objects.filter(tenant=tenant).select_related('category', 'user', 'approved_by')
        if request.user.role == User.ROLE_DRIVER:
            queryset = queryset.filter(user=request.user)
        filterset = ExpenseFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        expenses = filterset.qs.order_by('-expense_date', '-created_at')
        data = paginate(request, expenses, ExpenseSerializer)
        data['summary'] = expense_summary(expenses)
        return Response(data)
    else:
        serializer = ExpenseSerializer(data=request.data, context={'request': request})
        if serializer.is_valid():
            extra = {'tenant': tenant, 'user': request.user}
            if is_manager_or_admin(request.user):
                extra.update(is_approved=True, approved_by=request.user, approved_at=timezone.now())
            expense = serializer.save(**extra)
            reports_changed(tenant.id)
            create_audit_log(request=request, action='CREATE', model_name='Expense', object_id=expense.id,
                             object_name=expense.description,
                             changes={'new': model_snapshot(expense, fields=EXPENSE_AUDIT_FIELDS)})
            return Response(ExpenseSerializer(expense).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsTenantUser])
def expense_detail(request, pk):
    """Retrieve an expense with its budget context; admins may edit or delete it"""
    queryset = Expense.objects.filter(tenant=request.user.tenant).select_related('category', 'user', 'approved_by')
    if request.user.role == User.ROLE_DRIVER:
        queryset = queryset.filter(user=request.user)
    expense = get_object_or_404(queryset, pk=pk)

    if request.method == 'GET':
        data = ExpenseSerializer(expense).data
        data['budget_context'] = budget_context(expense)
        return Response(data)

    if not is_admin_user(request.user):
        return _forbidden('Admin access required.')

    if request.method in ('PUT', 'PATCH'):
        old = model_snapshot(expense, fields=EXPENSE_AUDIT_FIELDS)
        serializer = ExpenseSerializer(expense, data=request.data, partial=request.method == 'PATCH',
                                       context={'request': request})
        if serializer.is_valid():
            serializer.save()
            reports_changed(expense.tenant_id)
            create_audit_log(request=request, action='UPDATE', model_name='Expense', object_id=expense.id,
                             object_name=expense.description,
                             changes={'old': old, 'new': model_snapshot(expense, fields=EXPENSE_AUDIT_FIELDS)})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        expense_id, description = expense.id, expense.description
        old = model_snapshot(expense, fields=EXPENSE_AUDIT_FIELDS)
        expense.delete()
        reports_changed(request.user.tenant_id)
        create_audit_log(request=request, action='DELETE', model_name='Expense', object_id=expense_id,
                         object_name=description, changes={'old': old})
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsTenantUser])
def expense_approval(request, pk):
    """Approve an expense, or reject (delete) it"""
    if not has_role_permission(request.user, APPROVE_EXPENSES):
        return _forbidden('Insufficient permissions')

    expense = get_object_or_404(Expense.objects.select_related('category'), pk=pk, tenant=request.user.tenant)
    serializer = ExpenseApprovalSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    action = serializer.validated_data['action']
    notes = serializer.validated_data.get('notes', '')

    if action == 'approve':
        if expense.is_approved:
            return Response({'error': 'Expense is already approved'}, status=status.HTTP_400_BAD_REQUEST)
        expense.is_approved = True
        expense.approved_by = request.user
        expense.approved_at = timezone.now()
        if notes:
            approval_note = f"Approval notes: {notes}"
            expense.notes = f"{expense.notes}\n{approval_note}" if expense.notes else approval_note
        expense.save()
        reports_changed(expense.tenant_id)
        create_audit_log(request=request, action='APPROVE', model_name='Expense', object_id=expense.id,
                         object_name=expense.description,
                         changes={'new': {'is_approved': True}, 'metadata': {'notes': notes}})
        return Response({'message': 'Expense approved', 'expense': ExpenseSerializer(expense).data})

    expense_id, description = expense.id, expense.description
    snapshot = model_snapshot(expense, fields=EXPENSE_AUDIT_FIELDS)
    expense.delete()
    reports_changed(request.user.tenant_id)
    create_audit_log(request=request, action='REJECT', model_name='Expense', object_id=expense_id,
                     object_name=description, changes={'old': snapshot, 'metadata': {'notes': notes}})
    return Response({'message': 'Expense rejected and removed'})
