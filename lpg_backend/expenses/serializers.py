from rest_framework import serializers
from lpg_backend.core.serializers import TenantModelSerializer
from .models import ExpenseParentCategory, ExpenseCategory, Expense


class ExpenseParentCategorySerializer(TenantModelSerializer):
    category_count = serializers.IntegerField(read_only=True, required=False)

    tenant_unique_together = [('name',)]

    class Meta:
        model = ExpenseParentCategory
        fields = ['id', 'name', 'description', 'is_active', 'category_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class ExpenseCategorySerializer(TenantModelSerializer):
    parent_name = serializers.CharField(source='parent.name', read_only=True, allow_null=True)
    expense_count = serializers.IntegerField(read_only=True, required=False)
    total_spent = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True, required=False)
    current_month_spent = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True, required=False)

    tenant_unique_together = [('name',)]
    tenant_related_fields = ['parent']

    class Meta:
        model = ExpenseCategory
        fields = ['id', 'name', 'description', 'budget', 'is_active', 'parent', 'parent_name',
                  'expense_count', 'total_spent', 'current_month_spent', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_budget(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError("Budget cannot be negative.")
        return value


class ExpenseSerializer(TenantModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True)
    user_name = serializers.CharField(source='user.name', read_only=True, allow_null=True)
    approved_by_name = serializers.CharField(source='approved_by.name', read_only=True, allow_null=True)

    tenant_related_fields = ['category']

    class Meta:
        model = Expense
        fields = ['id', 'category', 'category_name', 'user', 'user_name', 'amount', 'description',
                  'particulars', 'expense_date', 'receipt_url', 'notes', 'is_approved', 'approved_by',
                  'approved_by_name', 'approved_at', 'created_at', 'updated_at']
        read_only_fields = ['user', 'is_approved', 'approved_by', 'approved_at', 'created_at', 'updated_at']


class ExpenseApprovalSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['approve', 'reject'])
    notes = serializers.CharField(required=False, allow_blank=True, default='')
