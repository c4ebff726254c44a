from django.urls import path
from .views import (
    parent_category_list_create, parent_category_detail,
    category_list_create, category_detail,
    expense_list_create, expense_detail, expense_approval,
)

urlpatterns = [
    # Category endpoints
    path('expense-parent-categories/', parent_category_list_create, name='expense-parent-category-list-create'),
    path('expense-parent-categories/<int:pk>/', parent_category_detail, name='expense-parent-category-detail'),
    path('expense-categories/', category_list_create, name='expense-category-list-create'),
    path('expense-categories/<int:pk>/', category_detail, name='expense-category-detail'),

    # Expense endpoints
    path('expenses/', expense_list_create, name='expense-list-create'),
    path('expenses/<int:pk>/', expense_detail, name='expense-detail'),
    path('expenses/<int:pk>/approval/', expense_approval, name='expense-approval'),
]
