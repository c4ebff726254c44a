"""Budget and summary figures for expenses"""
from decimal import Decimal

from django.db.models import Sum, Count, Q

from lpg_backend.core.utils import today
from .models import Expense

ZERO = Decimal('0.00')


def month_start(day=None):
    return (day or today()).replace(day=1)


def category_spending(queryset):
    """Annotate categories with expense_count, total_spent and current_month_spent"""
    start = month_start()
    return queryset.annotate(
        expense_count=Count('expenses'),
        total_spent=Sum('expenses__amount', filter=Q(expenses__is_approved=True)),
        current_month_spent=Sum('expenses__amount',
                                filter=Q(expenses__is_approved=True, expenses__expense_date__gte=start)),
    )


def budget_context(expense):
    """
    How this expense sits against its category's monthly budget.
    Every figure is None when the category has no budget.
    """
    budget = expense.category.budget
    if budget is None:
        return {
            'budget': None,
            'current_spending': None,
            'projected_spending': None,
            'remaining_budget': None,
            'is_over_budget': None,
            'budget_utilization': None,
        }

    start = month_start()
    current = Expense.objects.filter(
        tenant=expense.tenant,
        category=expense.category,
        is_approved=True,
        expense_date__year=start.year,
        expense_date__month=start.month,
    )
    current = current.exclude(pk=expense.pk).aggregate(total=Sum('amount'))['total'] or ZERO
    projected = current + expense.amount
    utilization = round(projected / budget * 100, 2) if budget > 0 else None
    return {
        'budget': budget,
        'current_spending': current,
        'projected_spending': projected,
        'remaining_budget': max(ZERO, budget - projected),
        'is_over_budget': projected > budget,
        'budget_utilization': utilization,
    }


def expense_summary(queryset):
    totals = queryset.aggregate(
        total_count=Count('id'),
        total_amount=Sum('amount'),
        pending_count=Count('id', filter=Q(is_approved=False)),
        pending_amount=Sum('amount', filter=Q(is_approved=False)),
        approved_count=Count('id', filter=Q(is_approved=True)),
        approved_amount=Sum('amount', filter=Q(is_approved=True)),
    )
    for key in ('total_amount', 'pending_amount', 'approved_amount'):
        totals[key] = totals[key] or ZERO
    return totals
