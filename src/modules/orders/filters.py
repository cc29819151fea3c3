import django_filters

from modules.orders.models import Order


class OrderFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(field_name="status", lookup_expr="iexact")
    payment_status = django_filters.CharFilter(
        field_name="payment_status", lookup_expr="iexact"
    )
    user = django_filters.NumberFilter(field_name="user_id")
    order_number = django_filters.CharFilter(
        field_name="order_number", lookup_expr="icontains"
    )
    start_date = django_filters.DateFilter(
        field_name="created_at", lookup_expr="date__gte"
    )
    end_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")
    min_total = django_filters.NumberFilter(
        field_name="pricing__total", lookup_expr="gte"
    )
    max_total = django_filters.NumberFilter(
        field_name="pricing__total", lookup_expr="lte"
    )

    class Meta:
        model = Order
        fields = [
            "status",
            "payment_status",
            "user",
            "order_number",
            "start_date",
            "end_date",
            "min_total",
            "max_total",
        ]
