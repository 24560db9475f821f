"""
Filter classes for the settlement history endpoint.
"""

from django_filters import rest_framework as filters

from claimpay.models import Claim
from claimpay.settlements.state import SettlementStatus


class SettlementFilter(filters.FilterSet):
    """Settlement history by status, customer and date range."""

    settlement_status = filters.MultipleChoiceFilter(choices=SettlementStatus.choices)
    customer = filters.NumberFilter(field_name="customer_id", lookup_expr="exact")

    # Date range on the last settlement activity
    from_date = filters.DateFilter(field_name="updated_at", lookup_expr="date__gte")
    to_date = filters.DateFilter(field_name="updated_at", lookup_expr="date__lte")

    claim_number = filters.CharFilter(field_name="claim_number", lookup_expr="icontains")

    class Meta:
        model = Claim
        fields = ["settlement_status", "customer", "from_date", "to_date", "claim_number"]
