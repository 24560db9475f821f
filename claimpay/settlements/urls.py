"""
Settlement API routes, mounted under /api/v1/.
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    BankListView,
    ClaimSettlementViewSet,
    CreateRecipientView,
    InitializePaymentView,
    InitiateTransferView,
    NotificationViewSet,
    ResolveAccountView,
    TransferStatusView,
    VerifyPaymentView,
)

router = DefaultRouter()
router.register(r"settlements", ClaimSettlementViewSet, basename="settlement")
router.register(r"notifications", NotificationViewSet, basename="notification")

urlpatterns = [
    path("transfers/", InitiateTransferView.as_view(), name="transfer-initiate"),
    path(
        "transfers/<str:transfer_code>/",
        TransferStatusView.as_view(),
        name="transfer-status",
    ),
    path("recipients/", CreateRecipientView.as_view(), name="recipient-create"),
    path("banks/", BankListView.as_view(), name="bank-list"),
    path("accounts/resolve/", ResolveAccountView.as_view(), name="account-resolve"),
    path(
        "payments/initialize/",
        InitializePaymentView.as_view(),
        name="payment-initialize",
    ),
    path("payments/verify/", VerifyPaymentView.as_view(), name="payment-verify"),
    path("", include(router.urls)),
]
