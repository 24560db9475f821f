"""
ClaimPay URL configuration.
"""

from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from claimpay.api.views import (
    HealthCheckView,
    ThrottledTokenObtainPairView,
    ThrottledTokenRefreshView,
)
from claimpay.settlements.views import paystack_webhook

urlpatterns = [
    path("admin/", admin.site.urls),
    # Processor webhooks (unauthenticated - signature validation in view)
    path("webhooks/paystack/", paystack_webhook, name="paystack-webhook"),
    path("api/v1/health/", HealthCheckView.as_view(), name="api-health"),
    path(
        "api/v1/auth/token/",
        ThrottledTokenObtainPairView.as_view(),
        name="token-obtain-pair",
    ),
    path(
        "api/v1/auth/token/refresh/",
        ThrottledTokenRefreshView.as_view(),
        name="token-refresh",
    ),
    path("api/v1/schema/", SpectacularAPIView.as_view(), name="schema"),
    path(
        "api/v1/docs/",
        SpectacularSwaggerView.as_view(url_name="schema"),
        name="swagger-ui",
    ),
    path("api/v1/", include("claimpay.settlements.urls")),
]
