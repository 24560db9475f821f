"""
Account and service endpoints shared by the whole API.
"""

from django.utils import timezone
from drf_spectacular.utils import extend_schema
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import (
    TokenObtainPairView as BaseTokenObtainPairView,
    TokenRefreshView as BaseTokenRefreshView,
)

from claimpay.api.throttling import AuthenticationThrottle


class HealthCheckView(APIView):
    """
    API health check endpoint (no auth required).
    """

    permission_classes = []
    authentication_classes = []

    @extend_schema(responses={200: dict}, description="Check API health status")
    def get(self, request):
        return Response(
            {
                "status": "healthy",
                "version": "1.0.0",
                "timestamp": timezone.now().isoformat(),
            }
        )


class ThrottledTokenObtainPairView(BaseTokenObtainPairView):
    """JWT login, rate limited per client address."""

    throttle_classes = [AuthenticationThrottle]


class ThrottledTokenRefreshView(BaseTokenRefreshView):
    throttle_classes = [AuthenticationThrottle]
