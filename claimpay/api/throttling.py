"""
Throttle classes for API rate limiting.
"""

from rest_framework.throttling import AnonRateThrottle, UserRateThrottle


class SettlementWriteThrottle(UserRateThrottle):
    """
    Throttle for operations that move money: transfers, recipients and
    retries. Kept well below the general user rate.
    """

    scope = "settlement_write"


class LookupThrottle(UserRateThrottle):
    """
    Throttle for processor lookups (bank list, account resolution) that
    go straight to the rate-limited processor API.
    """

    scope = "processor_lookup"


class AuthenticationThrottle(AnonRateThrottle):
    """
    Strict throttle for token endpoints to slow down password guessing.
    """

    scope = "authentication"
