from django.contrib import admin
from django.utils.html import format_html

from .models import Claim, UserProfile
from claimpay.settlements.state import SettlementStatus


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "role", "phone")
    list_filter = ("role",)
    search_fields = ("user__username", "user__email")


@admin.register(Claim)
class ClaimAdmin(admin.ModelAdmin):
    list_display = (
        "claim_number",
        "customer",
        "status",
        "settlement_status_display",
        "settlement_amount",
        "retry_count",
        "settlement_date",
        "updated_at",
    )
    list_filter = ("status", "settlement_status", "currency")
    search_fields = ("claim_number", "transfer_reference", "transfer_code", "customer__username")
    date_hierarchy = "created_at"

    # Settlement columns only move through the settlement service
    readonly_fields = (
        "settlement_status",
        "settlement_status_rank",
        "transfer_code",
        "transfer_reference",
        "recipient_code",
        "recipient_fingerprint",
        "retry_count",
        "failure_reason",
        "settlement_date",
        "settlement_initiated_by",
        "poll_token",
        "poll_count",
        "poll_task_id",
        "last_polled_at",
        "created_at",
        "updated_at",
    )

    def settlement_status_display(self, obj):
        colors = {
            SettlementStatus.PENDING: "gray",
            SettlementStatus.PROCESSING: "orange",
            SettlementStatus.STALLED: "purple",
            SettlementStatus.COMPLETED: "green",
            SettlementStatus.FAILED: "red",
        }
        return format_html(
            '<span style="color: {}; font-weight: bold;">{}</span>',
            colors.get(obj.settlement_status, "gray"),
            obj.get_settlement_status_display(),
        )

    settlement_status_display.short_description = "Settlement"
