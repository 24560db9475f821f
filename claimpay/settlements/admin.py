from django.contrib import admin

from .models import Notification, Payment, PaymentActionLog, TransferAttempt, WebhookEvent


@admin.register(TransferAttempt)
class TransferAttemptAdmin(admin.ModelAdmin):
    list_display = ("reference", "claim", "attempt_number", "status", "amount", "created_at")
    list_filter = ("status", "currency")
    search_fields = ("reference", "transfer_code", "claim__claim_number")
    date_hierarchy = "created_at"
    readonly_fields = [f.name for f in TransferAttempt._meta.fields]


@admin.register(PaymentActionLog)
class PaymentActionLogAdmin(admin.ModelAdmin):
    """Read-only view of the action log; entries are append-only."""

    list_display = ("timestamp", "action", "status", "reference", "claim", "request_id")
    list_filter = ("action", "status")
    search_fields = ("reference", "request_id", "claim__claim_number")
    date_hierarchy = "timestamp"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "type", "title", "is_read", "delivered_at", "delivery_attempts")
    list_filter = ("type", "is_read")
    search_fields = ("user__username", "dedupe_key")


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    list_display = ("received_at", "event", "reference", "outcome")
    list_filter = ("event", "outcome")
    search_fields = ("reference", "idempotency_key")
    readonly_fields = ("idempotency_key", "event", "reference", "payload", "outcome", "received_at")


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("reference", "customer", "claim", "payment_type", "status", "amount", "paid_at")
    list_filter = ("status", "payment_type", "channel")
    search_fields = ("reference", "email", "customer__username")
    date_hierarchy = "created_at"
