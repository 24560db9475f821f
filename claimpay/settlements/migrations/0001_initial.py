import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("claimpay", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("reference", models.CharField(max_length=100, unique=True)),
                ("amount", models.PositiveBigIntegerField(help_text="Minor currency units")),
                ("currency", models.CharField(default="NGN", max_length=3)),
                ("payment_type", models.CharField(choices=[("premium", "Premium"), ("deductible", "Deductible")], default="premium", max_length=20)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("completed", "Completed"), ("failed", "Failed")], db_index=True, default="pending", max_length=20)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("channel", models.CharField(blank=True, default="", max_length=40)),
                ("fees", models.PositiveBigIntegerField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("gateway_response", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("claim", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="payments", to="claimpay.claim")),
                ("customer", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="payments", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "claimpay_payment",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="TransferAttempt",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("attempt_number", models.PositiveIntegerField(help_text="1 for the first initiation, retry_count + 1 afterwards")),
                ("reference", models.CharField(max_length=100, unique=True)),
                ("transfer_code", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                ("amount", models.PositiveBigIntegerField()),
                ("currency", models.CharField(default="NGN", max_length=3)),
                ("recipient_code", models.CharField(blank=True, default="", max_length=64)),
                ("account_number", models.CharField(max_length=20)),
                ("bank_code", models.CharField(max_length=20)),
                ("account_name", models.CharField(max_length=255)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("processing", "Processing"), ("stalled", "Stalled"), ("completed", "Completed"), ("failed", "Failed")], default="pending", max_length=20)),
                ("status_rank", models.PositiveSmallIntegerField(default=0)),
                ("failure_reason", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("claim", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="transfer_attempts", to="claimpay.claim")),
                ("initiated_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "claimpay_transfer_attempt",
                "ordering": ["claim", "attempt_number"],
                "constraints": [
                    models.UniqueConstraint(fields=("claim", "attempt_number"), name="transfer_attempt_claim_number_uniq"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentActionLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(choices=[("transfer_initiation", "Transfer Initiation"), ("settlement_retry", "Settlement Retry"), ("webhook_transition", "Webhook Transition"), ("poll_transition", "Poll Transition"), ("status_query", "Status Query"), ("transition_rejected", "Transition Rejected"), ("settlement_stalled", "Settlement Stalled"), ("recipient_created", "Recipient Created"), ("payment_initialized", "Payment Initialized"), ("payment_verified", "Payment Verified"), ("charge_webhook", "Charge Webhook")], db_index=True, max_length=40)),
                ("status", models.CharField(max_length=20)),
                ("details", models.JSONField(blank=True, default=dict)),
                ("reference", models.CharField(blank=True, db_index=True, default="", max_length=100)),
                ("request_id", models.CharField(blank=True, max_length=64, null=True)),
                ("timestamp", models.DateTimeField(auto_now_add=True)),
                ("claim", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="action_log", to="claimpay.claim")),
                ("payment", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="action_log", to="settlements.payment")),
            ],
            options={
                "db_table": "claimpay_payment_action_log",
                "ordering": ["timestamp", "id"],
                "indexes": [
                    models.Index(fields=["claim", "timestamp"], name="action_log_claim_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("type", models.CharField(choices=[("settlement_completed", "Settlement Completed"), ("settlement_failed", "Settlement Failed"), ("settlement_stalled", "Settlement Stalled"), ("payment_success", "Payment Successful"), ("payment_failed", "Payment Failed"), ("claim_settled", "Claim Settled")], max_length=40)),
                ("title", models.CharField(max_length=255)),
                ("message", models.TextField()),
                ("data", models.JSONField(blank=True, default=dict)),
                ("dedupe_key", models.CharField(max_length=255, unique=True)),
                ("is_read", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                ("delivery_attempts", models.PositiveIntegerField(default=0)),
                ("last_error", models.TextField(blank=True, default="")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="notifications", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "claimpay_notification",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user", "is_read"], name="notification_user_read_idx"),
                    models.Index(fields=["delivered_at"], name="notification_pending_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("idempotency_key", models.CharField(max_length=255, unique=True)),
                ("event", models.CharField(db_index=True, max_length=64)),
                ("reference", models.CharField(blank=True, default="", max_length=100)),
                ("payload", models.JSONField(default=dict)),
                ("outcome", models.CharField(blank=True, default="", max_length=40)),
                ("received_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "db_table": "claimpay_webhook_event",
                "ordering": ["-received_at"],
            },
        ),
    ]
