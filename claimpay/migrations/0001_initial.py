import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="UserProfile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("role", models.CharField(choices=[("customer", "Customer"), ("insurer", "Insurer"), ("admin", "Admin")], default="customer", max_length=20)),
                ("phone", models.CharField(blank=True, default="", max_length=32)),
                ("user", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="profile", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "claimpay_userprofile",
            },
        ),
        migrations.CreateModel(
            name="Claim",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("claim_number", models.CharField(help_text="Customer-facing claim number (CLM-...)", max_length=64, unique=True)),
                ("status", models.CharField(choices=[("submitted", "Submitted"), ("under_review", "Under Review"), ("approved", "Approved"), ("rejected", "Rejected"), ("settled", "Settled")], db_index=True, default="submitted", max_length=20)),
                ("description", models.TextField(blank=True, default="")),
                ("claim_amount", models.PositiveBigIntegerField(default=0, help_text="Amount claimed, in minor currency units")),
                ("bank_account_number", models.CharField(blank=True, default="", max_length=20)),
                ("bank_code", models.CharField(blank=True, default="", max_length=20)),
                ("bank_account_name", models.CharField(blank=True, default="", max_length=255)),
                ("settlement_amount", models.PositiveBigIntegerField(blank=True, help_text="Amount paid out, in minor currency units", null=True, validators=[django.core.validators.MinValueValidator(1)])),
                ("currency", models.CharField(default="NGN", max_length=3)),
                ("settlement_status", models.CharField(choices=[("pending", "Pending"), ("processing", "Processing"), ("stalled", "Stalled"), ("completed", "Completed"), ("failed", "Failed")], db_index=True, default="pending", max_length=20)),
                ("settlement_status_rank", models.PositiveSmallIntegerField(default=0, help_text="Ordinal of settlement_status; writes only move it forward")),
                ("transfer_code", models.CharField(blank=True, db_index=True, default="", help_text="Processor transfer code (TRF_xxxxx)", max_length=64)),
                ("transfer_reference", models.CharField(blank=True, help_text="Reference of the current transfer attempt", max_length=100, null=True, unique=True)),
                ("recipient_code", models.CharField(blank=True, default="", max_length=64)),
                ("recipient_fingerprint", models.CharField(blank=True, default="", help_text="Hash of the bank details recipient_code was created for", max_length=64)),
                ("retry_count", models.PositiveIntegerField(default=0)),
                ("failure_reason", models.TextField(blank=True, default="")),
                ("settlement_date", models.DateTimeField(blank=True, null=True)),
                ("poll_token", models.UUIDField(blank=True, null=True)),
                ("poll_count", models.PositiveIntegerField(default=0)),
                ("poll_task_id", models.CharField(blank=True, default="", max_length=255)),
                ("last_polled_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("customer", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="claims", to=settings.AUTH_USER_MODEL)),
                ("settlement_initiated_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "db_table": "claimpay_claim",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["settlement_status", "updated_at"], name="claim_settlement_status_idx"),
                    models.Index(fields=["customer", "status"], name="claim_customer_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(settlement_status_rank__lte=3), name="claim_settlement_rank_valid"),
                    models.CheckConstraint(condition=models.Q(("settlement_amount__isnull", True), ("settlement_amount__gt", 0), _connector="OR"), name="claim_settlement_amount_positive"),
                ],
            },
        ),
    ]
