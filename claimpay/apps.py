from django.apps import AppConfig


class ClaimpayConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "claimpay"
    verbose_name = "ClaimPay"
