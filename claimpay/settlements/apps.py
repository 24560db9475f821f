from django.apps import AppConfig


class SettlementsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "claimpay.settlements"
    label = "settlements"
    verbose_name = "Claim settlements"
