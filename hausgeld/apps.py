from django.apps import AppConfig


class HausgeldConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "hausgeld"
    verbose_name = "Hausgeldabrechnung"
