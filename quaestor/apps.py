from django.apps import AppConfig


class QuaestorConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "quaestor"
    verbose_name = "Asset lifecycle"
