from django.apps import AppConfig


class ConfigmgrConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "configmgr"
    verbose_name = "Runtime settings"
