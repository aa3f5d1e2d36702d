from django.apps import AppConfig


class RollcallConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "rollcall"

    def ready(self) -> None:
        from rollcall import signals  # noqa: F401
