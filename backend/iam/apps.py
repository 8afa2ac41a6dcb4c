from django.apps import AppConfig


class IamConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'iam'
    verbose_name = 'Identity & Access'

    def ready(self):
        # Import signal handlers
        import iam.signals  # noqa: F401
