from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'lpg_backend.core'

    def ready(self):
        """Import signals when app is ready"""
        import lpg_backend.core.cache_signals  # noqa: F401  # Cache invalidation signals
