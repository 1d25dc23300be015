from django.apps import AppConfig


class CirclesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'circles'
    verbose_name = 'Savings Circles'

    def ready(self):
        from .rate_limit import RateLimiter
        self.rate_limiter = RateLimiter()

        import circles.signals
