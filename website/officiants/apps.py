from django.apps import AppConfig


class OfficiantsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'officiants'
