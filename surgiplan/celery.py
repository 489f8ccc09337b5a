import os
from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "surgiplan.settings")

app = Celery("surgiplan")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
