from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import AvailabilityTemplate
from .services.availability import invalidate_template_cache


@receiver(post_save, sender=AvailabilityTemplate)
@receiver(post_delete, sender=AvailabilityTemplate)
def availability_template_changed(sender, instance, **kwargs):
    invalidate_template_cache(instance.resource_id, instance.location_id)
