from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import Technique
from .services.tree import invalidate_technique_tree


@receiver(post_save, sender=Technique)
@receiver(post_delete, sender=Technique)
def drop_cached_tree(sender, instance: Technique, **kwargs):
    invalidate_technique_tree()
