from __future__ import annotations

import uuid

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone


class TechniqueQuerySet(models.QuerySet):
    def published(self) -> "TechniqueQuerySet":
        return self.filter(status=Technique.STATUS_PUBLISHED)

    def roots(self) -> "TechniqueQuerySet":
        return self.filter(parent__isnull=True)

    def under_path(self, prefix: str) -> "TechniqueQuerySet":
        prefix = prefix.strip('/')
        return self.filter(canonical_path__startswith=f'{prefix}/')

    def sibling_order(self) -> "TechniqueQuerySet":
        return self.order_by('order', 'name_ko')


class Technique(models.Model):
    TYPE_GI = 'gi'
    TYPE_NOGI = 'nogi'
    TYPE_BOTH = 'both'
    TYPE_CHOICES = [
        (TYPE_GI, 'Gi'),
        (TYPE_NOGI, 'No-Gi'),
        (TYPE_BOTH, 'Both'),
    ]

    ROLE_CHOICES = [
        ('drill', 'Drill'),
        ('position', 'Position'),
        ('guard', 'Guard'),
        ('guard_recovery', 'Guard recovery'),
        ('guard_pass', 'Guard pass'),
        ('sweep', 'Sweep'),
        ('submission', 'Submission'),
        ('escape', 'Escape'),
        ('transition', 'Transition'),
        ('leg_entry', 'Leg entry'),
        ('control_hold', 'Control hold'),
        ('grip', 'Grip'),
        ('takedown', 'Takedown'),
    ]

    POSITION_TYPE_CHOICES = [
        ('top', 'Top'),
        ('bottom', 'Bottom'),
        ('neutral', 'Neutral'),
    ]

    STATUS_DRAFT = 'draft'
    STATUS_PENDING = 'pending'
    STATUS_PUBLISHED = 'published'
    STATUS_ARCHIVED = 'archived'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_PENDING, 'Pending review'),
        (STATUS_PUBLISHED, 'Published'),
        (STATUS_ARCHIVED, 'Archived'),
    ]
    STATUS_ALIASES = {'approved': STATUS_PUBLISHED}

    HIERARCHY_FIELDS = ('parent', 'level', 'path_slugs', 'children_ids', 'canonical_path')

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    slug = models.SlugField(max_length=120, unique=True, allow_unicode=True)

    name_ko = models.CharField(max_length=255)
    name_en = models.CharField(max_length=255, blank=True)
    aka_ko = models.JSONField(default=list, blank=True)
    aka_en = models.JSONField(default=list, blank=True)
    description_ko = models.TextField()
    description_en = models.TextField(blank=True)

    type = models.CharField(max_length=8, choices=TYPE_CHOICES, default=TYPE_BOTH)
    primary_role = models.CharField(max_length=20, choices=ROLE_CHOICES)
    role_tags = models.JSONField(default=list, blank=True)
    difficulty = models.PositiveSmallIntegerField(
        default=1,
        validators=[MinValueValidator(1), MaxValueValidator(10)],
    )
    order = models.IntegerField(default=0)

    is_core_position = models.BooleanField(default=False)
    position_type = models.CharField(max_length=10, choices=POSITION_TYPE_CHOICES, blank=True)

    parent = models.ForeignKey(
        'self',
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
    )
    children_ids = models.JSONField(default=list, blank=True)
    level = models.PositiveIntegerField(default=1)
    path_slugs = models.JSONField(default=list, blank=True)
    canonical_path = models.CharField(max_length=1024, blank=True, db_index=True)
    search_text = models.TextField(blank=True, editable=False)

    sweeps_from_here = models.JSONField(default=list, blank=True)
    submissions_from_here = models.JSONField(default=list, blank=True)
    escapes_from_here = models.JSONField(default=list, blank=True)

    thumbnail_url = models.URLField(max_length=500, blank=True)
    videos = models.JSONField(default=list, blank=True)
    images = models.JSONField(default=list, blank=True)

    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING)
    view_count = models.PositiveIntegerField(default=0)
    like_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TechniqueQuerySet.as_manager()

    class Meta:
        ordering = ['order', 'name_ko']
        indexes = [
            models.Index(fields=['status'], name='technique_status_idx'),
            models.Index(fields=['level', 'order'], name='technique_level_order_idx'),
            models.Index(fields=['primary_role', 'type', 'difficulty'], name='technique_role_type_idx'),
        ]

    def __str__(self) -> str:
        return self.canonical_path or self.slug

    @property
    def display_name(self) -> str:
        return self.name_ko or self.name_en or self.slug

    def build_canonical_path(self) -> str:
        return '/'.join([*(self.path_slugs or []), self.slug])

    def build_search_text(self) -> str:
        parts = [
            self.name_ko,
            self.name_en,
            *(self.aka_ko or []),
            *(self.aka_en or []),
            self.description_ko,
            self.description_en,
        ]
        return '\n'.join(str(part) for part in parts if part).lower()

    def save(self, *args, **kwargs):
        self.canonical_path = self.build_canonical_path()
        self.search_text = self.build_search_text()
        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            extra = {'updated_at'}
            if 'path_slugs' in update_fields:
                extra.add('canonical_path')
            if {'name_ko', 'name_en', 'aka_ko', 'aka_en', 'description_ko', 'description_en'} & set(update_fields):
                extra.add('search_text')
            kwargs['update_fields'] = list(set(update_fields) | extra)
        super().save(*args, **kwargs)
