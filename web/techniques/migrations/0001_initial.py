import uuid

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Technique',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('slug', models.SlugField(allow_unicode=True, max_length=120, unique=True)),
                ('name_ko', models.CharField(max_length=255)),
                ('name_en', models.CharField(blank=True, max_length=255)),
                ('aka_ko', models.JSONField(blank=True, default=list)),
                ('aka_en', models.JSONField(blank=True, default=list)),
                ('description_ko', models.TextField()),
                ('description_en', models.TextField(blank=True)),
                ('type', models.CharField(choices=[('gi', 'Gi'), ('nogi', 'No-Gi'), ('both', 'Both')], default='both', max_length=8)),
                (
                    'primary_role',
                    models.CharField(
                        choices=[
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
                        ],
                        max_length=20,
                    ),
                ),
                ('role_tags', models.JSONField(blank=True, default=list)),
                (
                    'difficulty',
                    models.PositiveSmallIntegerField(
                        default=1,
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(10),
                        ],
                    ),
                ),
                ('order', models.IntegerField(default=0)),
                ('is_core_position', models.BooleanField(default=False)),
                ('position_type', models.CharField(blank=True, choices=[('top', 'Top'), ('bottom', 'Bottom'), ('neutral', 'Neutral')], max_length=10)),
                ('children_ids', models.JSONField(blank=True, default=list)),
                ('level', models.PositiveIntegerField(default=1)),
                ('path_slugs', models.JSONField(blank=True, default=list)),
                ('canonical_path', models.CharField(blank=True, db_index=True, max_length=1024)),
                ('search_text', models.TextField(blank=True, editable=False)),
                ('sweeps_from_here', models.JSONField(blank=True, default=list)),
                ('submissions_from_here', models.JSONField(blank=True, default=list)),
                ('escapes_from_here', models.JSONField(blank=True, default=list)),
                ('thumbnail_url', models.URLField(blank=True, max_length=500)),
                ('videos', models.JSONField(blank=True, default=list)),
                ('images', models.JSONField(blank=True, default=list)),
                (
                    'status',
                    models.CharField(
                        choices=[
                            ('draft', 'Draft'),
                            ('pending', 'Pending review'),
                            ('published', 'Published'),
                            ('archived', 'Archived'),
                        ],
                        default='pending',
                        max_length=10,
                    ),
                ),
                ('view_count', models.PositiveIntegerField(default=0)),
                ('like_count', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                (
                    'parent',
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name='+',
                        to='techniques.technique',
                    ),
                ),
            ],
            options={
                'ordering': ['order', 'name_ko'],
                'indexes': [
                    models.Index(fields=['status'], name='technique_status_idx'),
                    models.Index(fields=['level', 'order'], name='technique_level_order_idx'),
                    models.Index(fields=['primary_role', 'type', 'difficulty'], name='technique_role_type_idx'),
                ],
            },
        ),
    ]
