from django.contrib import admin

from .models import Technique
from .services.hierarchy import approve_technique, sync_children


@admin.register(Technique)
class TechniqueAdmin(admin.ModelAdmin):
    list_display = ('slug', 'name_ko', 'name_en', 'primary_role', 'type', 'level', 'order', 'status', 'updated_at')
    search_fields = ('slug', 'name_ko', 'name_en', 'search_text')
    list_filter = ('status', 'type', 'primary_role', 'level')
    readonly_fields = (*Technique.HIERARCHY_FIELDS, 'view_count', 'like_count')
    actions = ['approve_selected', 'resync_children']

    @admin.action(description='Approve selected techniques')
    def approve_selected(self, request, queryset):
        for technique in queryset:
            approve_technique(technique.pk)
        self.message_user(request, f'Approved {queryset.count()} techniques.')

    @admin.action(description='Rebuild children lists for all techniques')
    def resync_children(self, request, queryset):
        result = sync_children()
        self.message_user(request, f'Linked {result.linked} children under {result.parents} parents.')
