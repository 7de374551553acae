from django.urls import path

from . import views

app_name = 'api'

urlpatterns = [
    path('techniques/', views.techniques_collection, name='techniques-collection'),
    path('techniques/reorder', views.techniques_reorder, name='techniques-reorder'),
    path('techniques/tree', views.technique_tree, name='techniques-tree'),
    path('techniques/by-path/<path:path>', views.technique_by_path, name='technique-by-path'),
    path('techniques/<uuid:technique_id>', views.technique_detail, name='technique-detail'),
    path('admin/sync-children', views.admin_sync_children, name='admin-sync-children'),
    path('admin/approve', views.admin_approve, name='admin-approve'),
    path('admin/reject', views.admin_reject, name='admin-reject'),
]
