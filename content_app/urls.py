from django.urls import path

from . import views

app_name = 'content_app'

urlpatterns = [
    path('content/delete', views.delete_content, name='delete_content'),
    path('content/files', views.content_files, name='content_files'),
    path('git/<str:repo_name>/push', views.push_objects, name='push_objects'),
]
