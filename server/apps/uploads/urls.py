"""URL mapping of the chunk upload API."""

from django.urls import path

from server.apps.uploads import views

app_name = 'uploads'

urlpatterns = [
    path('chunks/init', views.init_upload_view, name='init'),
    path('chunks/upload', views.upload_chunk_view, name='upload'),
    path('chunks/check', views.check_chunk_view, name='check'),
    path('chunks/list', views.list_chunks_view, name='list'),
    path('chunks/merge', views.merge_chunks_view, name='merge'),
    path('chunks/cancel', views.cancel_upload_view, name='cancel'),
]
