from django.urls import path
from . import views

urlpatterns = [
    # Public JSON API
    path('api/search/', views.search_officiants, name='search_officiants'),
    path('api/officiants/<int:pk>/', views.officiant_detail, name='officiant_detail'),
    path('api/municipalities/', views.municipalities, name='municipalities'),
    path('api/affiliations/', views.affiliations, name='affiliations'),

    # Admin API
    path('api/admin/sync/', views.admin_sync, name='admin_sync'),
]
