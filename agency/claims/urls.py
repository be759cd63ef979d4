from django.urls import path
from . import views

urlpatterns = [
    path('claims/', views.claim_list_create, name='claim-list-create'),
    path('claims/<int:pk>/', views.claim_detail, name='claim-detail'),
    path('claims/<int:pk>/attachments/', views.claim_attachments, name='claim-attachments'),
    path('claims/<int:pk>/notes/', views.claim_notes, name='claim-notes'),
    path('claims/<int:pk>/status/', views.claim_status, name='claim-status'),
]
