from django.urls import path
from . import views

urlpatterns = [
    path('support/tickets/', views.ticket_list_create, name='ticket-list-create'),
    path('support/tickets/<int:pk>/', views.ticket_detail, name='ticket-detail'),
    path('support/tickets/<int:pk>/replies/', views.ticket_replies, name='ticket-replies'),
    path('support/tickets/<int:pk>/close/', views.ticket_close, name='ticket-close'),
    path('support/tickets/<int:pk>/status/', views.ticket_status, name='ticket-status'),
]
