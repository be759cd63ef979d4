from django.urls import path
from . import views

urlpatterns = [
    path('dealers/', views.dealer_list_create, name='dealer-list-create'),
    path('dealers/me/', views.dealer_me, name='dealer-me'),
    path('dealers/<int:pk>/', views.dealer_detail, name='dealer-detail'),
    path('dealers/<int:pk>/activate/', views.dealer_activate, name='dealer-activate'),
    path('dealers/<int:pk>/deactivate/', views.dealer_deactivate, name='dealer-deactivate'),
    path('dealers/<int:pk>/reset-password/', views.dealer_reset_password, name='dealer-reset-password'),
]
