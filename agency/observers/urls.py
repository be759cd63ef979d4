from django.urls import path
from . import views

urlpatterns = [
    # Administration
    path('observers/', views.observer_list_create, name='observer-list-create'),
    path('observers/<int:pk>/', views.observer_detail, name='observer-detail'),
    path('observers/<int:pk>/activate/', views.observer_activate, name='observer-activate'),
    path('observers/<int:pk>/deactivate/', views.observer_deactivate, name='observer-deactivate'),
    path('observers/<int:pk>/reset-password/', views.observer_reset_password, name='observer-reset-password'),
    path('observers/<int:pk>/dealers/', views.observer_dealers, name='observer-dealers'),
    path('observers/<int:pk>/dealers/<int:dealer_id>/', views.observer_dealer_remove, name='observer-dealer-remove'),
    path('tasks/', views.task_list_create, name='task-list-create'),
    path('tasks/<int:pk>/', views.task_detail, name='task-detail'),

    # Observer portal
    path('observer/dashboard/', views.observer_dashboard, name='observer-dashboard'),
    path('observer/dealers/', views.observer_dealer_list, name='observer-dealer-list'),
    path('observer/dealers/<int:pk>/', views.observer_dealer_detail, name='observer-dealer-detail'),
    path('observer/tasks/', views.observer_task_list, name='observer-task-list'),
    path('observer/tasks/<int:pk>/status/', views.observer_task_status, name='observer-task-status'),
    path('observer/activity-logs/', views.observer_activity_logs, name='observer-activity-logs'),
    path('observer/reports/', views.observer_reports, name='observer-reports'),
]
