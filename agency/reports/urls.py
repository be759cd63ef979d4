from django.urls import path
from . import views

urlpatterns = [
    path('dashboard/admin/', views.admin_dashboard, name='dashboard-admin'),
    path('dashboard/dealer/', views.dealer_dashboard, name='dashboard-dealer'),
    path('dashboard/charts/', views.dashboard_charts, name='dashboard-charts'),
    path('reports/policies/', views.policy_report, name='report-policies'),
    path('reports/financial/', views.financial_report, name='report-financial'),
    path('reports/dealer-performance/', views.dealer_performance_report, name='report-dealer-performance'),
    path('reports/customer/', views.customer_report, name='report-customer'),
    path('reports/export/', views.report_export, name='report-export'),
    path('dealers/<int:dealer_id>/performance/', views.dealer_performance, name='dealer-performance'),
]
