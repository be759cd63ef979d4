from django.urls import path
from . import views

urlpatterns = [
    # Customer endpoints
    path('customers/', views.customer_list_create, name='customer-list-create'),
    path('customers/<int:pk>/', views.customer_detail, name='customer-detail'),
    path('customers/<int:pk>/vehicles/', views.customer_vehicles, name='customer-vehicles'),
    path('dealers/<int:dealer_id>/customers/', views.dealer_customers, name='dealer-customers'),

    # Vehicle endpoints
    path('vehicles/', views.vehicle_list_create, name='vehicle-list-create'),
    path('vehicles/brands/', views.vehicle_brands, name='vehicle-brands'),
    path('vehicles/models/', views.vehicle_models, name='vehicle-models'),
    path('vehicles/<int:pk>/', views.vehicle_detail, name='vehicle-detail'),
    path('vehicles/<int:pk>/documents/', views.vehicle_documents, name='vehicle-documents'),
]
