from django.urls import path
from . import views

urlpatterns = [
    # PolicyType endpoints
    path('policy-types/', views.policy_type_list_create, name='policy-type-list-create'),
    path('policy-types/active/', views.policy_type_active, name='policy-type-active'),
    path('policy-types/<int:pk>/', views.policy_type_detail, name='policy-type-detail'),

    # Currency endpoints
    path('currencies/', views.currency_list_create, name='currency-list-create'),
    path('currencies/active/', views.currency_active, name='currency-active'),
    path('currencies/default/', views.currency_default, name='currency-default'),
    path('currencies/<int:pk>/', views.currency_detail, name='currency-detail'),

    # PriceList endpoints
    path('price-lists/', views.price_list_list_create, name='price-list-list-create'),
    path('price-lists/active/', views.price_list_active, name='price-list-active'),
    path('price-lists/<int:pk>/', views.price_list_detail, name='price-list-detail'),

    path('pricing/calculate/', views.calculate, name='pricing-calculate'),
]
