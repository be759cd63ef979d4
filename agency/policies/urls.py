from django.urls import path
from . import views

urlpatterns = [
    # PolicySeries endpoints
    path('policy-series/', views.series_list_create, name='policy-series-list-create'),
    path('policy-series/<int:pk>/', views.series_detail, name='policy-series-detail'),
    path('policy-series/<int:pk>/next-number/', views.series_next_number, name='policy-series-next-number'),
    path('policy-series/<int:pk>/full-number/', views.series_full_number, name='policy-series-full-number'),
    path('policy-series/<int:pk>/statistics/', views.series_statistics, name='policy-series-statistics'),
    path('policy-series/<int:pk>/assign-dealer/', views.series_assign_dealer, name='policy-series-assign-dealer'),
    path('dealers/<int:dealer_id>/policy-series/', views.dealer_policy_series, name='dealer-policy-series'),
    path('dealers/<int:dealer_id>/active-series/', views.dealer_active_series, name='dealer-active-series'),

    # Policy endpoints
    path('policies/', views.policy_list_create, name='policy-list-create'),
    path('policies/batch/', views.policy_batch_create, name='policy-batch-create'),
    path('policies/<int:pk>/', views.policy_detail, name='policy-detail'),
    path('policies/<int:pk>/submit/', views.policy_submit, name='policy-submit'),
    path('policies/<int:pk>/approve/', views.policy_approve, name='policy-approve'),
    path('policies/<int:pk>/reject/', views.policy_reject, name='policy-reject'),
    path('policies/<int:pk>/cancel/', views.policy_cancel, name='policy-cancel'),
]
