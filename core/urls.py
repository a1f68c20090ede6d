# core/urls.py
from django.urls import path
from . import views

urlpatterns = [
    path('', views.overview, name='overview'),
    path('state/', views.update_state, name='update_state'),
    path('transactions/', views.transaction_list, name='transaction_list'),
    path('transactions/by-category/', views.category_transactions, name='category_transactions'),
    path('transactions/<int:pk>/delete/', views.transaction_delete, name='transaction_delete'),
    path('days/<str:day>/', views.day_detail, name='day_detail'),
    path('dashboards/', views.dashboard_list, name='dashboard_list'),
    path('dashboards/<int:pk>/rename/', views.dashboard_rename, name='dashboard_rename'),
    path('dashboards/<int:pk>/delete/', views.dashboard_delete, name='dashboard_delete'),
    path('categories/', views.category_list, name='category_list'),
    path('categories/<int:pk>/rename/', views.category_rename, name='category_rename'),
    path('categories/<int:pk>/delete/', views.category_delete, name='category_delete'),
    path('profile/', views.profile, name='profile'),
    path('logout/', views.sign_out, name='sign_out'),
    path('export/report/', views.export_report, name='export_report'),
    path('export/<str:transaction_type>/', views.export_csv, name='export_csv'),
    path('import/csv/', views.import_csv, name='import_csv'),
]
