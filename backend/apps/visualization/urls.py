from django.urls import path
from . import views
from . import plot_views

urlpatterns = [
    path('map/<slug:slug>/', views.product_map, name='product_map'),
    path('chart/<slug:slug>/', plot_views.product_chart, name='product_chart'),
]
