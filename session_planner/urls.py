"""
URL configuration for session_planner project.
"""
from django.contrib import admin
from django.urls import path, include

from conference.views import HealthCheckView

urlpatterns = [
    path('admin/', admin.site.urls),
    path('health/', HealthCheckView.as_view(), name='health'),
    path('api/', include('conference.urls')),
]
