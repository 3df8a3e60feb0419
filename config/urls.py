"""
URL configuration for OpsHub.
"""
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

urlpatterns = [
    path('admin/', admin.site.urls),

    # API Documentation
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('schema/swagger/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # Login, logout and emailed auth links (outside /v1 so the paths stay stable)
    path('', include('apps.rbac.urls_auth')),

    # API v1
    path('v1/', include('apps.core.urls')),
    path('v1/', include('apps.rbac.urls')),
    path('v1/notifications/', include('apps.notifications.urls')),
    path('v1/workflows/', include('apps.workflows.urls')),
    path('v1/projects/', include('apps.projects.urls')),
    path('v1/timesheets/', include('apps.timesheets.urls')),
    path('v1/expenses/', include('apps.expenses.urls')),
    path('v1/invoices/', include('apps.invoices.urls')),
    path('v1/tenant/', include('apps.tenants.urls')),
]
