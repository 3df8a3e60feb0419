"""
URL routing for session authentication.
"""
from django.urls import path

from apps.rbac.views_auth import AuthCallbackView, LoginView, LogoutView

app_name = 'auth'

urlpatterns = [
    path('login', LoginView.as_view(), name='login'),
    path('auth/callback', AuthCallbackView.as_view(), name='callback'),
    path('auth/logout', LogoutView.as_view(), name='logout'),
]
