from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .views import (
    ForgotPasswordView,
    LoginView,
    MeView,
    RegisterView,
    ResetPasswordView,
    UserListView,
    VerifyResetCodeView,
)

urlpatterns = [
    path("register/", RegisterView.as_view(), name="auth-register"),
    path("login/", LoginView.as_view(), name="auth-login"),
    path("token/", TokenObtainPairView.as_view(), name="token-obtain-pair"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("me/", MeView.as_view(), name="auth-me"),
    path("users/", UserListView.as_view(), name="auth-users-list"),
    path("forgot-password/", ForgotPasswordView.as_view(), name="auth-forgot-password"),
    path("verify-code/", VerifyResetCodeView.as_view(), name="auth-verify-code"),
    path("reset-password/", ResetPasswordView.as_view(), name="auth-reset-password"),
]
