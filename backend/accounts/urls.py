from django.urls import path

from .views import CheckAuth, Login, Signup

urlpatterns = [
    path("signup", Signup.as_view(), name="signup"),
    path("login", Login.as_view(), name="login"),
    path("check", CheckAuth.as_view(), name="check-auth"),
]
