from django.urls import path
from .views import AuthLoginView, AuthSignupView, UserProfileView

urlpatterns = [
    # Authentication
    path('auth/signup/', AuthSignupView.as_view(), name='auth_signup'),
    path('auth/login/', AuthLoginView.as_view(), name='auth_login'),

    # Profile
    path('me/', UserProfileView.as_view(), name='user_profile'),
]
