from django.urls import path
from .views import (
    ProgressLevelsView, FreelancerActiveProjectsView, FreelancerRecentProjectsView,
    RecruiterActiveProjectsView, ProjectDetailView, ProjectProgressView
)

urlpatterns = [
    path('progress-levels/', ProgressLevelsView.as_view(), name='progress_levels'),
    path('freelancer/active/', FreelancerActiveProjectsView.as_view(), name='freelancer_active_projects'),
    path('freelancer/recent/', FreelancerRecentProjectsView.as_view(), name='freelancer_recent_projects'),
    path('recruiter/active/', RecruiterActiveProjectsView.as_view(), name='recruiter_active_projects'),
    path('<int:pk>/', ProjectDetailView.as_view(), name='project_detail'),
    path('<int:pk>/progress/', ProjectProgressView.as_view(), name='project_progress'),
]
