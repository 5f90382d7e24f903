from django.urls import path
from .views import (
    JobListCreateView, MyJobListView, JobDetailView, JobBidListView,
    BidCreateView, FreelancerBidListView, RecruiterBidListView,
    BidAcceptView, BidRejectView
)

urlpatterns = [
    path('', JobListCreateView.as_view(), name='job_list'),
    path('mine/', MyJobListView.as_view(), name='my_jobs'),
    path('<int:pk>/', JobDetailView.as_view(), name='job_detail'),
    path('<int:pk>/bids/', JobBidListView.as_view(), name='job_bids'),
    path('bids/', BidCreateView.as_view(), name='bid_create'),
    path('bids/freelancer/', FreelancerBidListView.as_view(), name='freelancer_bids'),
    path('bids/recruiter/', RecruiterBidListView.as_view(), name='recruiter_bids'),
    path('bids/<int:pk>/accept/', BidAcceptView.as_view(), name='bid_accept'),
    path('bids/<int:pk>/reject/', BidRejectView.as_view(), name='bid_reject'),
]
