from django.urls import path
from .views import (
    InitializeMilestonesView, PayableAmountView, CreatePaymentOrderView,
    ProjectPaymentsView, ConfirmPaymentView
)

urlpatterns = [
    path('initialize-milestones/<int:pk>/', InitializeMilestonesView.as_view(), name='initialize_milestones'),
    path('project/<int:pk>/payable-amount/', PayableAmountView.as_view(), name='payable_amount'),
    path('create-order/', CreatePaymentOrderView.as_view(), name='create_payment_order'),
    path('project/<int:pk>/', ProjectPaymentsView.as_view(), name='project_payments'),
    path('<int:pk>/confirm/', ConfirmPaymentView.as_view(), name='confirm_payment'),
]
