from django.contrib import admin
from .models import Milestone, Payment

@admin.register(Milestone)
class MilestoneAdmin(admin.ModelAdmin):
    list_display = ('project', 'level', 'status', 'percentage', 'amount', 'is_completed', 'payment_status')
    list_filter = ('payment_status', 'is_completed')
    search_fields = ('project__title',)

@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('gateway_order_id', 'project', 'milestone', 'amount', 'currency', 'transaction_status', 'created_at')
    list_filter = ('transaction_status', 'currency')
    search_fields = ('gateway_order_id', 'gateway_payment_id', 'project__title')
    readonly_fields = ('gateway_order_id', 'gateway_payment_id', 'amount')
