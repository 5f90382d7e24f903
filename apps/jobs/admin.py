from django.contrib import admin
from .models import Job, Bid

@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ('title', 'company', 'posted_by', 'status', 'bidding_deadline', 'allocated_to', 'progress_level')
    list_filter = ('status', 'type', 'project_status')
    search_fields = ('title', 'company', 'posted_by__username')
    readonly_fields = ('allocated_to', 'allocated_at', 'accepted_bid', 'closed_at')

@admin.register(Bid)
class BidAdmin(admin.ModelAdmin):
    list_display = ('job', 'freelancer', 'bid_amount', 'status', 'created_at')
    list_filter = ('status',)
    search_fields = ('job__title', 'freelancer__username')
