from django.urls import path
from . import views

app_name = 'quaestor'

urlpatterns = [
    # Assets
    path('assets/', views.asset_create, name='asset_create'),
    path('assets/<int:asset_id>/', views.asset_details, name='asset_details'),
    path('assets/<int:asset_id>/status/', views.asset_change_status, name='asset_change_status'),
    path('assets/<int:asset_id>/stock/', views.asset_adjust_stock, name='asset_adjust_stock'),
    path('assets/<int:asset_id>/issuable/', views.asset_issuable, name='asset_issuable'),
    path('assets/<int:asset_id>/issue/', views.asset_issue, name='asset_issue'),
    path('assets/<int:asset_id>/condition/', views.asset_change_condition, name='asset_change_condition'),
    path('assets/<int:asset_id>/transfer-location/', views.asset_transfer_location, name='asset_transfer_location'),
    path('assets/<int:asset_id>/events/', views.asset_events, name='asset_events'),

    # Requests
    path('requests/', views.request_submit, name='request_submit'),
    path('requests/<int:request_id>/', views.request_details, name='request_details'),
    path('requests/<int:request_id>/decide/', views.request_decide, name='request_decide'),
    path('requests/<int:request_id>/issue/', views.request_issue, name='request_issue'),
    path('requests/<int:request_id>/cancel/', views.request_cancel, name='request_cancel'),
    path('requests/<int:request_id>/resubmit/', views.request_resubmit, name='request_resubmit'),

    # Issues
    path('issues/<int:issue_id>/acknowledge/', views.issue_acknowledge, name='issue_acknowledge'),
    path('issues/<int:issue_id>/return/', views.issue_return, name='issue_return'),
]
