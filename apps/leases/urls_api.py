from django.urls import path

from . import views_api

app_name = "leases_api"

urlpatterns = [
    path("leases/", views_api.lease_create, name="lease_create"),
    path("leases/generate-monthly/", views_api.generate_monthly, name="generate_monthly"),
    path("leases/mark-overdue/", views_api.mark_overdue, name="mark_overdue"),
    path("leases/<uuid:pk>/", views_api.lease_detail, name="lease_detail"),
    path("leases/<uuid:pk>/signing-message/", views_api.lease_signing_message, name="signing_message"),
    path("leases/<uuid:pk>/sign/", views_api.lease_sign, name="lease_sign"),
    path("leases/<uuid:pk>/terminate/", views_api.lease_terminate, name="lease_terminate"),
    path("leases/<uuid:pk>/payment-status/", views_api.lease_payment_status, name="payment_status"),
]
