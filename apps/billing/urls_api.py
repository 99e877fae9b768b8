from django.urls import path

from . import views_api

app_name = "billing_api"

urlpatterns = [
    path("payments/send-reminders/", views_api.send_reminders, name="send_reminders"),
    path("payments/<uuid:pk>/initiate/", views_api.payment_initiate, name="payment_initiate"),
    path("payments/<uuid:pk>/poll/", views_api.payment_poll, name="payment_poll"),
]
