from django.urls import path

from . import views

app_name = "enquiries"
urlpatterns = [
    path("api/send-notification", views.send_notification_view, name="send_notification"),
    path("api/admin/enquiries", views.admin_enquiries_view, name="admin_enquiries"),
]
