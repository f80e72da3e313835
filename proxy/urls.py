from django.urls import path
from . import views

app_name = "proxy"

urlpatterns = [
    path("answer", views.answer, name="answer"),
]
