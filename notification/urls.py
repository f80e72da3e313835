from django.urls import path
from .sse import sse_subscribe

urlpatterns = [
    path("sse/subscribe", sse_subscribe, name="sse-subscribe"),
]
