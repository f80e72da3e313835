from django.conf import settings
from django.conf.urls.static import static
from django.urls import path, include

from proxy.views import health

urlpatterns = [
    path("health", health, name="health"),
    path("", include("proxy.urls")),
    path("notification/", include("notification.urls")),
] + static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
