"""
Security middleware for request size limiting and CORS on the proxy endpoint.
"""
import logging
from django.conf import settings
from django.http import JsonResponse

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, X-Client-Info, Apikey",
}


class RequestSizeLimitMiddleware:
    """
    Middleware to limit the size of incoming requests.
    Rejects requests larger than settings.MAX_REQUEST_SIZE_MB.
    """

    def __init__(self, get_response):
        self.get_response = get_response
        self.max_size = getattr(settings, "MAX_REQUEST_SIZE_MB", 10) * 1024 * 1024

    def __call__(self, request):
        if request.method in ['POST', 'PUT', 'PATCH']:
            content_length = request.META.get('CONTENT_LENGTH')

            if content_length:
                try:
                    content_length = int(content_length)
                    if content_length > self.max_size:
                        logger.warning(
                            "Request size limit exceeded: %s bytes from IP %s",
                            content_length,
                            request.META.get('REMOTE_ADDR'),
                        )
                        return JsonResponse({
                            'error': 'Request too large',
                            'max_size_mb': self.max_size / (1024 * 1024),
                            'your_size_mb': round(content_length / (1024 * 1024), 2)
                        }, status=413)
                except (ValueError, TypeError):
                    # Invalid content-length header, let it pass
                    pass

        return self.get_response(request)


class ProxyCorsMiddleware:
    """Adds permissive CORS headers to every response under PROXY_CORS_PATHS."""

    def __init__(self, get_response):
        self.get_response = get_response
        self.paths = tuple(getattr(settings, "PROXY_CORS_PATHS", ()))

    def __call__(self, request):
        response = self.get_response(request)
        if self.paths and request.path.startswith(self.paths):
            for key, value in CORS_HEADERS.items():
                response[key] = value
        return response
