"""
ASGI config for the pharmacy project.

Serves HTTP through Django and prescription status updates over
WebSocket through Channels.  Settings must be configured before any
Django-dependent import.
"""
import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "pharmacy.settings")

import django  # noqa: E402
django.setup()  # noqa: E402

from django.core.asgi import get_asgi_application  # noqa: E402
from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.auth import AuthMiddlewareStack  # noqa: E402
from django.urls import path  # noqa: E402

from prescriptions.realtime.consumers import PrescriptionUpdatesConsumer  # noqa: E402

django_asgi_app = get_asgi_application()

websocket_urlpatterns = [
    path("ws/prescriptions/", PrescriptionUpdatesConsumer.as_asgi()),
]

application = ProtocolTypeRouter({
    "http": django_asgi_app,
    "websocket": AuthMiddlewareStack(URLRouter(websocket_urlpatterns)),
})
