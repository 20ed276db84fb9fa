import json

from channels.generic.websocket import AsyncWebsocketConsumer
from django.conf import settings


class PrescriptionUpdatesConsumer(AsyncWebsocketConsumer):
    """Pushes prescription status changes to connected pharmacy clients."""

    @property
    def group(self) -> str:
        return getattr(settings, 'PHARMACY_BROADCAST_GROUP', 'pharmacy')

    async def connect(self):
        await self.channel_layer.group_add(self.group, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.group, self.channel_name)

    async def prescription_status(self, event):
        # event: {"type": "prescription.status", "prescriptionId", "status", "version", "ts"}
        await self.send(json.dumps(event))
