from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..permissions import IsPharmacistRole
from ..services import safety
from ..services.audit import log_action
from ..services.formatting import format_alert


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacistRole])
def acknowledge_alert(request, pk: int):
    """Mark a safety alert as reviewed by the calling pharmacist."""
    alert = safety.acknowledge_alert(pk, request.user.id)
    log_action(actor_id=request.user.id, action='alert_acknowledge', object_type='safety_alert', object_id=alert.id,
               detail={'prescription': str(alert.prescription_id), 'severity': alert.severity})
    return Response({'ok': True, 'data': format_alert(alert)})
