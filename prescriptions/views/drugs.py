from django.db.models import Q
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Drug
from ..services import inventory
from ..services.formatting import format_drug


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_drugs(request):
    """Formulary with current usable stock per drug.

    ``?q=`` filters on generic or brand name, ``?controlled=1`` keeps
    scheduled drugs only.
    """
    qs = Drug.objects.all().order_by('generic_name', 'strength')
    q = (request.query_params.get('q') or '').strip()
    if q:
        qs = qs.filter(Q(generic_name__icontains=q) | Q(brand_name__icontains=q))
    if (request.query_params.get('controlled') or '').lower() in {'1', 'true', 'yes'}:
        qs = qs.exclude(controlled_substance_schedule=Drug.SCHEDULE_NON_CONTROLLED)
    data = [format_drug(d, quantity_available=inventory.quantity_available(d.id)) for d in qs]
    return Response({'ok': True, 'data': data, 'total': len(data)})
