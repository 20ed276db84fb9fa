from django.db import connections
from django.http import JsonResponse

from ..models import Prescription, PrescriptionStatus


def healthz(request):
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
        pending = Prescription.objects.filter(status=PrescriptionStatus.PENDING).count()
        return JsonResponse({'ok': True, 'db': bool(row and row[0] == 1), 'pending': pending})
    except Exception as e:
        return JsonResponse({'ok': False, 'error': str(e)}, status=500)
