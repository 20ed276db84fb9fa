"""
Prescription workflow endpoints.

Thin DRF function views: each validates its input with a serializer,
delegates to :mod:`prescriptions.services.workflow` and renders the
result.  Workflow failures propagate as typed ``APIException``
subclasses and are rendered by the project exception handler.

* ``GET/POST /api/prescriptions``: search / create
* ``GET /api/prescriptions/pending``: verification queue
* ``GET/PATCH /api/prescriptions/<id>``: detail / partial update
* ``POST /api/prescriptions/<id>/{verify,fill,dispense,cancel}``
* ``GET/POST /api/prescriptions/<id>/notes``
* ``GET /api/patients/<patient_id>/prescriptions``
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import User
from ..permissions import CanCancel, IsPharmacistRole, IsPrescriberRole
from ..serializers.prescription import (
    CancelSerializer,
    NoteCreateSerializer,
    PrescriptionCreateSerializer,
    PrescriptionSearchQuerySerializer,
    PrescriptionUpdateSerializer,
    TransitionSerializer,
)
from ..services import workflow
from ..services.formatting import format_alert, format_prescription


def _require(permission, request):
    if not permission().has_permission(request, None):
        raise PermissionDenied('Permission denied')


def _pharmacist_id(request, vd) -> str:
    """Only admins may record a transition on behalf of another pharmacist."""
    own = str(request.user.id)
    requested = vd.get('pharmacistId')
    if requested and requested != own and getattr(request.user, 'role', None) != User.ROLE_ADMIN:
        raise PermissionDenied('pharmacistId must match the signed-in user')
    return requested or own


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def prescriptions_collection(request):
    if request.method == 'GET':
        q = PrescriptionSearchQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        items = workflow.search(
            status=vd.get('status'),
            prescriber_id=vd.get('prescriberId'),
            patient_id=vd.get('patientId'),
            start_date=vd.get('startDate'),
            end_date=vd.get('endDate'),
        )
        return Response({'ok': True, 'data': [format_prescription(p, include_alerts=False) for p in items],
                         'total': len(items)})

    # POST
    _require(IsPrescriberRole, request)
    s = PrescriptionCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    user = request.user
    p = workflow.create(
        patient_id=vd['patientId'],
        patient_name=vd['patientName'],
        prescriber_id=vd.get('prescriberId') or str(user.id),
        prescriber_name=vd.get('prescriberName') or user.get_full_name() or user.username,
        prescriber_license=vd.get('prescriberLicense', getattr(user, 'license_number', '')),
        prescriber_dea=vd.get('prescriberDea', getattr(user, 'dea_number', '')),
        prescription_date=vd.get('prescriptionDate'),
        refills_allowed=vd.get('refillsAllowed', 0),
        notes_text=vd.get('notes'),
        items=[{
            'drug_id': it['drugId'],
            'quantity_prescribed': it['quantityPrescribed'],
            'dosage_instructions': it.get('dosageInstructions', ''),
            'day_supply': it.get('daySupply'),
        } for it in vd['items']],
        actor_id=user.id,
    )
    return Response({'ok': True, 'data': format_prescription(p)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def pending_prescriptions(request):
    items = workflow.pending_prescriptions()
    return Response({'ok': True, 'data': [format_prescription(p) for p in items], 'total': len(items)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def patient_prescriptions(request, patient_id: str):
    items = workflow.patient_prescriptions(patient_id)
    return Response({'ok': True, 'data': [format_prescription(p, include_alerts=False) for p in items],
                     'total': len(items)})


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def prescription_detail(request, pk):
    if request.method == 'GET':
        return Response({'ok': True, 'data': format_prescription(workflow.find(pk))})

    # PATCH
    _require(IsPrescriberRole, request)
    s = PrescriptionUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    patch = {}
    if 'notes' in vd:
        patch['notes'] = vd['notes']
    if 'refillsAllowed' in vd:
        patch['refills_allowed'] = vd['refillsAllowed']
    if 'prescriptionDate' in vd:
        patch['prescription_date'] = vd['prescriptionDate']
    if 'items' in vd:
        patch['items'] = [{
            'id': it['id'],
            'drug_id': it.get('drugId'),
            'quantity_prescribed': it.get('quantityPrescribed'),
            'dosage_instructions': it.get('dosageInstructions'),
            'day_supply': it.get('daySupply'),
        } for it in vd['items']]
    p = workflow.update(pk, patch, actor_id=request.user.id, expected_version=vd.get('expectedVersion'))
    return Response({'ok': True, 'data': format_prescription(p)})


def _transition(request, pk, operation):
    _require(IsPharmacistRole, request)
    s = TransitionSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    p = operation(pk, _pharmacist_id(request, vd), actor_id=request.user.id,
                  expected_version=vd.get('expectedVersion'))
    return Response({'ok': True, 'data': format_prescription(p)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def verify_prescription(request, pk):
    return _transition(request, pk, workflow.verify)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def fill_prescription(request, pk):
    return _transition(request, pk, workflow.fill)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def dispense_prescription(request, pk):
    return _transition(request, pk, workflow.dispense)


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanCancel])
def cancel_prescription(request, pk):
    s = CancelSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    p = workflow.cancel(pk, vd['reason'], actor_id=request.user.id, expected_version=vd.get('expectedVersion'))
    return Response({'ok': True, 'data': format_prescription(p)})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def prescription_notes(request, pk):
    if request.method == 'GET':
        return Response({'ok': True, 'data': [e.as_dict() for e in workflow.get_notes(pk)]})
    s = NoteCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    p = workflow.add_note(pk, vd['note'], author_id=vd.get('authorId') or str(request.user.id))
    return Response({'ok': True, 'data': format_prescription(p, include_alerts=False)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def prescription_alerts(request, pk):
    return Response({'ok': True, 'data': [format_alert(a) for a in workflow.alerts_for(pk)]})
