import html

import bleach
from rest_framework import serializers

from prescriptions.models import PrescriptionStatus


def _clean(v):
    # drop all markup; responses are JSON so entities are decoded back
    return html.unescape(bleach.clean((v or '').strip(), tags=set(), strip=True))


class PrescriptionItemCreateSerializer(serializers.Serializer):
    drugId = serializers.UUIDField()
    quantityPrescribed = serializers.IntegerField(min_value=1)
    dosageInstructions = serializers.CharField(required=False, allow_blank=True, max_length=1000)
    daySupply = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class PrescriptionCreateSerializer(serializers.Serializer):
    patientId = serializers.CharField(max_length=64)
    patientName = serializers.CharField(max_length=255)
    prescriberId = serializers.CharField(max_length=64, required=False)
    prescriberName = serializers.CharField(max_length=255, required=False)
    prescriberLicense = serializers.CharField(max_length=64, required=False, allow_blank=True)
    prescriberDea = serializers.CharField(max_length=32, required=False, allow_blank=True)
    prescriptionDate = serializers.DateField(required=False)
    refillsAllowed = serializers.IntegerField(min_value=0, required=False, default=0)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=500)
    items = PrescriptionItemCreateSerializer(many=True, allow_empty=False)

    def validate_patientName(self, v):
        return _clean(v)

    def validate_notes(self, v):
        return _clean(v)


class PrescriptionItemUpdateSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    drugId = serializers.UUIDField(required=False)
    quantityPrescribed = serializers.IntegerField(min_value=1, required=False)
    dosageInstructions = serializers.CharField(required=False, allow_blank=True, max_length=1000)
    daySupply = serializers.IntegerField(min_value=1, required=False)


class PrescriptionUpdateSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, max_length=5000)
    refillsAllowed = serializers.IntegerField(min_value=0, required=False)
    prescriptionDate = serializers.DateField(required=False)
    items = PrescriptionItemUpdateSerializer(many=True, required=False)
    expectedVersion = serializers.IntegerField(min_value=1, required=False)

    def validate_notes(self, v):
        # keep line structure, strip markup per line
        return '\n'.join(_clean(line) for line in (v or '').split('\n'))


class PrescriptionSearchQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PrescriptionStatus.values, required=False)
    prescriberId = serializers.CharField(max_length=64, required=False)
    patientId = serializers.CharField(max_length=64, required=False)
    startDate = serializers.DateField(required=False)
    endDate = serializers.DateField(required=False)

    def validate(self, attrs):
        start, end = attrs.get('startDate'), attrs.get('endDate')
        if start and end and start > end:
            raise serializers.ValidationError({'endDate': 'endDate must not be before startDate'})
        return attrs


class TransitionSerializer(serializers.Serializer):
    pharmacistId = serializers.CharField(max_length=64, required=False)
    expectedVersion = serializers.IntegerField(min_value=1, required=False)


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)
    expectedVersion = serializers.IntegerField(min_value=1, required=False)

    def validate_reason(self, v):
        v = _clean(v)
        if not v:
            raise serializers.ValidationError('reason is required')
        return v


class NoteCreateSerializer(serializers.Serializer):
    note = serializers.CharField(max_length=2000)
    authorId = serializers.CharField(max_length=64, required=False)

    def validate_note(self, v):
        v = _clean(v)
        if not v:
            raise serializers.ValidationError('note is required')
        return v
