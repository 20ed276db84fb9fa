"""
Typed workflow failures and the project-wide API exception handler.

Every failure surfaced by the prescription services is an
``APIException`` with a stable ``default_code``; the handler renders
them as ``{'ok': False, 'error': {'code': ..., 'message': ..., ...}}``.
"""
from __future__ import annotations

import logging

from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class PrescriptionError(drf_exceptions.APIException):
    """Base class for workflow failures.  ``extra`` is merged into the error body."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'prescription_error'
    default_detail = 'Prescription operation failed.'

    def __init__(self, detail=None, **extra):
        super().__init__(detail=detail, code=self.default_code)
        self.extra = extra


class NotFound(PrescriptionError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = 'not_found'
    default_detail = 'Not found.'


class InvalidState(PrescriptionError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'invalid_state'
    default_detail = 'Operation not allowed in the current status.'


class SafetyBlocked(PrescriptionError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'safety_blocked'
    default_detail = 'Critical safety alerts must be acknowledged before verification.'


class InsufficientInventory(PrescriptionError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'insufficient_inventory'
    default_detail = 'Insufficient inventory.'

    def __init__(self, drug: str, available: int, required: int):
        super().__init__(
            f"Insufficient inventory for {drug}. Available: {available}, Required: {required}",
            drug=drug, available=available, required=required,
        )
        self.drug = drug
        self.available = available
        self.required = required


class ValidationError(PrescriptionError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = 'validation_error'
    default_detail = 'Invalid input.'


class VersionConflict(PrescriptionError):
    status_code = status.HTTP_409_CONFLICT
    default_code = 'version_conflict'
    default_detail = 'Prescription was modified concurrently.'


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('unhandled error in %s', context.get('view'))
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    if isinstance(exc, PrescriptionError):
        error = {'code': exc.default_code, 'message': str(exc.detail)}
        error.update(exc.extra)
        return Response({'ok': False, 'error': error}, status=resp.status_code)
    # normalize DRF's own exceptions
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    code = 'validation_error' if isinstance(exc, drf_exceptions.ValidationError) else 'api_error'
    return Response({'ok': False, 'error': {'code': code, 'message': detail}}, status=resp.status_code)
