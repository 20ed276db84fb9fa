"""
URL mappings for the pharmacy backend API.

Trailing slashes are deliberately omitted, matching the client.
"""
from django.urls import path, include

from .auth_views import login_view, jwt_refresh_view
from .views import alerts
from .views import drugs
from .views import health
from .views import prescriptions


urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', jwt_refresh_view, name='jwt_refresh'),
    # Prescriptions
    path('api/prescriptions', prescriptions.prescriptions_collection),
    path('api/prescriptions/pending', prescriptions.pending_prescriptions),
    path('api/prescriptions/<uuid:pk>', prescriptions.prescription_detail),
    path('api/prescriptions/<uuid:pk>/verify', prescriptions.verify_prescription),
    path('api/prescriptions/<uuid:pk>/fill', prescriptions.fill_prescription),
    path('api/prescriptions/<uuid:pk>/dispense', prescriptions.dispense_prescription),
    path('api/prescriptions/<uuid:pk>/cancel', prescriptions.cancel_prescription),
    path('api/prescriptions/<uuid:pk>/notes', prescriptions.prescription_notes),
    path('api/prescriptions/<uuid:pk>/alerts', prescriptions.prescription_alerts),
    path('api/patients/<str:patient_id>/prescriptions', prescriptions.patient_prescriptions),
    # Safety alerts
    path('api/alerts/<int:pk>/acknowledge', alerts.acknowledge_alert),
    # Formulary
    path('api/drugs', drugs.list_drugs),
]
