"""Prescription fulfillment application for the pharmacy backend.

This package contains the models, services, views and route
registrations implementing the prescription workflow: creation,
verification, filling, dispensing and cancellation.
"""
