from django.core.management.base import BaseCommand
from django.contrib.auth.hashers import make_password
from prescriptions.models import User

# username, role, license, DEA
USER_SET = [
    ("prescriber1", User.ROLE_PRESCRIBER, "MD-100200", "AB1234563"),
    ("pharmacist1", User.ROLE_PHARMACIST, "RPH-300400", ""),
    ("tech1", User.ROLE_TECHNICIAN, "", ""),
    ("admin1", User.ROLE_ADMIN, "", ""),
]


class Command(BaseCommand):
    help = "Ensure one user per pharmacy role exists (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="123456", help="password set on every ensured user")

    def handle(self, *args, **opts):
        password = make_password(opts["password"])
        for username, role, license_number, dea in USER_SET:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={
                    "role": role,
                    "password": password,
                    "is_active": True,
                    "license_number": license_number,
                    "dea_number": dea,
                    "is_staff": role == User.ROLE_ADMIN,
                },
            )
            if not created:
                # reset password, role and credentials on rerun
                u.password = password
                u.role = role
                u.is_active = True
                u.license_number = license_number
                u.dea_number = dea
                u.save(update_fields=["password", "role", "is_active", "license_number", "dea_number"])
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role})"))
        self.stdout.write(self.style.SUCCESS("All pharmacy users ensured."))
