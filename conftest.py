import pytest
from django.core.cache import cache


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttle counters live in the cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def make_drug(db):
    from prescriptions.models import Drug
    from prescriptions.services import inventory

    def _make(generic_name='Amoxicillin', *, stock=0, schedule=Drug.SCHEDULE_NON_CONTROLLED, max_daily_units=None,
              strength='500 mg', expiration_date=None):
        drug = Drug.objects.create(
            generic_name=generic_name,
            strength=strength,
            controlled_substance_schedule=schedule,
            max_daily_units=max_daily_units,
        )
        if stock:
            inventory.receive_stock(drug.id, stock, lot_number=f'{generic_name[:3].upper()}-1',
                                    expiration_date=expiration_date)
        return drug
    return _make


@pytest.fixture
def make_interaction(db):
    from prescriptions.models import DrugInteraction

    def _make(a, b, severity='high', description=''):
        return DrugInteraction.objects.create(drug_a=a, drug_b=b, severity=severity, description=description)
    return _make
