"""
Test value fixtures shared by normalization and export tests.
"""
import datetime
import decimal

import pytest


@pytest.fixture(scope='module')
def value_dict():
    """Return a dictionary of driver-shaped values for the major types"""
    return {
        'int_value': 42,
        'float_value': 2.5,
        'decimal_value': decimal.Decimal('123.45'),
        'text_value': 'Lorem ipsum',
        'date_value': datetime.date(2023, 5, 15),
        'time_value': datetime.time(14, 30, 45),
        'datetime_value': datetime.datetime(2023, 5, 15, 14, 30, 45, 123456),
        'aware_datetime': datetime.datetime(2023, 5, 15, 14, 30, 45, tzinfo=datetime.timezone.utc),
        'bytes_value': 'héllo'.encode(),
        'null_value': None,
        'iso_text': '2023-05-15T14:30:45.678Z',
        'offset_text': '2023-05-15 14:30:45.678+00',
    }
