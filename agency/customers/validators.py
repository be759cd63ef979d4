"""
Validation of customer identity numbers and vehicle identifiers
"""
import re

from django.utils import timezone

PLATE_PATTERN = re.compile(r'^(0[1-9]|[1-7][0-9]|8[01])\s?[A-ZÇĞİÖŞÜ]{1,3}\s?\d{2,4}$')
NATIONAL_ID_PATTERN = re.compile(r'^\d{11}$')
VIN_LENGTH = 17
MIN_MODEL_YEAR = 1900


def normalize_plate(value):
    """Upper-case the plate and collapse runs of whitespace to single spaces."""
    return re.sub(r'\s+', ' ', (value or '').strip()).upper()


def is_valid_plate(value):
    return bool(PLATE_PATTERN.match(normalize_plate(value)))


def is_valid_national_id(value):
    return bool(NATIONAL_ID_PATTERN.match(value or ''))


def max_model_year():
    return timezone.localdate().year + 1
