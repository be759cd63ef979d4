"""
Upload validation shared by vehicle documents and claim attachments
"""
import os

from django.conf import settings
from rest_framework import serializers

ALLOWED_UPLOAD_EXTENSIONS = {'.pdf', '.jpg', '.jpeg', '.png'}
ALLOWED_UPLOAD_CONTENT_TYPES = {'application/pdf', 'image/jpeg', 'image/png'}


def validate_upload(file):
    """
    Accept PDF, JPEG and PNG files up to ``settings.MAX_UPLOAD_SIZE`` bytes.

    Raises:
        serializers.ValidationError: on a disallowed type or an oversized file
    """
    extension = os.path.splitext(file.name or '')[1].lower()
    if extension not in ALLOWED_UPLOAD_EXTENSIONS:
        raise serializers.ValidationError('Only PDF, JPG and PNG files are allowed.')

    content_type = getattr(file, 'content_type', None)
    if content_type and content_type not in ALLOWED_UPLOAD_CONTENT_TYPES:
        raise serializers.ValidationError(f'Unsupported content type: {content_type}.')

    max_size = settings.MAX_UPLOAD_SIZE
    if file.size > max_size:
        raise serializers.ValidationError(f'File is too large. Maximum size is {max_size // (1024 * 1024)} MB.')
    return file
