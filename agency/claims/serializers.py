from django.utils import timezone
from rest_framework import serializers

from agency.core.validators import validate_upload
from agency.policies.models import Policy
from .models import Claim, ClaimAttachment, ClaimNote


class ClaimAttachmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = ClaimAttachment
        fields = ['id', 'file', 'uploaded_by', 'uploaded_at']
        read_only_fields = ['uploaded_by', 'uploaded_at']

    def validate_file(self, value):
        return validate_upload(value)


class ClaimNoteSerializer(serializers.ModelSerializer):
    author_username = serializers.CharField(source='author.username', read_only=True, default=None)

    class Meta:
        model = ClaimNote
        fields = ['id', 'author', 'author_username', 'note', 'is_internal', 'created_at']
        read_only_fields = ['author', 'created_at']

    def validate_note(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Note cannot be empty.')
        return value


class ClaimSerializer(serializers.ModelSerializer):
    policy_number = serializers.CharField(source='policy.policy_number', read_only=True)
    customer_name = serializers.CharField(source='customer.full_name', read_only=True)
    dealer = serializers.IntegerField(source='policy.dealer_id', read_only=True)
    attachments = ClaimAttachmentSerializer(many=True, read_only=True)
    notes = serializers.SerializerMethodField()

    class Meta:
        model = Claim
        fields = [
            'id', 'policy', 'policy_number', 'customer', 'customer_name', 'dealer', 'claim_type', 'description',
            'claim_date', 'incident_location', 'estimated_damage', 'status', 'attachments', 'notes',
            'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = ['customer', 'status', 'created_by', 'created_at', 'updated_at']
        extra_kwargs = {'policy': {'queryset': Policy.objects.select_related('customer')}}

    def get_notes(self, obj):
        notes = obj.notes.select_related('author')
        if not self.context.get('include_internal_notes', False):
            notes = notes.filter(is_internal=False)
        return ClaimNoteSerializer(notes, many=True).data

    def validate_description(self, value):
        value = value.strip()
        if len(value) < 10:
            raise serializers.ValidationError('Description must be at least 10 characters.')
        return value

    def validate_estimated_damage(self, value):
        if value < 0:
            raise serializers.ValidationError('Estimated damage cannot be negative.')
        return value

    def validate_claim_date(self, value):
        if value > timezone.localdate():
            raise serializers.ValidationError('Claim date cannot be in the future.')
        return value

    def validate(self, attrs):
        policy = attrs.get('policy', getattr(self.instance, 'policy', None))
        claim_date = attrs.get('claim_date', getattr(self.instance, 'claim_date', None))
        if policy is not None and self.instance is None and policy.status != Policy.STATUS_ACTIVE:
            raise serializers.ValidationError({'policy': 'Claims can only be filed on active policies.'})
        if policy is not None and claim_date and not (policy.start_date <= claim_date <= policy.end_date):
            raise serializers.ValidationError({'claim_date': 'Claim date must fall within the policy period.'})
        return attrs


class ClaimStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[choice[0] for choice in Claim.STATUS_CHOICES])
    note = serializers.CharField(required=False, allow_blank=True, default='')
