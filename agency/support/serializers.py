from rest_framework import serializers

from .models import Ticket, TicketReply


class TicketReplySerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True, default=None)

    class Meta:
        model = TicketReply
        fields = ['id', 'user', 'username', 'message', 'is_from_customer', 'created_at']
        read_only_fields = ['user', 'is_from_customer', 'created_at']

    def validate_message(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Reply cannot be empty.')
        return value


class TicketSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True)
    reply_count = serializers.IntegerField(source='replies.count', read_only=True)

    class Meta:
        model = Ticket
        fields = [
            'id', 'user', 'username', 'subject', 'message', 'category', 'priority', 'status',
            'contact_email', 'contact_phone', 'reply_count', 'resolved_at', 'created_at', 'updated_at'
        ]
        read_only_fields = ['user', 'status', 'resolved_at', 'created_at', 'updated_at']

    def validate_subject(self, value):
        value = value.strip()
        if len(value) < 3:
            raise serializers.ValidationError('Subject must be at least 3 characters.')
        return value

    def validate_message(self, value):
        value = value.strip()
        if len(value) < 10:
            raise serializers.ValidationError('Message must be at least 10 characters.')
        return value


class TicketDetailSerializer(TicketSerializer):
    replies = TicketReplySerializer(many=True, read_only=True)

    class Meta(TicketSerializer.Meta):
        fields = TicketSerializer.Meta.fields + ['replies']


class TicketStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[choice[0] for choice in Ticket.STATUS_CHOICES])
