import logging

from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from agency.core.exceptions import InvalidTransition
from agency.core.permissions import IsAdminRole
from agency.core.roles import is_admin_user
from agency.core.utils import create_audit_log, paginate
from agency.notifications.services import notify
from .filters import TicketFilter
from .models import Ticket
from .serializers import TicketDetailSerializer, TicketReplySerializer, TicketSerializer, TicketStatusSerializer

logger = logging.getLogger('agency.support')


def _visible_tickets(user):
    queryset = Ticket.objects.select_related('user')
    if is_admin_user(user):
        return queryset
    return queryset.filter(user=user)


def _set_status(request, ticket, new_status):
    previous = ticket.status
    ticket.status = new_status
    if new_status == Ticket.STATUS_RESOLVED:
        ticket.resolved_at = timezone.now()
    ticket.save(update_fields=['status', 'resolved_at', 'updated_at'])
    create_audit_log(request=request, action='ticket_status', model_name='Ticket', object_id=ticket.id,
                     object_name=ticket.subject, changes={'from': previous, 'to': new_status})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def ticket_list_create(request):
    """List own tickets (all for admins) or open a ticket"""
    if request.method == 'GET':
        queryset = TicketFilter(request.query_params, queryset=_visible_tickets(request.user)).qs
        return paginate(request, queryset, TicketSerializer)

    serializer = TicketSerializer(data=request.data)
    if serializer.is_valid():
        ticket = serializer.save(user=request.user)
        create_audit_log(request=request, action='create', model_name='Ticket',
                         object_id=ticket.id, object_name=ticket.subject)
        logger.info(f"Ticket #{ticket.id} opened by {request.user.username}")
        return Response(TicketSerializer(ticket).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def ticket_detail(request, pk):
    ticket = get_object_or_404(_visible_tickets(request.user).prefetch_related('replies__user'), pk=pk)
    return Response(TicketDetailSerializer(ticket).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def ticket_replies(request, pk):
    """Reply to a ticket; the first staff reply starts work on it"""
    ticket = get_object_or_404(_visible_tickets(request.user), pk=pk)
    if ticket.status == Ticket.STATUS_CLOSED:
        raise InvalidTransition('Closed tickets cannot receive replies.', code='TICKET_CLOSED')

    serializer = TicketReplySerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    from_staff = is_admin_user(request.user) and ticket.user_id != request.user.id
    reply = serializer.save(ticket=ticket, user=request.user, is_from_customer=not from_staff)

    if from_staff:
        if ticket.status == Ticket.STATUS_OPEN:
            _set_status(request, ticket, Ticket.STATUS_IN_PROGRESS)
        notify(ticket.user, 'New reply to your ticket', f'Support replied to "{ticket.subject}".',
               link=f'/support/tickets/{ticket.id}')
    else:
        ticket.save(update_fields=['updated_at'])
    return Response(TicketReplySerializer(reply).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def ticket_close(request, pk):
    ticket = get_object_or_404(_visible_tickets(request.user), pk=pk)
    if ticket.status == Ticket.STATUS_CLOSED:
        raise InvalidTransition('Ticket is already closed.')
    _set_status(request, ticket, Ticket.STATUS_CLOSED)
    return Response(TicketSerializer(ticket).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def ticket_status(request, pk):
    """Set the status of any ticket"""
    ticket = get_object_or_404(Ticket, pk=pk)
    serializer = TicketStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    new_status = serializer.validated_data['status']
    if new_status != ticket.status:
        _set_status(request, ticket, new_status)
        notify(ticket.user, 'Ticket status updated', f'Your ticket "{ticket.subject}" is now {ticket.get_status_display()}.',
               type='success' if new_status == Ticket.STATUS_RESOLVED else 'info', link=f'/support/tickets/{ticket.id}')
    return Response(TicketSerializer(ticket).data)
