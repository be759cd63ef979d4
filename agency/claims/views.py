import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from agency.core.exceptions import DomainError, InvalidTransition
from agency.core.permissions import IsAdminOrDealer, IsAdminRole
from agency.core.roles import ADMIN_ROLES, CUSTOMER, DEALER, OBSERVER, has_role
from agency.core.scoping import scope_queryset
from agency.core.utils import create_audit_log, paginate
from agency.notifications.services import notify
from agency.policies.views import visible_policies
from .filters import ClaimFilter
from .models import Claim, MAX_ATTACHMENTS
from .serializers import ClaimAttachmentSerializer, ClaimNoteSerializer, ClaimSerializer, ClaimStatusSerializer

logger = logging.getLogger('agency.claims')


def visible_claims(user):
    queryset = Claim.objects.select_related('policy', 'customer').prefetch_related('attachments')
    return scope_queryset(user, queryset, dealer_field='policy__dealer', customer_field='customer')


def _context(request):
    # Internal notes are staff only
    return {'include_internal_notes': has_role(request.user, *ADMIN_ROLES, DEALER, OBSERVER)}


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def claim_list_create(request):
    """List claims visible to the user or file a claim"""
    if request.method == 'GET':
        queryset = ClaimFilter(request.query_params, queryset=visible_claims(request.user).order_by('-created_at')).qs
        return paginate(request, queryset, ClaimSerializer, context=_context(request))

    if not (has_role(request.user, CUSTOMER) or IsAdminOrDealer().has_permission(request, None)):
        return Response({'error': 'You cannot file claims.'}, status=status.HTTP_403_FORBIDDEN)

    serializer = ClaimSerializer(data=request.data, context=_context(request))
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    policy = serializer.validated_data['policy']
    if not visible_policies(request.user).filter(pk=policy.pk).exists():
        return Response({'policy': ['Policy not found.']}, status=status.HTTP_400_BAD_REQUEST)

    claim = serializer.save(customer=policy.customer, created_by=request.user)
    create_audit_log(request=request, action='create', model_name='Claim',
                     object_id=claim.id, object_name=policy.policy_number)
    if policy.dealer.user_id:
        notify(policy.dealer.user, 'New claim', f'A {claim.claim_type} claim was filed on policy {policy.policy_number}.',
               link=f'/claims/{claim.id}')
    logger.info(f"Claim {claim.id} filed on policy {policy.policy_number} by {request.user.username}")
    return Response(ClaimSerializer(claim, context=_context(request)).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def claim_detail(request, pk):
    """Retrieve a claim with attachments and notes"""
    claim = get_object_or_404(visible_claims(request.user), pk=pk)
    return Response(ClaimSerializer(claim, context=_context(request)).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser, JSONParser])
def claim_attachments(request, pk):
    """Upload an attachment to a claim"""
    claim = get_object_or_404(visible_claims(request.user), pk=pk)
    if claim.status == Claim.STATUS_CLOSED:
        raise DomainError('Attachments cannot be added to a closed claim.', code='CLAIM_CLOSED')
    if claim.attachments.count() >= MAX_ATTACHMENTS:
        raise DomainError(f'A claim can have at most {MAX_ATTACHMENTS} attachments.', code='ATTACHMENT_LIMIT')

    serializer = ClaimAttachmentSerializer(data=request.data)
    if serializer.is_valid():
        attachment = serializer.save(claim=claim, uploaded_by=request.user)
        create_audit_log(request=request, action='create', model_name='ClaimAttachment',
                         object_id=attachment.id, object_name=f'Claim #{claim.id}')
        return Response(ClaimAttachmentSerializer(attachment).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminOrDealer])
def claim_notes(request, pk):
    """Add a note to a claim"""
    claim = get_object_or_404(visible_claims(request.user), pk=pk)
    serializer = ClaimNoteSerializer(data=request.data)
    if serializer.is_valid():
        note = serializer.save(claim=claim, author=request.user)
        if not note.is_internal and claim.customer.user_id:
            notify(claim.customer.user, 'Claim update', f'A note was added to your claim #{claim.id}.',
                   link=f'/claims/{claim.id}')
        return Response(ClaimNoteSerializer(note).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def claim_status(request, pk):
    """Move a claim through Pending -> InReview -> Approved|Rejected -> Closed"""
    claim = get_object_or_404(Claim, pk=pk)
    serializer = ClaimStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    new_status = serializer.validated_data['status']

    with transaction.atomic():
        claim = Claim.objects.select_for_update().get(pk=claim.pk)
        if not claim.can_transition_to(new_status):
            raise InvalidTransition(f'Cannot move a claim from {claim.status} to {new_status}.')
        previous = claim.status
        claim.status = new_status
        claim.save(update_fields=['status', 'updated_at'])
        note = serializer.validated_data['note'].strip()
        if note:
            claim.notes.create(author=request.user, note=note, is_internal=False)
        create_audit_log(request=request, action='claim_status', model_name='Claim', object_id=claim.id,
                         object_name=claim.policy.policy_number, changes={'from': previous, 'to': new_status})

    if claim.customer.user_id:
        notify(claim.customer.user, 'Claim status updated',
               f'Your claim #{claim.id} is now {claim.get_status_display()}.',
               type='success' if new_status == Claim.STATUS_APPROVED else 'info', link=f'/claims/{claim.id}')
    return Response(ClaimSerializer(claim, context=_context(request)).data)
