from django.contrib import admin
from .models import Claim, ClaimAttachment, ClaimNote


class ClaimAttachmentInline(admin.TabularInline):
    model = ClaimAttachment
    extra = 0


class ClaimNoteInline(admin.TabularInline):
    model = ClaimNote
    extra = 0


@admin.register(Claim)
class ClaimAdmin(admin.ModelAdmin):
    list_display = ['id', 'policy', 'customer', 'claim_type', 'claim_date', 'estimated_damage', 'status', 'created_at']
    list_filter = ['status', 'claim_type']
    search_fields = ['policy__policy_number', 'customer__first_name', 'customer__last_name']
    inlines = [ClaimAttachmentInline, ClaimNoteInline]
