from django import forms
from django.core.exceptions import ValidationError
from decimal import Decimal
import re

from .models import Group


INVITE_CODE_MIN_LENGTH = 6
INVITE_CODE_MAX_LENGTH = 20


def sanitize_invite_code(code):
    """Trim, uppercase and drop anything that is not a letter or digit"""
    return re.sub(r'[^A-Z0-9]', '', (code or '').strip().upper())


class GroupForm(forms.ModelForm):
    """Create a group or edit its settings"""

    class Meta:
        model = Group
        fields = ['name', 'contribution_amount', 'frequency']
        widgets = {
            'name': forms.TextInput(attrs={
                'class': 'form-control',
                'placeholder': 'e.g., Family Savings Circle',
                'maxlength': '100'
            }),
            'contribution_amount': forms.NumberInput(attrs={
                'class': 'form-control',
                'min': '0.01',
                'step': '0.01'
            }),
            'frequency': forms.Select(attrs={
                'class': 'form-control'
            }),
        }
        labels = {
            'name': 'Group Name',
            'contribution_amount': 'Contribution Amount',
            'frequency': 'Contribution Frequency',
        }

    def clean_name(self):
        name = (self.cleaned_data.get('name') or '').strip()
        if len(name) < 3:
            raise ValidationError("Group name must be at least 3 characters.")
        return name

    def clean_contribution_amount(self):
        amount = self.cleaned_data.get('contribution_amount')
        if amount is not None and amount <= Decimal('0'):
            raise ValidationError("Contribution amount must be greater than zero.")
        return amount


class JoinGroupForm(forms.Form):
    invite_code = forms.CharField(max_length=40)

    def clean_invite_code(self):
        code = sanitize_invite_code(self.cleaned_data.get('invite_code'))
        if not INVITE_CODE_MIN_LENGTH <= len(code) <= INVITE_CODE_MAX_LENGTH:
            raise ValidationError(
                f"Invite code must be {INVITE_CODE_MIN_LENGTH}-{INVITE_CODE_MAX_LENGTH} letters or numbers."
            )
        return code


class StartCycleForm(forms.Form):
    start_date = forms.DateField()
    due_date = forms.DateField()

    def clean(self):
        cleaned_data = super().clean()
        start_date = cleaned_data.get('start_date')
        due_date = cleaned_data.get('due_date')

        if start_date and due_date and start_date >= due_date:
            raise ValidationError("Start date must be before due date.")

        return cleaned_data


class MoveQueueForm(forms.Form):
    DIRECTION_CHOICES = [
        ('up', 'Up'),
        ('down', 'Down'),
    ]

    direction = forms.ChoiceField(choices=DIRECTION_CHOICES)


def form_errors(form):
    """Flatten form errors into {field: [messages]}"""
    return {field: [str(e) for e in errors] for field, errors in form.errors.items()}
