from decimal import Decimal

from django import forms
from django.contrib.auth import get_user_model

from .models import SignerRole


class GenerateLeaseForm(forms.Form):
    tenant = forms.ModelChoiceField(queryset=get_user_model().objects.filter(is_active=True))
    property_id = forms.UUIDField()
    monthly_rent = forms.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0.01"))
    security_deposit = forms.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal("0.01"))
    start_date = forms.DateField()
    end_date = forms.DateField()
    rent_due_day = forms.IntegerField(min_value=1, max_value=28, required=False)

    def clean(self):
        cleaned_data = super().clean()
        start_date = cleaned_data.get("start_date")
        end_date = cleaned_data.get("end_date")
        if start_date and end_date and end_date <= start_date:
            raise forms.ValidationError("End date must be after start date.")
        return cleaned_data

    def terms(self):
        return {
            key: self.cleaned_data[key]
            for key in ("monthly_rent", "security_deposit", "start_date", "end_date", "rent_due_day")
        }


class SignLeaseForm(forms.Form):
    signer_role = forms.ChoiceField(choices=SignerRole.choices)
    wallet_id = forms.CharField(max_length=128)
    signature = forms.CharField()
    message = forms.CharField(strip=False)


class TerminateLeaseForm(forms.Form):
    reason = forms.CharField(required=False, max_length=2000)
