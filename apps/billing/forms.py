from django import forms


class InitiateTransferForm(forms.Form):
    from_wallet_id = forms.CharField(max_length=128)
    to_address = forms.CharField(max_length=128)
