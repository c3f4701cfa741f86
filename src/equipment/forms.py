"""Request validation for the equipment JSON endpoints."""

from django import forms

from .models import RepairTicket


class RepairTicketCreateForm(forms.Form):
    asset_id = forms.IntegerField(min_value=1)
    problem_desc = forms.CharField(min_length=1)
    started_at = forms.DateTimeField(required=False)
    expected_return_at = forms.DateTimeField(required=False)


class RepairTicketUpdateForm(forms.Form):
    """Partial update; only keys present in the payload are applied."""

    problem_desc = forms.CharField(required=False, min_length=1)
    vendor_name = forms.CharField(
        required=False, max_length=200, empty_value=None
    )
    quote_amount = forms.DecimalField(
        required=False, max_digits=12, decimal_places=2, min_value=0
    )
    expected_return_at = forms.DateTimeField(required=False)

    def clean_problem_desc(self):
        value = self.cleaned_data.get("problem_desc")
        if "problem_desc" in self.data and not value:
            raise forms.ValidationError(
                "Problem description cannot be empty.", code="required"
            )
        return value

    def changed_fields(self, payload):
        return {
            name: self.cleaned_data[name]
            for name in self.fields
            if name in payload
        }


class RepairTicketTransitionForm(forms.Form):
    to = forms.ChoiceField(choices=RepairTicket.STATUS_CHOICES)
    note = forms.CharField(required=False, empty_value=None)
    vendor_name = forms.CharField(
        required=False, max_length=200, empty_value=None
    )
    quote_amount = forms.DecimalField(
        required=False, max_digits=12, decimal_places=2, min_value=0
    )


class BackfillForm(forms.Form):
    limit = forms.IntegerField(required=False)
