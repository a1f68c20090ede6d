# core/forms.py
from django import forms
from django.core.exceptions import ValidationError

from .models import Category, FinanceDashboard, Profile, Transaction


class TransactionForm(forms.ModelForm):
    class Meta:
        model = Transaction
        fields = ['date', 'type', 'category', 'amount', 'description']
        widgets = {
            'date': forms.DateInput(attrs={'type': 'date', 'class': 'form-control'}),
            'amount': forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01'}),
        }

    def clean_amount(self):
        amount = self.cleaned_data['amount']
        if amount <= 0:
            raise ValidationError('Amount must be greater than zero.')
        return amount

    def clean_category(self):
        category = self.cleaned_data['category'].strip()
        if not category:
            raise ValidationError('Category is required.')
        return category


class CategoryForm(forms.ModelForm):
    """Create or rename a category."""
    class Meta:
        model = Category
        fields = ['name', 'type']
        widgets = {
            'name': forms.TextInput(attrs={'class': 'form-control'}),
            'type': forms.Select(attrs={'class': 'form-control'}),
        }


class CategoryRenameForm(forms.Form):
    name = forms.CharField(max_length=100)


class DashboardForm(forms.ModelForm):
    """Create or rename a dashboard."""
    class Meta:
        model = FinanceDashboard
        fields = ['name']
        widgets = {
            'name': forms.TextInput(attrs={'class': 'form-control'}),
        }


class ProfileForm(forms.ModelForm):
    class Meta:
        model = Profile
        fields = ['username']


class CSVImportForm(forms.Form):
    csv_file = forms.FileField()

    def clean_csv_file(self):
        csv_file = self.cleaned_data['csv_file']
        if not csv_file.name.lower().endswith('.csv'):
            raise ValidationError('Please upload a CSV file')
        return csv_file


class PeriodForm(forms.Form):
    """Month and year of a report; both default to the session selection."""
    month = forms.IntegerField(min_value=1, max_value=12, required=False)
    year = forms.IntegerField(min_value=1, max_value=9999, required=False)
