from django.db import models
from django.contrib.auth.models import User
from django.utils import timezone

from .constants import INCOME, EXPENSE, TYPE_CHOICES


class FinanceDashboard(models.Model):
    """Named, isolated set of categories and transactions of one user."""
    name = models.CharField('Name', max_length=100)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='finance_dashboards')
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = 'Dashboard'
        verbose_name_plural = 'Dashboards'
        ordering = ['created_at', 'id']
        unique_together = ('user', 'name')

    def __str__(self):
        return self.name


class Category(models.Model):
    """Income or expense label, scoped to a user and a dashboard."""
    INCOME = INCOME
    EXPENSE = EXPENSE
    TYPE_CHOICES = TYPE_CHOICES

    name = models.CharField('Name', max_length=100)
    type = models.CharField('Type', max_length=10, choices=TYPE_CHOICES, default=EXPENSE)
    user = models.ForeignKey(User, on_delete=models.CASCADE, verbose_name='User')
    dashboard = models.ForeignKey(FinanceDashboard, on_delete=models.CASCADE, related_name='categories')
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = 'Category'
        verbose_name_plural = 'Categories'
        ordering = ['name']
        unique_together = ('name', 'user', 'dashboard', 'type')

    def __str__(self):
        return f"{self.name} ({self.get_type_display()})"


class Transaction(models.Model):
    """Income or expense record. The category is a label, not a foreign key."""
    INCOME = INCOME
    EXPENSE = EXPENSE

    user = models.ForeignKey(User, on_delete=models.CASCADE)
    dashboard = models.ForeignKey(FinanceDashboard, on_delete=models.CASCADE, related_name='transactions')
    type = models.CharField('Type', max_length=10, choices=TYPE_CHOICES, default=EXPENSE)
    category = models.CharField('Category', max_length=100)
    amount = models.DecimalField('Amount', max_digits=12, decimal_places=2)
    description = models.CharField('Description', max_length=255, blank=True)
    date = models.DateField('Date', default=timezone.localdate)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Transaction'
        verbose_name_plural = 'Transactions'
        ordering = ['-date', '-created_at']
        indexes = [
            models.Index(fields=['user', 'dashboard', 'date'], name='core_txn_user_dash_date_idx'),
        ]

    def __str__(self):
        return f"{self.category} ({self.get_type_display()}) — {self.amount} ({self.date})"

    def as_dict(self):
        return {
            'id': self.pk,
            'date': self.date.isoformat(),
            'type': self.type,
            'category': self.category,
            'amount': str(self.amount),
            'description': self.description,
        }


class Profile(models.Model):
    """Display data of a user, created on first access."""
    user = models.OneToOneField(User, on_delete=models.CASCADE, primary_key=True, related_name='finance_profile')
    email = models.EmailField('Email', blank=True)
    username = models.CharField('Username', max_length=150)

    class Meta:
        verbose_name = 'Profile'
        verbose_name_plural = 'Profiles'

    def __str__(self):
        return self.username
