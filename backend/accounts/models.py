from decimal import Decimal

from django.db import models
from django.contrib.auth.models import AbstractUser


class User(AbstractUser):
    """Extended user model with role selection"""
    ROLE_CHOICES = [
        ('rider', 'Rider'),
        ('driver', 'Driver'),
    ]

    # Role & basic info
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default='rider')
    phone_number = models.CharField(max_length=15, blank=True)
    rating = models.DecimalField(max_digits=3, decimal_places=2, default=Decimal('5.00'))

    class Meta:
        db_table = 'users'

    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"

    @property
    def display_name(self):
        return self.get_full_name() or self.username
