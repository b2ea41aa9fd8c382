"""
Site Models - Job sites that consume materials.

Site Status:
    ACTIVE -> COMPLETED
    ACTIVE <-> ON_HOLD
"""
from django.core.exceptions import ValidationError
from django.db import models


class Site(models.Model):
    """
    A construction or interior fit-out job site.

    Usage events reference sites by id only; deleting a site leaves its
    usage history behind.
    """

    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        COMPLETED = 'completed', 'Completed'
        ON_HOLD = 'on_hold', 'On Hold'

    name = models.CharField(
        max_length=200,
        db_index=True,
        help_text="Site or project name"
    )
    location = models.CharField(
        max_length=300,
        help_text="Site address or location description"
    )
    start_date = models.DateField(help_text="Date work started")
    end_date = models.DateField(
        null=True,
        blank=True,
        help_text="Planned or actual completion date"
    )
    supervisor = models.CharField(max_length=150, blank=True, null=True)
    manager = models.CharField(max_length=150, blank=True, null=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True,
        help_text="Current site status"
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Site'
        verbose_name_plural = 'Sites'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} - {self.location}"

    def clean(self):
        if self.end_date and self.start_date and self.end_date < self.start_date:
            raise ValidationError({'end_date': "End date cannot be before start date"})

    @property
    def is_active(self) -> bool:
        return self.status == self.Status.ACTIVE
