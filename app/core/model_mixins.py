"""
Model mixins providing reusable functionality for Django models.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key
    SlugMixin: Auto-generated URL slugs
    MetadataMixin: Flexible JSON metadata storage

Usage:
    from core.models import BaseModel
    from core.model_mixins import SlugMixin, UUIDPrimaryKeyMixin

    class Course(UUIDPrimaryKeyMixin, SlugMixin, BaseModel):
        title = models.CharField(max_length=200)

        def get_slug_source(self):
            return self.title

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import models
from django.utils.text import slugify

if TYPE_CHECKING:
    from typing import Any


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Course and checkout identifiers appear in URLs and gateway metadata,
    so they must not reveal record counts.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True


class SlugMixin(models.Model):
    """
    Add URL-safe slug field with auto-generation support.

    Example: "Intro to Django" -> "intro-to-django", a second course with
    the same title gets "intro-to-django-1".

    Override:
        get_slug_source(): Return the string to slugify (required)

    Note:
        If slug is provided explicitly, it won't be auto-generated.
    """

    slug = models.SlugField(
        max_length=255,
        unique=True,
        db_index=True,
        help_text="URL-safe identifier for this record",
    )

    class Meta:
        abstract = True

    def get_slug_source(self) -> str:
        raise NotImplementedError(
            f"{self.__class__.__name__} must implement get_slug_source()"
        )

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.slug:
            base_slug = slugify(self.get_slug_source()) or "item"
            slug = base_slug
            counter = 1
            model = self.__class__

            while model.objects.filter(slug=slug).exclude(pk=self.pk).exists():
                slug = f"{base_slug}-{counter}"
                counter += 1

            self.slug = slug

        super().save(*args, **kwargs)


class MetadataMixin(models.Model):
    """
    Flexible JSON metadata storage.

    Used for gateway payload fragments (transaction ids, raw statuses)
    that are kept for support but never queried.
    """

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Flexible key-value metadata storage",
    )

    class Meta:
        abstract = True

    def get_meta(self, key: str, default: Any = None) -> Any:
        return self.metadata.get(key, default)
