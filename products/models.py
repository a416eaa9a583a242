from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _


class Category(models.Model):
    name = models.CharField(
        max_length=100, unique=True, help_text=_("Name of the menu category.")
    )
    is_buffet = models.BooleanField(
        default=False,
        help_text=_("All-you-can-eat category billed per person instead of per item."),
    )
    buffet_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text=_("Per-person price. Required for buffet categories."),
    )
    sort_order = models.IntegerField(
        default=0,
        help_text=_("Display order for this category. Lower numbers appear first."),
    )

    class Meta:
        verbose_name_plural = "categories"
        ordering = ["sort_order", "name"]
        constraints = [
            models.CheckConstraint(
                condition=Q(is_buffet=False) | Q(buffet_price__isnull=False),
                name="buffet_category_has_price",
            ),
        ]

    def clean(self):
        if self.is_buffet and self.buffet_price is None:
            raise ValidationError({"buffet_price": _("Buffet categories need a per-person price.")})

    def __str__(self):
        return self.name


class MenuItem(models.Model):
    category = models.ForeignKey(
        Category, on_delete=models.PROTECT, related_name="items"
    )
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    always_priced = models.BooleanField(
        default=False,
        help_text=_("Billed even while a buffet is active on the table (e.g. premium drinks)."),
    )
    available = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["category__sort_order", "name"]

    def __str__(self):
        return self.name
