import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Category",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(help_text="Name of the menu category.", max_length=100, unique=True)),
                ("is_buffet", models.BooleanField(default=False, help_text="All-you-can-eat category billed per person instead of per item.")),
                ("buffet_price", models.DecimalField(blank=True, decimal_places=2, help_text="Per-person price. Required for buffet categories.", max_digits=10, null=True)),
                ("sort_order", models.IntegerField(default=0, help_text="Display order for this category. Lower numbers appear first.")),
            ],
            options={
                "verbose_name_plural": "categories",
                "ordering": ["sort_order", "name"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("is_buffet", False), ("buffet_price__isnull", False), _connector="OR"),
                        name="buffet_category_has_price",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="MenuItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True)),
                ("price", models.DecimalField(decimal_places=2, max_digits=10)),
                ("always_priced", models.BooleanField(default=False, help_text="Billed even while a buffet is active on the table (e.g. premium drinks).")),
                ("available", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("category", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="items", to="products.category")),
            ],
            options={
                "ordering": ["category__sort_order", "name"],
            },
        ),
    ]
