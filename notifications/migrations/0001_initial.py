from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="OutboxEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("event_type", models.CharField(choices=[("order:created", "Order created"), ("order:updated", "Order updated"), ("order:cancelled", "Order cancelled"), ("table:updated", "Table updated"), ("payment:completed", "Payment completed"), ("printer:error", "Printer error")], max_length=40)),
                ("payload", models.JSONField(default=dict)),
                ("groups", models.JSONField(default=list, help_text="Channel groups the event fans out to")),
                ("status", models.CharField(choices=[("PENDING", "Pending"), ("DELIVERED", "Delivered")], db_index=True, default="PENDING", max_length=20)),
                ("attempts", models.PositiveIntegerField(default=0)),
                ("last_error", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "ordering": ["id"],
            },
        ),
    ]
