from rest_framework import serializers

from .models import Payment


class PaymentEventSerializer(serializers.ModelSerializer):
    table = serializers.IntegerField(source="order.table_id", read_only=True)

    class Meta:
        model = Payment
        fields = ["id", "order", "table", "amount", "method", "reference", "created_at"]
