from rest_framework import serializers

from .models import Order, OrderItem, Table


class TableSerializer(serializers.ModelSerializer):
    class Meta:
        model = Table
        fields = ["id", "name", "status", "updated_at"]


class OrderItemSerializer(serializers.ModelSerializer):
    menu_item_name = serializers.CharField(source="menu_item.name", read_only=True)
    category_id = serializers.IntegerField(source="menu_item.category_id", read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "menu_item",
            "menu_item_name",
            "category_id",
            "quantity",
            "price_at_sale",
            "notes",
        ]


class OrderEventSerializer(serializers.ModelSerializer):
    """Order snapshot pushed to the order list, the KDS and table screens."""

    table_name = serializers.CharField(source="table.name", read_only=True)
    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "table",
            "table_name",
            "status",
            "is_buffet",
            "buffet_category",
            "party_size",
            "subtotal",
            "tax",
            "discount",
            "service_charge",
            "tip",
            "total",
            "notes",
            "items",
            "created_at",
            "updated_at",
        ]
