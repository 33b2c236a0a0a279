from rest_framework import serializers
from rooms.models import RoomType
from .models import PricingRule, PricingTemplate
from .services import resolver


def _check_owner(context, structure):
    request = context.get("request")
    if request and structure.user_id != request.user.id:
        raise serializers.ValidationError("You do not own this structure.")


# --------------------- Pricing Rule Serializer ---------------------
class PricingRuleSerializer(serializers.ModelSerializer):
    room_type = serializers.PrimaryKeyRelatedField(queryset=RoomType.objects.select_related("structure"))
    span_days = serializers.IntegerField(read_only=True)

    class Meta:
        model = PricingRule
        fields = [
            "id",
            "room_type",
            "start_date",
            "end_date",
            "price_per_night",
            "min_stay",
            "max_stay",
            "pricing_type",
            "template",
            "color_code",
            "label",
            "notes",
            "is_active",
            "span_days",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "pricing_type", "template", "span_days", "created_at", "updated_at"]

    def validate_room_type(self, room_type):
        _check_owner(self.context, room_type.structure)
        return room_type

    def validate_price_per_night(self, value):
        if value < 0:
            raise serializers.ValidationError("Price cannot be negative.")
        return value

    def validate(self, attrs):
        start = attrs.get("start_date", getattr(self.instance, "start_date", None))
        end = attrs.get("end_date", getattr(self.instance, "end_date", None))
        if start and end and end < start:
            raise serializers.ValidationError({"end_date": "end_date must be on or after start_date."})
        min_stay = attrs.get("min_stay", getattr(self.instance, "min_stay", 1))
        max_stay = attrs.get("max_stay", getattr(self.instance, "max_stay", None))
        if min_stay is not None and min_stay < 1:
            raise serializers.ValidationError({"min_stay": "min_stay must be at least 1."})
        if max_stay is not None and min_stay and max_stay < min_stay:
            raise serializers.ValidationError({"max_stay": "max_stay must be greater than or equal to min_stay."})
        return attrs

    def create(self, validated_data):
        return resolver.create_rule(
            validated_data.pop("room_type"),
            validated_data.pop("start_date"),
            validated_data.pop("end_date"),
            validated_data.pop("price_per_night"),
            **validated_data,
        )

    def update(self, instance, validated_data):
        resolver.ensure_writable(instance.room_type)
        room_type = validated_data.get("room_type")
        if room_type is not None:
            resolver.ensure_writable(room_type)
        return super().update(instance, validated_data)


# --------------------- Pricing Template Serializer ---------------------
class PricingTemplateSerializer(serializers.ModelSerializer):
    class Meta:
        model = PricingTemplate
        fields = [
            "id",
            "structure",
            "name",
            "description",
            "adjustment_type",
            "adjustment_value",
            "min_stay",
            "max_stay",
            "color_code",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_structure(self, structure):
        _check_owner(self.context, structure)
        return structure

    def validate(self, attrs):
        min_stay = attrs.get("min_stay", getattr(self.instance, "min_stay", 1))
        max_stay = attrs.get("max_stay", getattr(self.instance, "max_stay", None))
        if max_stay is not None and max_stay < min_stay:
            raise serializers.ValidationError({"max_stay": "max_stay must be greater than or equal to min_stay."})
        return attrs


# --------------------- Apply Template Serializer ---------------------
class ApplyTemplateSerializer(serializers.Serializer):
    room_type = serializers.PrimaryKeyRelatedField(queryset=RoomType.objects.select_related("structure"))
    start_date = serializers.DateField()
    end_date = serializers.DateField()

    def validate(self, attrs):
        _check_owner(self.context, attrs["room_type"].structure)
        if attrs["end_date"] < attrs["start_date"]:
            raise serializers.ValidationError({"end_date": "end_date must be on or after start_date."})
        return attrs
