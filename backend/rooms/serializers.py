from rest_framework import serializers
from core.exceptions import ReadOnlyEntity
from reservations.services import manager, with_retry
from .models import RoomType, IndividualRoom
from .services import registry


class RoomTypeSerializer(serializers.ModelSerializer):
    is_read_only = serializers.BooleanField(read_only=True)
    rooms_count = serializers.SerializerMethodField()

    class Meta:
        model = RoomType
        fields = [
            "id",
            "structure",
            "name",
            "internal_room_type_id",
            "quantity",
            "base_price",
            "tax_rate",
            "max_occupancy",
            "amenities",
            "is_active",
            "is_synced",
            "is_read_only",
            "rooms_count",
            "created_at",
            "updated_at",
        ]
        # Set only by the PMS sync
        read_only_fields = ["id", "is_synced", "is_read_only", "rooms_count", "created_at", "updated_at"]

    def get_rooms_count(self, obj):
        return obj.rooms.count()

    def validate_structure(self, structure):
        request = self.context.get("request")
        if request and structure.user_id != request.user.id:
            raise serializers.ValidationError("You do not own this structure.")
        return structure

    def validate_quantity(self, value):
        if value < 1:
            raise serializers.ValidationError("Quantity must be at least 1.")
        return value

    def validate_max_occupancy(self, value):
        if value < 1:
            raise serializers.ValidationError("max_occupancy must be at least 1.")
        return value

    def update(self, instance, validated_data):
        new_quantity = validated_data.pop("quantity", instance.quantity)
        new_price = validated_data.get("base_price", instance.base_price)
        if instance.is_read_only and (
            new_quantity != instance.quantity or new_price != instance.base_price
        ):
            raise ReadOnlyEntity(
                "Quantity and base price of this room type are synced from an external PMS."
            )

        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save()

        if new_quantity != instance.quantity:
            # Goes through the ledger so future availability follows the new size
            with_retry(manager.resize_room_type, instance, new_quantity)
        return instance


class IndividualRoomSerializer(serializers.ModelSerializer):
    room_type_name = serializers.CharField(source="room_type.name", read_only=True)

    class Meta:
        model = IndividualRoom
        fields = [
            "id",
            "structure",
            "room_type",
            "room_type_name",
            "room_number",
            "floor_number",
            "wing",
            "notes",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "structure", "room_type_name", "created_at", "updated_at"]

    def validate_floor_number(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError(
                "floor_number must be a non-negative integer."
            )
        return value

    def validate_room_number(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("room_number cannot be blank.")
        return value

    def validate(self, attrs):
        # Room numbers are unique per structure, including on rename
        if self.instance and "room_number" in attrs:
            room_type = attrs.get("room_type", self.instance.room_type)
            clash = IndividualRoom.objects.filter(
                structure_id=room_type.structure_id, room_number=attrs["room_number"]
            ).exclude(id=self.instance.id)
            if clash.exists():
                raise serializers.ValidationError(
                    {"room_number": "This room number already exists in the structure."}
                )
        return attrs

    def create(self, validated_data):
        room_type = validated_data.pop("room_type")
        room_number = validated_data.pop("room_number")
        floor_number = validated_data.pop("floor_number", None)
        return registry.create(room_type, room_number, floor_number, **validated_data)

    def update(self, instance, validated_data):
        room_type = validated_data.get("room_type")
        if room_type and room_type.structure_id != instance.structure_id:
            raise serializers.ValidationError(
                {"room_type": "A room cannot move to another structure."}
            )
        return super().update(instance, validated_data)


class GenerateRoomsSerializer(serializers.Serializer):
    prefix = serializers.CharField(max_length=16, allow_blank=True, default="")
    start_number = serializers.IntegerField(min_value=0, default=1)
    count = serializers.IntegerField(min_value=1, max_value=500)
    floor_number = serializers.IntegerField(min_value=0, required=False, allow_null=True)


class RoomStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=IndividualRoom.Status.choices)

