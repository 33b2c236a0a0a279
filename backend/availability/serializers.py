from rest_framework import serializers
from core.dates import MAX_WINDOW_NIGHTS
from rooms.models import RoomType
from .models import AvailabilityRecord


class DateWindowSerializer(serializers.Serializer):
    """Inclusive ``[start_date, end_date]`` window on one room type."""

    room_type = serializers.PrimaryKeyRelatedField(queryset=RoomType.objects.select_related("structure"))
    start_date = serializers.DateField()
    end_date = serializers.DateField()

    def validate_room_type(self, room_type):
        request = self.context.get("request")
        if request and room_type.structure.user_id != request.user.id:
            raise serializers.ValidationError("You do not own this room type.")
        return room_type

    def validate(self, data):
        if data["end_date"] < data["start_date"]:
            raise serializers.ValidationError("End date must be on or after start date.")
        if (data["end_date"] - data["start_date"]).days + 1 > MAX_WINDOW_NIGHTS:
            raise serializers.ValidationError(
                {"end_date": f"The window cannot exceed {MAX_WINDOW_NIGHTS} days."}
            )
        return data


class BlockSerializer(DateWindowSerializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, allow_null=True)
    status = serializers.ChoiceField(
        choices=[AvailabilityRecord.Status.BLOCKED, AvailabilityRecord.Status.MAINTENANCE],
        default=AvailabilityRecord.Status.BLOCKED,
    )


class UnblockSerializer(DateWindowSerializer):
    release_withheld = serializers.BooleanField(
        default=False, help_text="Also put units withheld at initialization on sale"
    )
