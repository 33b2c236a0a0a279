from rest_framework import serializers
from core.dates import MAX_WINDOW_NIGHTS
from guests.serializers import GuestProfileSerializer
from rooms.models import IndividualRoom, RoomType
from .models import Reservation, ReservationStatusLog


class ReservationStatusLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = ReservationStatusLog
        fields = ["from_status", "to_status", "note", "changed_at"]


class ReservationSerializer(serializers.ModelSerializer):
    guest = GuestProfileSerializer(read_only=True)
    room_type_name = serializers.CharField(source="room_type.name", read_only=True)
    room_number = serializers.SerializerMethodField()
    status_logs = ReservationStatusLogSerializer(many=True, read_only=True)

    class Meta:
        model = Reservation
        fields = [
            "id",
            "structure",
            "confirmation_number",
            "room_type",
            "room_type_name",
            "individual_room",
            "room_number",
            "needs_assignment",
            "guest",
            "check_in_date",
            "check_out_date",
            "nights",
            "adults",
            "children",
            "infants",
            "special_requests",
            "status",
            "status_changed_at",
            "cancelled_at",
            "rate_breakdown",
            "base_amount",
            "taxes",
            "fees",
            "total_amount",
            "currency",
            "payment_status",
            "status_logs",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_room_number(self, obj):
        return obj.individual_room.room_number if obj.individual_room else None


class GuestInputSerializer(serializers.Serializer):
    email = serializers.EmailField()
    first_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    last_name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=30, required=False, allow_blank=True)
    nationality = serializers.CharField(max_length=100, required=False, allow_blank=True)
    language_preference = serializers.CharField(max_length=10, required=False, allow_blank=True)


class ReservationCreateSerializer(serializers.Serializer):
    room_type = serializers.PrimaryKeyRelatedField(queryset=RoomType.objects.select_related("structure"))
    check_in_date = serializers.DateField()
    check_out_date = serializers.DateField()
    guest_id = serializers.IntegerField(required=False)
    guest = GuestInputSerializer(required=False)
    adults = serializers.IntegerField(min_value=1, default=1)
    children = serializers.IntegerField(min_value=0, default=0)
    infants = serializers.IntegerField(min_value=0, default=0)
    status = serializers.ChoiceField(
        choices=[Reservation.Status.TENTATIVE, Reservation.Status.CONFIRMED], required=False
    )
    payment_status = serializers.ChoiceField(choices=Reservation.PAYMENT_STATUS_CHOICES, default="pending")
    special_requests = serializers.CharField(required=False, allow_blank=True, default="")
    auto_assign = serializers.BooleanField(default=True)

    def validate_room_type(self, room_type):
        request = self.context.get("request")
        if request and room_type.structure.user_id != request.user.id:
            raise serializers.ValidationError("You do not own this room type.")
        return room_type

    def validate(self, attrs):
        if attrs["check_out_date"] <= attrs["check_in_date"]:
            raise serializers.ValidationError({"check_out_date": "Check-out must be after check-in."})
        if (attrs["check_out_date"] - attrs["check_in_date"]).days > MAX_WINDOW_NIGHTS:
            raise serializers.ValidationError(
                {"check_out_date": f"A stay cannot exceed {MAX_WINDOW_NIGHTS} nights."}
            )
        if attrs.get("guest_id") and attrs.get("guest"):
            raise serializers.ValidationError("Provide either guest_id or guest, not both.")
        return attrs


class StatusChangeSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Reservation.Status.choices)
    note = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class MoveSerializer(serializers.Serializer):
    room_type = serializers.PrimaryKeyRelatedField(
        queryset=RoomType.objects.select_related("structure"), required=False
    )
    individual_room = serializers.PrimaryKeyRelatedField(
        queryset=IndividualRoom.objects.select_related("room_type"), required=False
    )

    def validate(self, attrs):
        if not attrs.get("room_type") and not attrs.get("individual_room"):
            raise serializers.ValidationError("Either room_type or individual_room is required.")
        return attrs


class AssignSerializer(serializers.Serializer):
    individual_room = serializers.PrimaryKeyRelatedField(
        queryset=IndividualRoom.objects.select_related("room_type"), required=False
    )


class PaymentStatusSerializer(serializers.Serializer):
    payment_status = serializers.ChoiceField(choices=Reservation.PAYMENT_STATUS_CHOICES)
