# dashboard/serializers.py
from rest_framework import serializers

from core.dates import MAX_WINDOW_NIGHTS
from .services import SCOPES


class CalendarQuerySerializer(serializers.Serializer):
    scope = serializers.ChoiceField(choices=SCOPES, default="structure")
    scope_id = serializers.IntegerField()
    start_date = serializers.DateField()
    end_date = serializers.DateField(help_text="Last visible day, inclusive")

    def validate(self, attrs):
        if attrs["end_date"] < attrs["start_date"]:
            raise serializers.ValidationError({"end_date": "end_date must be on or after start_date."})
        if (attrs["end_date"] - attrs["start_date"]).days + 1 > MAX_WINDOW_NIGHTS:
            raise serializers.ValidationError(
                {"end_date": f"The calendar window cannot exceed {MAX_WINDOW_NIGHTS} days."}
            )
        return attrs


class OverviewSerializer(serializers.Serializer):
    checkins_today = serializers.IntegerField()
    checkouts_today = serializers.IntegerField()
    guests_in_structure = serializers.IntegerField()
    available_units_today = serializers.IntegerField()
    occupied_rooms = serializers.IntegerField()
    needs_assignment = serializers.IntegerField()


class UpcomingEventSerializer(serializers.Serializer):
    reservation_id = serializers.IntegerField()
    confirmation_number = serializers.CharField()
    event = serializers.CharField()
    guest_name = serializers.CharField()
    room_number = serializers.CharField(allow_null=True)
    nights = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    date = serializers.DateField()


class DashboardSerializer(serializers.Serializer):
    today_date = serializers.DateField()
    overview = OverviewSerializer()
    upcoming_events = UpcomingEventSerializer(many=True)
