from datetime import timedelta

from django.db.models import Q, Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, OpenApiParameter

from availability.services import ledger
from core.dates import DateRange
from reservations.models import Reservation
from rooms.models import IndividualRoom, RoomType
from structures.models import Structure
from .serializers import CalendarQuerySerializer, DashboardSerializer
from .services import get_calendar

UPCOMING_LIMIT = 5


def _owns_scope(user, scope, scope_id):
    if scope == "structure":
        return Structure.objects.filter(pk=scope_id, user=user).exists()
    if scope == "room_type":
        return RoomType.objects.filter(pk=scope_id, structure__user=user).exists()
    return IndividualRoom.objects.filter(pk=scope_id, structure__user=user).exists()


@extend_schema(
    tags=["dashboard"],
    summary="Calendar grid for a structure, room type or room",
    parameters=[
        OpenApiParameter(name="scope", type=str, location=OpenApiParameter.QUERY,
                         enum=["structure", "room_type", "room"]),
        OpenApiParameter(name="scope_id", type=int, location=OpenApiParameter.QUERY, required=True),
        OpenApiParameter(name="start_date", type=str, location=OpenApiParameter.QUERY, required=True),
        OpenApiParameter(name="end_date", type=str, location=OpenApiParameter.QUERY, required=True,
                         description="Last visible day, inclusive"),
    ],
)
class CalendarView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        query = CalendarQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data
        if not _owns_scope(request.user, params["scope"], params["scope_id"]):
            return Response(
                {"success": False, "message": f"{params['scope']} {params['scope_id']} not found."},
                status=404,
            )
        date_range = DateRange.inclusive(params["start_date"], params["end_date"])
        return Response({
            "success": True,
            "data": get_calendar(params["scope"], params["scope_id"], date_range),
        })


@extend_schema(
    tags=["dashboard"],
    summary="Today's front-desk widgets for a structure",
    parameters=[
        OpenApiParameter(name="structure_id", type=int, location=OpenApiParameter.QUERY, required=True),
    ],
    responses={200: DashboardSerializer},
)
class DashboardWidgetsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        structure = get_object_or_404(
            Structure, pk=request.query_params.get("structure_id"), user=request.user
        )
        today = timezone.localdate()
        reservations = Reservation.objects.filter(structure=structure)
        active = reservations.filter(status__in=Reservation.ACTIVE_STATUSES)

        # Upcoming arrivals and departures, soonest first
        upcoming_events = []
        window_end = today + timedelta(days=30)
        upcoming = active.filter(
            Q(check_in_date__gte=today, check_in_date__lte=window_end)
            | Q(check_out_date__gte=today, check_out_date__lte=window_end, status=Reservation.Status.CHECKED_IN)
        ).select_related("guest", "individual_room")
        for reservation in upcoming:
            if reservation.check_in_date >= today and reservation.status != Reservation.Status.CHECKED_IN:
                event, event_date = "check_in", reservation.check_in_date
            else:
                event, event_date = "check_out", reservation.check_out_date
            upcoming_events.append({
                "reservation_id": reservation.pk,
                "confirmation_number": reservation.confirmation_number,
                "event": event,
                "guest_name": reservation.guest.full_name if reservation.guest else "—",
                "room_number": reservation.individual_room.room_number if reservation.individual_room else None,
                "nights": reservation.nights,
                "amount": reservation.total_amount,
                "date": event_date,
            })
        upcoming_events = sorted(upcoming_events, key=lambda e: e["date"])[:UPCOMING_LIMIT]

        in_house = reservations.filter(status=Reservation.Status.CHECKED_IN)
        guests = in_house.aggregate(total=Sum("adults") + Sum("children"))["total"] or 0

        available_units = sum(
            ledger.get_availability(room_type, today)["quantity"]
            for room_type in structure.room_types.filter(is_active=True)
        )

        data = {
            "today_date": today,
            "overview": {
                "checkins_today": active.filter(check_in_date=today).exclude(
                    status=Reservation.Status.CHECKED_IN
                ).count(),
                "checkouts_today": in_house.filter(check_out_date=today).count(),
                "guests_in_structure": guests,
                "available_units_today": available_units,
                "occupied_rooms": IndividualRoom.objects.filter(
                    structure=structure, status=IndividualRoom.Status.OCCUPIED
                ).count(),
                "needs_assignment": active.filter(needs_assignment=True).count(),
            },
            "upcoming_events": upcoming_events,
        }
        return Response(DashboardSerializer(data).data)
