from rest_framework import viewsets, mixins, filters, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.exceptions import ValidationError
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import (
    extend_schema,
    OpenApiResponse,
    OpenApiParameter,
    OpenApiExample,
)
from django.shortcuts import get_object_or_404

from core.dates import DateRange, parse_date
from structures.models import Structure
from .assignment import assigner
from .models import Reservation
from .serializers import (
    ReservationSerializer,
    ReservationCreateSerializer,
    StatusChangeSerializer,
    MoveSerializer,
    AssignSerializer,
    PaymentStatusSerializer,
)
from .services import manager, with_retry


def _owned(request, obj, field):
    if obj is not None and obj.structure.user_id != request.user.id:
        raise ValidationError({field: "You do not own this resource."})
    return obj


class ReservationViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Reservations are created, moved and cancelled through the reservation
    manager so the availability ledger always follows them. There is no
    delete: cancel instead.
    """
    serializer_class = ReservationSerializer
    permission_classes = [IsAuthenticated]

    # Filtering & search
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = [
        "structure",
        "room_type",
        "individual_room",
        "status",
        "needs_assignment",
        "check_in_date",
        "check_out_date",
    ]
    search_fields = ["confirmation_number", "guest__email", "guest__last_name"]

    def get_queryset(self):
        return (
            Reservation.objects.filter(structure__user=self.request.user)
            .select_related("room_type", "individual_room", "guest")
            .prefetch_related("status_logs")
        )

    @extend_schema(
        summary="Create a reservation",
        request=ReservationCreateSerializer,
        responses={
            201: ReservationSerializer,
            400: OpenApiResponse(description="Invalid dates or stay constraints"),
            409: OpenApiResponse(description="Not enough inventory"),
        },
        examples=[
            OpenApiExample(
                "Create Reservation",
                value={
                    "room_type": 1,
                    "check_in_date": "2025-03-01",
                    "check_out_date": "2025-03-03",
                    "guest": {"email": "john@example.com", "first_name": "John", "last_name": "Doe"},
                    "adults": 2,
                },
                request_only=True,
            )
        ],
    )
    def create(self, request, *args, **kwargs):
        serializer = ReservationCreateSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        guest = data.get("guest") or {}
        guest_profile = {k: v for k, v in guest.items() if k != "email"}

        reservation = with_retry(
            manager.create,
            data["room_type"],
            DateRange(data["check_in_date"], data["check_out_date"]),
            guest_ref=data.get("guest_id"),
            guest_email=guest.get("email"),
            guest_profile=guest_profile,
            adults=data["adults"],
            children=data["children"],
            infants=data["infants"],
            status=data.get("status"),
            payment_status=data["payment_status"],
            special_requests=data["special_requests"],
            auto_assign=data["auto_assign"],
        )
        return Response(
            ReservationSerializer(manager.get(reservation.pk)).data,
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(
        summary="Change reservation status",
        request=StatusChangeSerializer,
        responses={
            200: ReservationSerializer,
            409: OpenApiResponse(description="Transition not allowed"),
        },
        examples=[OpenApiExample("Confirm", value={"status": "confirmed"}, request_only=True)],
    )
    @action(detail=True, methods=["post"], url_path="status")
    def change_status(self, request, pk=None):
        reservation = self.get_object()
        serializer = StatusChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with_retry(
            manager.change_status,
            reservation,
            serializer.validated_data["status"],
            note=serializer.validated_data["note"],
        )
        return Response(ReservationSerializer(manager.get(reservation.pk)).data)

    @extend_schema(summary="Cancel a reservation", request=None, responses={200: ReservationSerializer})
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        reservation = self.get_object()
        with_retry(manager.cancel, reservation, note=request.data.get("note", ""))
        return Response(ReservationSerializer(manager.get(reservation.pk)).data)

    @extend_schema(
        summary="Move a reservation to another room type or room",
        request=MoveSerializer,
        responses={
            200: ReservationSerializer,
            409: OpenApiResponse(description="Target not available for the whole stay"),
        },
        examples=[OpenApiExample("Move to room", value={"individual_room": 12}, request_only=True)],
    )
    @action(detail=True, methods=["post"])
    def move(self, request, pk=None):
        reservation = self.get_object()
        serializer = MoveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        target_type = _owned(request, serializer.validated_data.get("room_type"), "room_type")
        target_room = _owned(request, serializer.validated_data.get("individual_room"), "individual_room")
        with_retry(manager.move, reservation, target_room_type=target_type, target_room=target_room)
        return Response(ReservationSerializer(manager.get(reservation.pk)).data)

    @extend_schema(
        summary="Assign a physical room",
        description="Without individual_room the first free room of the reservation's type is picked.",
        request=AssignSerializer,
        responses={
            200: ReservationSerializer,
            409: OpenApiResponse(description="Room not available for the stay"),
        },
    )
    @action(detail=True, methods=["post"])
    def assign(self, request, pk=None):
        reservation = self.get_object()
        serializer = AssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        room = _owned(request, serializer.validated_data.get("individual_room"), "individual_room")
        if room is None:
            assigner.auto_assign(reservation)
        else:
            assigner.manual_assign(reservation, room)
        return Response(ReservationSerializer(manager.get(reservation.pk)).data)

    @extend_schema(summary="Release the physical room", request=None, responses={200: ReservationSerializer})
    @action(detail=True, methods=["post"])
    def unassign(self, request, pk=None):
        reservation = self.get_object()
        assigner.unassign(reservation)
        return Response(ReservationSerializer(manager.get(reservation.pk)).data)

    @extend_schema(summary="Record the payment status", request=PaymentStatusSerializer,
                   responses={200: ReservationSerializer})
    @action(detail=True, methods=["post"])
    def payment(self, request, pk=None):
        reservation = self.get_object()
        serializer = PaymentStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        manager.set_payment_status(reservation, serializer.validated_data["payment_status"])
        return Response(ReservationSerializer(manager.get(reservation.pk)).data)

    @extend_schema(
        summary="Arrivals of a structure for a day",
        parameters=[
            OpenApiParameter(name="structure_id", type=int, location=OpenApiParameter.QUERY, required=True),
            OpenApiParameter(name="date", type=str, location=OpenApiParameter.QUERY, required=False,
                             description="Defaults to today (YYYY-MM-DD)"),
        ],
        responses={200: ReservationSerializer(many=True)},
    )
    @action(detail=False, methods=["get"])
    def arrivals(self, request):
        structure = get_object_or_404(
            Structure, pk=request.query_params.get("structure_id"), user=request.user
        )
        day = request.query_params.get("date")
        day = parse_date(day) if day else None
        reservations = manager.arrivals(structure, day)
        return Response(ReservationSerializer(reservations, many=True).data)
