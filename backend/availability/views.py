from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiResponse, OpenApiExample

from core.dates import DateRange
from rooms.models import RoomType
from reservations.services import manager, with_retry
from .serializers import BlockSerializer, UnblockSerializer
from .services import ledger


@extend_schema(
    tags=["availability"],
    summary="Per-night availability of a room type",
    parameters=[
        OpenApiParameter(name="room_type_id", type=int, location=OpenApiParameter.QUERY, required=True),
        OpenApiParameter(name="start_date", type=str, location=OpenApiParameter.QUERY, required=True,
                         description="First night (YYYY-MM-DD)"),
        OpenApiParameter(name="end_date", type=str, location=OpenApiParameter.QUERY, required=True,
                         description="Last night (YYYY-MM-DD), inclusive"),
    ],
    responses={200: OpenApiResponse(description="One entry per night")},
)
class AvailabilityRangeView(APIView):
    """
    GET → availability snapshot for every night of the window.
    Dates without a ledger row report the room type's full quantity.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        room_type = generics.get_object_or_404(
            RoomType,
            pk=request.query_params.get("room_type_id"),
            structure__user=request.user,
        )
        date_range = DateRange.inclusive(
            request.query_params.get("start_date"), request.query_params.get("end_date")
        ).check_length()
        return Response({
            "success": True,
            "data": ledger.get_range(room_type, date_range),
        })


@extend_schema(
    tags=["availability"],
    summary="Block dates of a room type",
    request=BlockSerializer,
    responses={
        200: OpenApiResponse(description="Dates blocked"),
        403: OpenApiResponse(description="Room type is synced from an external PMS"),
    },
    examples=[
        OpenApiExample(
            name="Block for renovation",
            value={
                "room_type": 1,
                "start_date": "2025-08-01",
                "end_date": "2025-08-05",
                "reason": "Renovation",
                "status": "maintenance",
            },
            request_only=True,
        )
    ],
)
class BlockDatesView(APIView):
    """
    POST → take every night of the window off sale.
    Reservations already on those dates are kept.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = BlockSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        date_range = DateRange.inclusive(data["start_date"], data["end_date"])
        nights = with_retry(
            manager.block_dates, data["room_type"], date_range, reason=data.get("reason"), status=data["status"]
        )
        return Response(
            {
                "success": True,
                "message": f"Blocked {date_range.nights} night(s).",
                "data": nights,
            },
            status=status.HTTP_200_OK,
        )


@extend_schema(
    tags=["availability"],
    summary="Unblock dates of a room type",
    request=UnblockSerializer,
    responses={
        200: OpenApiResponse(description="Dates back on sale"),
        403: OpenApiResponse(description="Room type is synced from an external PMS"),
    },
)
class UnblockDatesView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = UnblockSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        date_range = DateRange.inclusive(data["start_date"], data["end_date"])
        nights = with_retry(
            manager.unblock_dates, data["room_type"], date_range, release_withheld=data["release_withheld"]
        )
        return Response({
            "success": True,
            "message": f"Unblocked {date_range.nights} night(s).",
            "data": nights,
        })
