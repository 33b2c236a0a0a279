from rest_framework import generics, serializers, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import (
    extend_schema,
    OpenApiResponse,
    OpenApiParameter,
    OpenApiExample,
)
from availability.services import ledger
from core.dates import DateRange
from .models import RoomType, IndividualRoom
from .serializers import (
    RoomTypeSerializer,
    IndividualRoomSerializer,
    GenerateRoomsSerializer,
    RoomStatusSerializer,
)
from .services import registry


@extend_schema(
    tags=["room-type"],
    summary="List and create room types",
    parameters=[
        OpenApiParameter(
            name="structure_id",
            type=int,
            location=OpenApiParameter.QUERY,
            description="Filter by structure ID",
            required=False,
        )
    ],
    responses={
        200: RoomTypeSerializer(many=True),
        201: RoomTypeSerializer,
        403: OpenApiResponse(description="Forbidden"),
    },
    examples=[
        OpenApiExample(
            name="Create Room Type",
            value={
                "structure": 1,
                "name": "Double Room",
                "internal_room_type_id": "DBL",
                "quantity": 5,
                "base_price": "100.00",
                "max_occupancy": 2,
                "amenities": "WiFi,TV",
            },
            request_only=True,
        )
    ],
)
class RoomTypeListCreateView(generics.ListCreateAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = RoomTypeSerializer

    def get_queryset(self):
        # Only show types for structures the user owns
        qs = RoomType.objects.filter(structure__user=self.request.user)
        structure_id = self.request.query_params.get("structure_id")
        if structure_id:
            qs = qs.filter(structure_id=structure_id)
        return qs.order_by("name")


@extend_schema(
    tags=["room-type"],
    summary="Retrieve, update, and delete a room type",
    description="Quantity changes are applied to the availability ledger. "
                "Room types synced from an external PMS reject quantity and price edits.",
    responses={
        200: RoomTypeSerializer,
        204: None,
        403: OpenApiResponse(description="Forbidden or synced from an external PMS"),
        409: OpenApiResponse(description="New quantity is below reserved units"),
    },
)
class RoomTypeRetrieveUpdateDestroyView(generics.RetrieveUpdateDestroyAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = RoomTypeSerializer

    def get_queryset(self):
        return RoomType.objects.filter(structure__user=self.request.user).select_related("structure")


@extend_schema(
    tags=["room-type"],
    summary="Generate numbered rooms for a room type",
    request=GenerateRoomsSerializer,
    responses={
        201: IndividualRoomSerializer(many=True),
        409: OpenApiResponse(description="Room numbers already exist; a free start number is suggested"),
    },
    examples=[
        OpenApiExample(
            name="Generate rooms 201-205",
            value={"prefix": "2", "start_number": 1, "count": 5, "floor_number": 2},
            request_only=True,
        )
    ],
)
class GenerateRoomsView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        room_type = generics.get_object_or_404(
            RoomType.objects.select_related("structure"), pk=pk, structure__user=request.user
        )
        serializer = GenerateRoomsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        rooms = registry.generate(room_type, **serializer.validated_data)
        return Response(
            {
                "success": True,
                "message": f"{len(rooms)} rooms created.",
                "data": IndividualRoomSerializer(rooms, many=True).data,
            },
            status=status.HTTP_201_CREATED,
        )


@extend_schema(
    tags=["room-type"],
    summary="Availability and free rooms of a room type for a stay",
    parameters=[
        OpenApiParameter(name="check_in", type=str, location=OpenApiParameter.QUERY, required=True,
                         description="Arrival date (YYYY-MM-DD)"),
        OpenApiParameter(name="check_out", type=str, location=OpenApiParameter.QUERY, required=True,
                         description="Departure date (YYYY-MM-DD), exclusive"),
    ],
    responses={200: OpenApiResponse(description="Per-night availability and assignable rooms")},
)
class RoomTypeAvailabilityView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, pk):
        room_type = generics.get_object_or_404(
            RoomType.objects.select_related("structure"), pk=pk, structure__user=request.user
        )
        date_range = DateRange(
            request.query_params.get("check_in"), request.query_params.get("check_out")
        ).check_length()
        nights = ledger.get_range(room_type, date_range)
        rooms = registry.find_available_for_range(room_type, date_range)
        return Response({
            "success": True,
            "data": {
                "room_type_id": room_type.pk,
                "check_in": date_range.start,
                "check_out": date_range.end,
                "available": ledger.is_available(room_type, date_range),
                "nights": nights,
                "free_rooms": IndividualRoomSerializer(rooms, many=True).data,
            },
        })


@extend_schema(
    tags=["room"],
    summary="List and create individual rooms",
    parameters=[
        OpenApiParameter(name="room_type_id", type=int, location=OpenApiParameter.QUERY,
                         description="Filter by room type ID", required=False),
        OpenApiParameter(name="structure_id", type=int, location=OpenApiParameter.QUERY,
                         description="Filter by structure ID", required=False),
    ],
    responses={
        200: IndividualRoomSerializer(many=True),
        201: IndividualRoomSerializer,
        409: OpenApiResponse(description="Room number already used in the structure"),
    },
    examples=[
        OpenApiExample(
            name="Create Room",
            value={"room_type": 2, "room_number": "101", "floor_number": 1},
            request_only=True,
        )
    ],
)
class IndividualRoomListCreateView(generics.ListCreateAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = IndividualRoomSerializer

    def get_queryset(self):
        qs = IndividualRoom.objects.filter(structure__user=self.request.user).select_related("room_type")
        room_type_id = self.request.query_params.get("room_type_id")
        if room_type_id:
            qs = qs.filter(room_type_id=room_type_id)
        structure_id = self.request.query_params.get("structure_id")
        if structure_id:
            qs = qs.filter(structure_id=structure_id)
        return qs.order_by("floor_number", "room_number")

    def perform_create(self, serializer):
        room_type = serializer.validated_data["room_type"]
        if room_type.structure.user_id != self.request.user.id:
            raise serializers.ValidationError({"room_type": "You do not own this room type."})
        serializer.save()


@extend_schema(
    tags=["room"],
    summary="Retrieve, update, and delete an individual room",
    responses={
        200: IndividualRoomSerializer,
        204: None,
        409: OpenApiResponse(description="Room still has active reservations"),
    },
)
class IndividualRoomRetrieveUpdateDestroyView(generics.RetrieveUpdateDestroyAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = IndividualRoomSerializer

    def get_queryset(self):
        return IndividualRoom.objects.filter(structure__user=self.request.user).select_related("room_type")

    def perform_destroy(self, instance):
        registry.delete(instance)


@extend_schema(
    tags=["room"],
    summary="Change the housekeeping status of a room",
    request=RoomStatusSerializer,
    responses={200: IndividualRoomSerializer},
    examples=[
        OpenApiExample(name="Mark dirty", value={"status": "dirty"}, request_only=True)
    ],
)
class RoomStatusUpdateView(APIView):
    permission_classes = [IsAuthenticated]

    def patch(self, request, pk):
        room = generics.get_object_or_404(IndividualRoom, pk=pk, structure__user=request.user)
        serializer = RoomStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        registry.set_status(room, serializer.validated_data["status"])
        return Response({
            "success": True,
            "message": f"Room {room.room_number} is now {room.status}.",
            "data": IndividualRoomSerializer(room).data,
        })
