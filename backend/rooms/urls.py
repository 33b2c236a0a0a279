from django.urls import path
from .views import (
    RoomTypeListCreateView,
    RoomTypeRetrieveUpdateDestroyView,
    GenerateRoomsView,
    RoomTypeAvailabilityView,
    IndividualRoomListCreateView,
    IndividualRoomRetrieveUpdateDestroyView,
    RoomStatusUpdateView,
)

urlpatterns = [
    # Room types
    path("room-types/", RoomTypeListCreateView.as_view(), name="room-type-list-create"),
    path(
        "room-types/<int:pk>/",
        RoomTypeRetrieveUpdateDestroyView.as_view(),
        name="room-type-detail",
    ),
    path(
        "room-types/<int:pk>/generate-rooms/",
        GenerateRoomsView.as_view(),
        name="room-type-generate-rooms",
    ),
    path(
        "room-types/<int:pk>/availability/",
        RoomTypeAvailabilityView.as_view(),
        name="room-type-availability",
    ),
    # Individual rooms
    path("rooms/", IndividualRoomListCreateView.as_view(), name="room-list-create"),
    path(
        "rooms/<int:pk>/",
        IndividualRoomRetrieveUpdateDestroyView.as_view(),
        name="room-detail",
    ),
    path("rooms/<int:pk>/status/", RoomStatusUpdateView.as_view(), name="room-status"),
]
