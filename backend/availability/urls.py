from django.urls import path
from .views import AvailabilityRangeView, BlockDatesView, UnblockDatesView

urlpatterns = [
    path("", AvailabilityRangeView.as_view(), name="availability-range"),
    path("block/", BlockDatesView.as_view(), name="availability-block"),
    path("unblock/", UnblockDatesView.as_view(), name="availability-unblock"),
]
